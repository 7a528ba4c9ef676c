"""Assembly of the full host inventory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .bmc import get_bmc_address, get_bmc_v6_address
from .boot import get_boot
from .cpu import get_cpu
from .dependencies import Dependencies
from .disks import get_disks
from .gpu import get_gpus
from .hostname import get_hostname
from .interfaces import get_interfaces
from .memory import get_memory
from .models import Inventory
from .routes import get_routes
from .system_vendor import get_vendor
from .tpm import get_tpm


@dataclass
class DryRunSettings:
    """Dry-run mode and the identity the host pretends to have in it."""

    enabled: bool = False
    forced_mac_address: str = ""
    forced_host_ipv4: str = ""


def _routes(route_handlers: Optional[Sequence]) -> list:
    if route_handlers is None:
        return get_routes()
    ipv4_handler, ipv6_handler = route_handlers
    return get_routes(ipv4_handler, ipv6_handler)


def read_inventory(
    dependencies: Dependencies,
    route_handlers: Optional[Sequence] = None,
    dry_run: bool = False,
) -> Inventory:
    """Collect every section of the inventory.

    ``route_handlers`` is an (IPv4, IPv6) pair of route handlers; when it
    is None the kernel routing tables are read.
    """
    return Inventory(
        bmc_address=get_bmc_address(dependencies, dry_run),
        bmc_v6address=get_bmc_v6_address(dependencies, dry_run),
        boot=get_boot(dependencies),
        cpu=get_cpu(dependencies),
        disks=get_disks(dependencies, dry_run),
        gpus=get_gpus(dependencies),
        hostname=get_hostname(dependencies),
        interfaces=get_interfaces(dependencies),
        memory=get_memory(dependencies),
        system_vendor=get_vendor(dependencies),
        routes=_routes(route_handlers),
        tpm_version=get_tpm(dependencies),
    )


def find_relevant_interface(inventory: Inventory) -> int:
    """Index of the first interface with an IPv4 address; LookupError if none."""
    for index, interface in enumerate(inventory.interfaces):
        if interface.ipv4_addresses:
            return index
    raise LookupError(
        f"No suitable interface for dry run reconfiguration found in {inventory.interfaces!r}"
    )


def apply_dry_run_config(settings: DryRunSettings, inventory: Inventory) -> None:
    """Give the inventory the forced MAC and IPv4 address and keep only that interface."""
    try:
        index = find_relevant_interface(inventory)
    except LookupError:
        return
    target = inventory.interfaces[index]
    target.mac_address = settings.forced_mac_address
    target.ipv4_addresses[0] = settings.forced_host_ipv4
    # Other interfaces could carry MAC addresses duplicated across simulated hosts.
    inventory.interfaces = [target]


def create_inventory_info(
    dependencies: Dependencies,
    route_handlers: Optional[Sequence] = None,
    settings: Optional[DryRunSettings] = None,
) -> bytes:
    """The inventory as a JSON document, reconfigured for dry run when enabled."""
    settings = settings or DryRunSettings()
    inventory = read_inventory(dependencies, route_handlers, settings.enabled)
    if settings.enabled:
        apply_dry_run_config(settings, inventory)
    return inventory.to_json().encode()