"""Network interface discovery."""

from __future__ import annotations

import ipaddress
import logging

from .dependencies import Dependencies, NetInterface
from .models import Interface

logger = logging.getLogger(__name__)

IPV6_LINK_LOCAL_CIDR = "fe80::/10"

_FLAG_ORDER = ("up", "broadcast", "loopback", "pointtopoint", "multicast", "running")


def ip_with_cidr_in_cidr(ip_with_cidr: str, cidr: str) -> bool:
    """Whether the address of ``ip_with_cidr`` lies inside the network ``cidr``."""
    if "/" not in ip_with_cidr or "/" not in cidr:
        return False
    try:
        address = ipaddress.ip_interface(ip_with_cidr).ip
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False
    return address in network


def _analyze_address(address: str) -> tuple[bool, str]:
    if "/" not in address:
        raise ValueError(f"{address!r} is not in CIDR notation")
    parsed = ipaddress.ip_interface(address)
    return parsed.version == 4, f"{parsed.ip}/{parsed.network.prefixlen}"


def _ordered_flags(flags) -> list[str]:
    def rank(flag: str) -> int:
        return _FLAG_ORDER.index(flag) if flag in _FLAG_ORDER else len(_FLAG_ORDER)

    return sorted(flags, key=rank)


def _read_sys_value(dependencies: Dependencies, path: str) -> str | None:
    try:
        return dependencies.read_file(path).decode(errors="replace").strip()
    except OSError as exc:
        logger.debug("Reading file %s: %s", path, exc)
        return None


def _has_carrier(dependencies: Dependencies, name: str) -> bool:
    return _read_sys_value(dependencies, f"/sys/class/net/{name}/carrier") == "1"


def _device_field(dependencies: Dependencies, name: str, field: str) -> str:
    return _read_sys_value(dependencies, f"/sys/class/net/{name}/device/{field}") or ""


def _biosdevname(dependencies: Dependencies, name: str) -> str:
    result = dependencies.execute("biosdevname", "-i", name)
    if result.exit_code != 0:
        logger.debug("biosdevname error: %s", result.stderr)
    return result.stdout.strip()


def _describe(dependencies: Dependencies, nic: NetInterface) -> Interface:
    record = Interface(
        has_carrier=_has_carrier(dependencies, nic.name),
        mac_address=nic.mac_address,
        name=nic.name,
        mtu=nic.mtu,
        biosdevname=_biosdevname(dependencies, nic.name),
        product=_device_field(dependencies, nic.name, "device"),
        vendor=_device_field(dependencies, nic.name, "vendor"),
        flags=_ordered_flags(nic.flags),
        speed_mbps=nic.speed_mbps,
        type=nic.type,
    )
    for address in nic.addresses:
        try:
            is_ipv4, text = _analyze_address(address)
        except ValueError as exc:
            logger.warning("While analyzing addr: %s", exc)
            continue
        if is_ipv4:
            record.ipv4_addresses.append(text)
        elif not ip_with_cidr_in_cidr(text, IPV6_LINK_LOCAL_CIDR):
            record.ipv6_addresses.append(text)
    return record


def get_interfaces(dependencies: Dependencies) -> list[Interface]:
    """One record per interface; link-local IPv6 addresses are left out."""
    try:
        nics = dependencies.interfaces()
    except OSError as exc:
        logger.warning("Retrieving interfaces: %s", exc)
        return []
    return [_describe(dependencies, nic) for nic in nics or ()]