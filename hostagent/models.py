"""Inventory records reported by the host agent."""

from __future__ import annotations

import dataclasses
import enum
import json
from dataclasses import dataclass, field
from typing import Any


class DriveType(enum.Enum):
    """Kind of storage device."""

    UNKNOWN = "Unknown"
    HDD = "HDD"
    FDD = "FDD"
    ODD = "ODD"
    SSD = "SSD"
    VIRTUAL = "virtual"
    MULTIPATH = "Multipath"
    ISCSI = "iSCSI"
    FC = "FC"
    LVM = "LVM"


class MemoryMethod(enum.Enum):
    """Source from which the physical memory size was taken."""

    DMIDECODE = "dmidecode"
    GHW = "ghw"
    MEMINFO = "meminfo"


class LogsState(enum.Enum):
    """Progress of a log collection, as reported to the service."""

    REQUESTED = "requested"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    TIMEOUT = "timeout"


def _to_plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for item in dataclasses.fields(value):
            member = getattr(value, item.name)
            if member is not None:
                result[item.name] = _to_plain(member)
        return result
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_plain(member) for member in value]
    return value


@dataclass
class Boot:
    current_boot_mode: str = ""
    pxe_interface: str = ""


@dataclass
class CPU:
    architecture: str = ""
    count: int = 0
    flags: list[str] = field(default_factory=list)
    frequency: float = 0.0
    model_name: str = ""


@dataclass
class DiskInstallationEligibility:
    eligible: bool = False
    not_eligible_reasons: list[str] = field(default_factory=list)


@dataclass
class Disk:
    id: str = ""
    by_id: str = ""
    by_path: str = ""
    drive_type: DriveType = DriveType.UNKNOWN
    hctl: str = ""
    model: str = ""
    name: str = ""
    path: str = ""
    serial: str = ""
    size_bytes: int = 0
    vendor: str = ""
    wwn: str = ""
    bootable: bool = False
    removable: bool = False
    smart: str = ""
    is_installation_media: bool = False
    installation_eligibility: DiskInstallationEligibility = field(
        default_factory=DiskInstallationEligibility
    )
    has_uuid: bool = False
    holders: str = ""


@dataclass
class Gpu:
    address: str = ""
    device_id: str = ""
    name: str = ""
    vendor: str = ""
    vendor_id: str = ""


@dataclass
class Interface:
    biosdevname: str = ""
    client_id: str = ""
    flags: list[str] = field(default_factory=list)
    has_carrier: bool = False
    ipv4_addresses: list[str] = field(default_factory=list)
    ipv6_addresses: list[str] = field(default_factory=list)
    mac_address: str = ""
    mtu: int = 0
    name: str = ""
    product: str = ""
    speed_mbps: int = 0
    type: str = ""
    vendor: str = ""


@dataclass
class Memory:
    physical_bytes: int = 0
    usable_bytes: int = 0
    physical_bytes_method: MemoryMethod | None = None


@dataclass
class Route:
    interface: str = ""
    destination: str = ""
    gateway: str = ""
    family: int = 0
    metric: int = 0


@dataclass
class SystemVendor:
    manufacturer: str = ""
    product_name: str = ""
    serial_number: str = ""
    virtual: bool = False


@dataclass
class Inventory:
    bmc_address: str = ""
    bmc_v6address: str = ""
    boot: Boot | None = None
    cpu: CPU | None = None
    disks: list[Disk] = field(default_factory=list)
    gpus: list[Gpu] = field(default_factory=list)
    hostname: str = ""
    interfaces: list[Interface] = field(default_factory=list)
    memory: Memory | None = None
    routes: list[Route] = field(default_factory=list)
    system_vendor: SystemVendor | None = None
    tpm_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping of the inventory; absent sections are left out."""
        return _to_plain(self)

    def to_json(self) -> str:
        """Compact JSON document of the inventory."""
        return json.dumps(self.to_dict(), separators=(",", ":"))