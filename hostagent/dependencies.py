"""Access to the host: commands, files and hardware descriptions."""

from __future__ import annotations

import enum
import errno
import os
import socket
import stat as stat_mode
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TypeVar

UNKNOWN = "unknown"

T = TypeVar("T")


class BlockDriveType(enum.Enum):
    """Drive kind as reported by the block device scan."""

    UNKNOWN = "Unknown"
    HDD = "HDD"
    FDD = "FDD"
    ODD = "ODD"
    SSD = "SSD"


class StorageController(enum.Enum):
    """Controller a block device is attached to."""

    UNKNOWN = "Unknown"
    IDE = "IDE"
    SCSI = "SCSI"
    NVME = "NVMe"
    VIRTIO = "virtio"
    MMC = "MMC"


@dataclass
class Partition:
    name: str = ""
    label: str = ""
    mount_point: str = ""
    size_bytes: int = 0
    type: str = ""
    is_read_only: bool = False


@dataclass
class BlockDisk:
    name: str = ""
    size_bytes: int = 0
    drive_type: BlockDriveType = BlockDriveType.UNKNOWN
    bus_path: str = UNKNOWN
    vendor: str = UNKNOWN
    model: str = UNKNOWN
    serial_number: str = UNKNOWN
    wwn: str = UNKNOWN
    is_removable: bool = False
    numa_node_id: int = 0
    physical_block_size_bytes: int = 0
    storage_controller: StorageController = StorageController.UNKNOWN
    partitions: list[Partition] = field(default_factory=list)


@dataclass
class PCIProduct:
    vendor_id: str = ""
    id: str = ""
    name: str = ""


@dataclass
class PCIVendor:
    id: str = ""
    name: str = ""


@dataclass
class GraphicsCard:
    address: str = ""
    product: Optional[PCIProduct] = None
    vendor: Optional[PCIVendor] = None


@dataclass
class MemoryInfo:
    total_physical_bytes: int = 0
    total_usable_bytes: int = 0


@dataclass
class ProductInfo:
    name: str = ""
    family: str = ""
    serial_number: str = ""
    vendor: str = ""
    sku: str = ""
    uuid: str = ""
    version: str = ""


@dataclass
class NetInterface:
    """A network interface; addresses are in CIDR notation."""

    name: str = ""
    mtu: int = 0
    mac_address: str = ""
    flags: tuple[str, ...] = ()
    addresses: tuple[str, ...] = ()
    speed_mbps: int = 0
    type: str = ""


@dataclass
class FileInfo:
    name: str
    size: int = 0
    directory: bool = False
    symlink: bool = False

    def is_dir(self) -> bool:
        return self.directory

    def is_symlink(self) -> bool:
        return self.symlink


@dataclass
class CommandResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class HardwareInfoUnavailable(OSError):
    """Raised when no source is configured for a kind of hardware data."""


CommandRunner = Callable[[str, tuple], CommandResult]


class Dependencies:
    """Everything the inventory collectors read from the host.

    Files are read below ``root``. Commands are handed to ``runner``;
    hardware descriptions come from the given source callables.
    """

    def __init__(
        self,
        *,
        root: str = "/",
        ghw_chroot: str = "/host",
        runner: Optional[CommandRunner] = None,
        hostname_source: Callable[[], str] = socket.gethostname,
        interface_source: Optional[Callable[[], list[NetInterface]]] = None,
        block_source: Optional[Callable[[str], list[BlockDisk]]] = None,
        gpu_source: Optional[Callable[[], list[GraphicsCard]]] = None,
        memory_source: Optional[Callable[[], MemoryInfo]] = None,
        product_source: Optional[Callable[[str], ProductInfo]] = None,
    ) -> None:
        self._root = root
        self._ghw_chroot = ghw_chroot
        self._runner = runner
        self._hostname_source = hostname_source
        self._interface_source = interface_source
        self._block_source = block_source
        self._gpu_source = gpu_source
        self._memory_source = memory_source
        self._product_source = product_source

    def _host_path(self, path: str) -> str:
        if self._root == "/":
            return path
        return os.path.join(self._root, path.lstrip("/"))

    def _guest_path(self, real: str) -> str:
        root_real = os.path.realpath(self._root)
        if root_real == "/":
            return real
        relative = os.path.relpath(real, root_real)
        if relative.startswith(".."):
            return real
        return "/" if relative == "." else "/" + relative

    @staticmethod
    def _require(source: Optional[T], what: str) -> T:
        if source is None:
            raise HardwareInfoUnavailable(f"no {what} source configured")
        return source

    def execute(self, command: str, *args: str) -> CommandResult:
        if self._runner is None:
            return CommandResult("", f"{command}: command not found", 127)
        return self._runner(command, tuple(args))

    def read_file(self, path: str) -> bytes:
        return Path(self._host_path(path)).read_bytes()

    def stat(self, path: str) -> FileInfo:
        info = os.stat(self._host_path(path))
        name = os.path.basename(path.rstrip("/")) or "/"
        return FileInfo(name=name, size=info.st_size, directory=stat_mode.S_ISDIR(info.st_mode))

    def read_dir(self, path: str) -> list[FileInfo]:
        with os.scandir(self._host_path(path)) as entries:
            infos = []
            for entry in entries:
                info = entry.stat(follow_symlinks=False)
                infos.append(
                    FileInfo(
                        name=entry.name,
                        size=info.st_size,
                        directory=stat_mode.S_ISDIR(info.st_mode),
                        symlink=stat_mode.S_ISLNK(info.st_mode),
                    )
                )
        return sorted(infos, key=lambda item: item.name)

    def eval_symlinks(self, path: str) -> str:
        real = os.path.realpath(self._host_path(path))
        if not os.path.exists(real):
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return self._guest_path(real)

    def abs_path(self, path: str) -> str:
        return os.path.abspath(path)

    def hostname(self) -> str:
        return self._hostname_source()

    def interfaces(self) -> list[NetInterface]:
        return self._require(self._interface_source, "network interface")()

    def block(self, chroot: str) -> list[BlockDisk]:
        return self._require(self._block_source, "block device")(chroot)

    def gpu(self) -> list[GraphicsCard]:
        return self._require(self._gpu_source, "GPU")()

    def memory(self) -> MemoryInfo:
        return self._require(self._memory_source, "memory")()

    def product(self, chroot: str) -> ProductInfo:
        return self._require(self._product_source, "product")(chroot)

    def ghw_chroot_root(self) -> str:
        return self._ghw_chroot