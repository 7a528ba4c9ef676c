"""Block device discovery and installation eligibility."""

from __future__ import annotations

import logging
import posixpath

from .dependencies import UNKNOWN, BlockDisk, BlockDriveType, Dependencies, StorageController
from .models import Disk, DiskInstallationEligibility, DriveType

logger = logging.getLogger(__name__)

_BY_ID_DIR = "/dev/disk/by-id"
_BY_PATH_DIR = "/dev/disk/by-path"

# Arbitrary SMART result used in dry-run mode; its content does not matter.
DRY_RUN_SMART = (
    '{"json_format_version":[1,0],"smartctl":{"version":[7,1],"svn_revision":"5022",'
    '"platform_info":"x86_64-linux-5.14.0-60.fc35.x86_64","build_info":"(local build)",'
    '"argv":["smartctl","--xall","--json=c","/dev/vda"],"messages":[{"string":'
    '"/dev/vda: Unable to detect device type","severity":"error"}],"exit_status":1}}'
)

_BLOCK_TO_DRIVE = {
    BlockDriveType.FDD: DriveType.FDD,
    BlockDriveType.HDD: DriveType.HDD,
    BlockDriveType.ODD: DriveType.ODD,
    BlockDriveType.SSD: DriveType.SSD,
}


def _disk_wwns(dependencies: Dependencies) -> dict[str, str]:
    """Map each disk path (e.g. /dev/sdb) to its by-id WWN or EUI link."""
    try:
        entries = dependencies.read_dir(_BY_ID_DIR)
    except OSError as exc:
        logger.warning("Cannot get disk/by-id information: %s", exc)
        return {}
    mapping: dict[str, str] = {}
    for entry in entries:
        base = posixpath.basename(entry.name)
        if not (base.startswith("wwn-") or base.startswith("nvme-eui")):
            continue
        if not entry.is_symlink():
            continue
        disk_id = posixpath.join(_BY_ID_DIR, entry.name)
        try:
            disk_path = dependencies.abs_path(dependencies.eval_symlinks(disk_id))
        except OSError as exc:
            logger.warning(
                "Cannot resolve disk path from the disk by-id information "
                "(disk id is [%s]) - skipping: %s",
                disk_id,
                exc,
            )
            continue
        mapping[disk_path] = disk_id
    return mapping


def _path(dependencies: Dependencies, bus_path: str, name: str) -> str:
    path = posixpath.join("/dev", name)
    try:
        dependencies.stat(path)
        return path
    except OSError:
        pass
    try:
        resolved = dependencies.eval_symlinks(posixpath.join(_BY_PATH_DIR, bus_path))
    except OSError as exc:
        logger.warning("EvalSymlink: %s", exc)
        return ""
    try:
        return dependencies.abs_path(resolved)
    except OSError as exc:
        logger.warning("Abs: %s", exc)
        return ""


def _by_path(dependencies: Dependencies, bus_path: str) -> str:
    if bus_path == UNKNOWN:
        return ""
    path = posixpath.join(_BY_PATH_DIR, bus_path)
    try:
        dependencies.stat(path)
    except OSError:
        return ""
    return path


def _bus_path(dependencies: Dependencies, disks: list[BlockDisk], index: int, bus_path: str) -> str:
    if bus_path == UNKNOWN:
        return ""
    # Two disks sharing a bus path would be confused with each other; report none.
    if any(i != index and other.bus_path == bus_path for i, other in enumerate(disks)):
        return ""
    return _by_path(dependencies, bus_path)


def _hctl(dependencies: Dependencies, name: str) -> str:
    try:
        files = dependencies.read_dir(f"/sys/block/{name}/device/scsi_device")
    except OSError:
        return ""
    return files[0].name if files else ""


def _bootable(dependencies: Dependencies, path: str) -> bool:
    if not path:
        return False
    result = dependencies.execute("file", "-s", path)
    if result.exit_code != 0:
        logger.warning("Could not get bootable information for path %s: %s", path, result.stderr)
        return False
    return "DOS/MBR boot sector" in result.stdout


def _has_uuid(dependencies: Dependencies, path: str) -> bool:
    if not path:
        return False
    # Device page 0x83 holds the device WWID, which some platforms require.
    result = dependencies.execute("sg_inq", "-p", "0x83", path)
    if result.exit_code != 0:
        logger.info(
            "hasUUID is false for path %s: exit code %d, stdout: %s, stderr: %s",
            path,
            result.exit_code,
            result.stdout,
            result.stderr,
        )
        return False
    return True


def _smart(dependencies: Dependencies, path: str, dry_run: bool) -> str:
    if not path:
        return ""
    if dry_run:
        return DRY_RUN_SMART
    # The exit code is encoded in the output; relay it whatever it is.
    return dependencies.execute("smartctl", "--all", "--quiet=errorsonly", path).stdout


def _unknown_to_empty(value: str) -> str:
    return "" if value == UNKNOWN else value


def _is_device_mapper(disk: BlockDisk) -> bool:
    return disk.name.startswith("dm-")


def _dm_uuid_has_prefix(dependencies: Dependencies, disk: BlockDisk, prefix: str) -> bool:
    if not _is_device_mapper(disk):
        return False
    path = posixpath.join("/sys", "block", disk.name, "dm", "uuid")
    try:
        content = dependencies.read_file(path)
    except OSError as exc:
        logger.warning("Failed reading dm uuid %s: %s", path, exc)
        return False
    return content.decode(errors="replace").startswith(prefix)


def _is_multipath(dependencies: Dependencies, disk: BlockDisk) -> bool:
    return _dm_uuid_has_prefix(dependencies, disk, "mpath-")


def _is_lvm(dependencies: Dependencies, disk: BlockDisk) -> bool:
    return _dm_uuid_has_prefix(dependencies, disk, "LVM-")


def _holders(dependencies: Dependencies, name: str) -> str:
    path = f"/sys/block/{name}/holders"
    try:
        files = dependencies.read_dir(path)
    except OSError as exc:
        logger.warning("Failed listing device holders %s: %s", path, exc)
        return ""
    return ",".join(item.name for item in files)


def _check_eligibility(dependencies: Dependencies, disk: BlockDisk) -> tuple[list[str], bool]:
    """Reasons the disk cannot be installed on, and whether it looks like installation media."""
    reasons: list[str] = []
    installation_media = False
    if disk.is_removable:
        reasons.append("Disk is removable")
    if (
        disk.storage_controller == StorageController.UNKNOWN
        and not _is_multipath(dependencies, disk)
        and not _is_lvm(dependencies, disk)
    ):
        reasons.append("Disk has unknown storage controller")
    if _is_lvm(dependencies, disk):
        reasons.append("Disk is an LVM logical volume")
    if any(part.type == "iso9660" for part in disk.partitions):
        reasons.append(
            "Disk appears to be an ISO installation media (has partition with type iso9660)"
        )
        installation_media = True
    if any(part.mount_point.endswith("iso") for part in disk.partitions):
        reasons.append(
            "Disk appears to be an ISO installation media (has partition with mountpoint suffix iso)"
        )
        installation_media = True
    return reasons, installation_media


def should_return_disk(dependencies: Dependencies, disk: BlockDisk) -> bool:
    """Whether the device is reported at all (loop, zram, md and plain dm devices are not)."""
    name = disk.name
    if name.startswith("dm-") and not (
        _is_multipath(dependencies, disk) or _is_lvm(dependencies, disk)
    ):
        return False
    return not name.startswith(("loop", "zram", "md"))


def _drive_type(dependencies: Dependencies, disk: BlockDisk) -> DriveType:
    if "-iscsi-" in disk.bus_path:
        return DriveType.ISCSI
    if "-fc-" in disk.bus_path:
        return DriveType.FC
    if _is_multipath(dependencies, disk):
        return DriveType.MULTIPATH
    if _is_lvm(dependencies, disk):
        return DriveType.LVM
    return _BLOCK_TO_DRIVE.get(disk.drive_type, DriveType.UNKNOWN)


def get_disks(dependencies: Dependencies, dry_run: bool = False) -> list[Disk]:
    """Describe every reportable block device; empty when the scan fails."""
    try:
        block_disks = dependencies.block(dependencies.ghw_chroot_root())
    except OSError as exc:
        logger.warning("While getting disks info: %s", exc)
        return []
    if not block_disks:
        return []

    wwns = _disk_wwns(dependencies)
    disks: list[Disk] = []
    for index, disk in enumerate(block_disks):
        if not should_return_disk(dependencies, disk):
            continue
        reasons, installation_media = _check_eligibility(dependencies, disk)
        eligibility = DiskInstallationEligibility(
            eligible=not reasons, not_eligible_reasons=reasons
        )
        # Optical disks count as installation media too.
        installation_media = installation_media or disk.drive_type == BlockDriveType.ODD
        if reasons:
            logger.info(
                "Disk (name %s drive type %s bus path %s vendor %s model %s) was found to be "
                "ineligible for installation for the following reasons: %s",
                disk.name,
                disk.drive_type.value,
                disk.bus_path,
                disk.vendor,
                disk.model,
                ", ".join(reasons),
            )

        path = _path(dependencies, disk.bus_path, disk.name)
        record = Disk(
            by_id=wwns.get(path, ""),
            by_path=_bus_path(dependencies, block_disks, index, disk.bus_path),
            hctl=_hctl(dependencies, disk.name),
            model=_unknown_to_empty(disk.model),
            name=disk.name,
            path=path,
            drive_type=_drive_type(dependencies, disk),
            serial=_unknown_to_empty(disk.serial_number),
            size_bytes=disk.size_bytes,
            vendor=_unknown_to_empty(disk.vendor),
            wwn=_unknown_to_empty(disk.wwn),
            bootable=_bootable(dependencies, path),
            removable=disk.is_removable,
            smart=_smart(dependencies, path, dry_run),
            is_installation_media=installation_media,
            installation_eligibility=eligibility,
            has_uuid=_has_uuid(dependencies, path),
            holders=_holders(dependencies, disk.name),
        )
        record.id = record.by_id or record.by_path or record.path
        disks.append(record)
    return disks