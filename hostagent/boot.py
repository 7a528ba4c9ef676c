"""Boot mode and PXE interface discovery."""

from __future__ import annotations

from .dependencies import Dependencies
from .models import Boot

_BOOTIF_PREFIX = "BOOTIF="


def _pxe_interface(dependencies: Dependencies) -> str:
    try:
        cmdline = dependencies.read_file("/proc/cmdline")
    except OSError:
        return ""
    for part in cmdline.decode(errors="replace").strip().split(" "):
        if part.startswith(_BOOTIF_PREFIX):
            return part[len(_BOOTIF_PREFIX):]
    return ""


def _current_boot_mode(dependencies: Dependencies) -> str:
    try:
        info = dependencies.stat("/sys/firmware/efi")
    except OSError:
        return "bios"
    return "uefi" if info.is_dir() else "bios"


def get_boot(dependencies: Dependencies) -> Boot:
    """Describe how the host booted."""
    return Boot(
        current_boot_mode=_current_boot_mode(dependencies),
        pxe_interface=_pxe_interface(dependencies),
    )