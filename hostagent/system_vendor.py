"""System manufacturer and product discovery."""

from __future__ import annotations

import logging

from .dependencies import Dependencies
from .models import SystemVendor

logger = logging.getLogger(__name__)

_VIRTUAL_MARKERS = (
    "KVM",
    "VirtualBox",
    "VMware",
    "Virtual Machine",
    "AHV",
    "HVM domU",
    "oVirt",
)


def is_virtual(product: str) -> bool:
    """Whether the product name denotes a virtual machine."""
    return any(marker in product for marker in _VIRTUAL_MARKERS)


def is_ovirt_platform(family: str) -> bool:
    """oVirt guests can only be told apart by their product family."""
    return family in ("oVirt", "RHV")


def get_vendor(dependencies: Dependencies) -> SystemVendor:
    """Vendor record; empty when the product information cannot be read."""
    vendor = SystemVendor()
    chroot = dependencies.ghw_chroot_root()
    try:
        product = dependencies.product(chroot)
    except OSError as exc:
        logger.error("Error reading product information with %s chroot: %s", chroot, exc)
        return vendor
    vendor.serial_number = product.serial_number
    vendor.product_name = product.name
    vendor.manufacturer = product.vendor
    if is_ovirt_platform(product.family):
        vendor.product_name = "oVirt"
    vendor.virtual = is_virtual(vendor.product_name)
    return vendor