"""Host hardware inventory collectors and log gathering for installation agents."""

__version__ = "0.1.0"

__all__ = [
    "bmc",
    "boot",
    "cpu",
    "dependencies",
    "disks",
    "gpu",
    "hostname",
    "interfaces",
    "inventory",
    "memory",
    "models",
    "routes",
    "send_logs",
    "system_vendor",
    "tpm",
]