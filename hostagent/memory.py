"""Physical and usable memory discovery."""

from __future__ import annotations

import logging
import re

from .dependencies import Dependencies
from .models import Memory, MemoryMethod

logger = logging.getLogger(__name__)

_INT64_MAX = (1 << 63) - 1

_MULTIPLIERS = {
    "bytes": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
    "eb": 1 << 50,
    "zb": 1 << 60,
}

_SIZE_LINE = re.compile(r"^[ \t]*Size:[ \t]+([0-9]+)[ \t]+([a-zA-Z]+)[ \t]*$")
_MEMTOTAL_LINE = re.compile(r"^[ \t]*MemTotal:[ \t]+([0-9]+)[ \t]+([a-zA-Z]+)")


def _dmidecode_total(dependencies: Dependencies) -> int:
    result = dependencies.execute("dmidecode", "-t", "17")
    if result.exit_code != 0:
        logger.error("Could not run dmidecode: %s", result.stderr)
        return 0
    total = 0
    for line in result.stdout.split("\n"):
        match = _SIZE_LINE.match(line)
        if not match:
            continue
        value = int(match.group(1))
        if value > _INT64_MAX:
            logger.warning("Could not convert memory: %s is out of range", match.group(1))
            return 0
        multiplier = _MULTIPLIERS.get(match.group(2).lower())
        if multiplier is None:
            logger.warning("Could not find multiplier for unit %s", match.group(2))
            return 0
        total += value * multiplier
    return total


def _ghw_total(dependencies: Dependencies) -> int:
    try:
        info = dependencies.memory()
    except OSError as exc:
        logger.error("Error getting memory info: %s", exc)
        return 0
    return info.total_physical_bytes


def _usable_total(dependencies: Dependencies) -> int:
    try:
        content = dependencies.read_file("/proc/meminfo")
    except OSError as exc:
        logger.error("Read /proc/meminfo: %s", exc)
        return 0
    for line in content.decode(errors="replace").split("\n"):
        match = _MEMTOTAL_LINE.match(line)
        if not match:
            continue
        value = int(match.group(1))
        if value > _INT64_MAX:
            logger.error("During conversion of %s", match.group(2))
            return 0
        multiplier = _MULTIPLIERS.get(match.group(2).lower())
        if multiplier is None:
            logger.error("Could not find multiplier for unit %s", match.group(2))
            return 0
        return value * multiplier
    logger.error("Could not find MemTotal in /proc/meminfo")
    return 0


def _total_physical(dependencies: Dependencies) -> tuple[int, MemoryMethod | None]:
    physical = _dmidecode_total(dependencies)
    if physical:
        return physical, MemoryMethod.DMIDECODE
    # dmidecode reports nothing on some platforms
    physical = _ghw_total(dependencies)
    if physical:
        return physical, MemoryMethod.GHW
    # the hardware scan reports nothing on some platforms either
    usable = _usable_total(dependencies)
    if usable:
        return usable, MemoryMethod.MEMINFO
    return 0, None


def get_memory(dependencies: Dependencies) -> Memory:
    """Physical size (with the method that found it) and usable size."""
    physical, method = _total_physical(dependencies)
    return Memory(
        physical_bytes=physical,
        usable_bytes=_usable_total(dependencies),
        physical_bytes_method=method,
    )