"""CPU description from lscpu."""

from __future__ import annotations

import json
import logging
from typing import Any

from .dependencies import Dependencies
from .models import CPU

logger = logging.getLogger(__name__)


def _lookup(mapping: dict, key: str) -> Any:
    for name, value in mapping.items():
        if isinstance(name, str) and name.lower() == key:
            return value
    return None


def _parse_lscpu(text: str) -> list[tuple[str, str]]:
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("lscpu output is not an object")
    entries = _lookup(document, "lscpu")
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ValueError("lscpu entries are not a list")
    fields = []
    for entry in entries:
        if entry is None:
            continue
        if not isinstance(entry, dict):
            raise ValueError("lscpu entry is not an object")
        fields.append((_lookup(entry, "field") or "", _lookup(entry, "data") or ""))
    return fields


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _to_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def get_cpu(dependencies: Dependencies) -> CPU:
    """CPU facts; an empty record when lscpu fails."""
    cpu = CPU()
    result = dependencies.execute("lscpu", "-J")
    if result.exit_code != 0:
        logger.warning("Error running lscpu: %s", result.stderr)
        return cpu
    try:
        fields = _parse_lscpu(result.stdout)
    except ValueError as exc:
        logger.warning("Error unmarshaling lscpu: %s", exc)
        return cpu
    for name, data in fields:
        key = name[:-1]
        if key == "Architecture":
            cpu.architecture = data
        elif key == "Model name":
            cpu.model_name = data
        elif key == "CPU(s)":
            cpu.count = _to_int(data)
        elif key in ("CPU MHz", "CPU max MHz"):
            cpu.frequency = max(cpu.frequency, _to_float(data))
        elif key == "Flags":
            cpu.flags = data.split(" ")
    return cpu