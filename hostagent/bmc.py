"""Discovery of the BMC (IPMI) addresses."""

from __future__ import annotations

import ipaddress
import re

import yaml

from .dependencies import Dependencies

MAX_IPMI_CHANNEL = 12

_IPV4_LINE = re.compile(r"^IP Address[ \t]*:[ \t]*([^ \t]*)[ \t]*$")
_ADDR_MODE_LINE = re.compile(r"^IPv6/IPv4 Addressing Enables: (both|ipv6)[ \t]*$")
_NULL_ADDRESS = re.compile(r"::(/\d{1,3})*")


def _channels():
    return range(1, MAX_IPMI_CHANNEL + 1)


def _first_match(pattern: re.Pattern, text: str) -> str:
    for line in text.split("\n"):
        match = pattern.match(line)
        if match:
            return match.group(1)
    return ""


def _ip_for_channel(dependencies: Dependencies, channel: int) -> str:
    result = dependencies.execute("ipmitool", "lan", "print", str(channel))
    if result.exit_code != 0 or result.stderr.startswith("Invalid channel"):
        return ""
    return _first_match(_IPV4_LINE, result.stdout)


def _is_valid_ip(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def get_bmc_address(dependencies: Dependencies, dry_run: bool = False) -> str:
    """First non-zero IPv4 address of an IPMI channel, or 0.0.0.0."""
    if dry_run:
        return "0.0.0.0"
    for channel in _channels():
        address = _ip_for_channel(dependencies, channel)
        if address and _is_valid_ip(address) and address != "0.0.0.0":
            return address
    return "0.0.0.0"


def _is_enabled(value: object) -> bool:
    return value is not False and value != ""


def _v6_address(dependencies: Dependencies, channel: int, address_type: str) -> str:
    result = dependencies.execute(
        "ipmitool", "lan6", "print", str(channel), f"{address_type}_addr"
    )
    if result.exit_code != 0:
        return ""
    try:
        document = yaml.safe_load(result.stdout)
    except yaml.YAMLError:
        return ""
    if not isinstance(document, dict):
        return ""
    for entry in document.values():
        if not isinstance(entry, dict) or "Address" not in entry:
            continue
        address = entry["Address"]
        if not isinstance(address, str):
            continue
        if address_type == "dynamic":
            if "Source/Type" not in entry:
                continue
            enabled = entry["Source/Type"] in ("DHCPv6", "SLAAC")
        else:
            enabled = "Enabled" in entry and _is_enabled(entry["Enabled"])
        if entry.get("Status") == "active" and enabled and not _NULL_ADDRESS.fullmatch(address):
            return address
    return ""


def _addr_mode(dependencies: Dependencies, channel: int) -> str:
    result = dependencies.execute("ipmitool", "lan6", "print", str(channel), "enables")
    if result.exit_code != 0:
        return ""
    return _first_match(_ADDR_MODE_LINE, result.stdout)


def get_bmc_v6_address(dependencies: Dependencies, dry_run: bool = False) -> str:
    """First active IPv6 address of an IPMI channel with IPv6 enabled, or ::/0."""
    if dry_run:
        return "::/0"
    for channel in _channels():
        if not _addr_mode(dependencies, channel):
            continue
        address = _v6_address(dependencies, channel, "dynamic") or _v6_address(
            dependencies, channel, "static"
        )
        if not address or "/" not in address:
            continue
        try:
            interface = ipaddress.ip_interface(address)
        except ValueError:
            continue
        return str(interface.ip)
    return "::/0"