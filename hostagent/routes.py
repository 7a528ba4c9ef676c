"""Routing table discovery."""

from __future__ import annotations

import errno
import ipaddress
import logging
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Protocol

from .models import Route

logger = logging.getLogger(__name__)

# Address family numbers as reported to the service.
FAMILY_IPV4 = 2
FAMILY_IPV6 = 10

_RTF_UP = 0x0001
_RTF_GATEWAY = 0x0002
_RTF_REJECT = 0x0200
_RTF_LOCAL = 0x80000000

_ZERO = {FAMILY_IPV4: "0.0.0.0", FAMILY_IPV6: "::"}


@dataclass
class Nexthop:
    link_index: int = 0
    gateway: Optional[str] = None


@dataclass
class RouteEntry:
    """A kernel route; ``destination`` is None for a default route."""

    link_index: int = 0
    destination: Optional[str] = None
    gateway: Optional[str] = None
    priority: int = 0
    multipath: list[Nexthop] = field(default_factory=list)


class _Handler(Protocol):
    family: int

    def get_route_list(self) -> list[RouteEntry]: ...

    def get_link_name(self, route: RouteEntry) -> str: ...


def _first_link_index(route: RouteEntry) -> int:
    return route.multipath[0].link_index if route.multipath else route.link_index


class RouteHandler:
    """Reads the main routing table of one address family from procfs."""

    def __init__(self, family: int, proc_root: str = "/proc") -> None:
        if family not in (FAMILY_IPV4, FAMILY_IPV6):
            raise ValueError(f"unsupported address family {family}")
        self.family = family
        self._proc_root = proc_root
        self._names: dict[int, str] = {}
        self._indexes: dict[str, int] = {}

    def _index_for(self, name: str) -> int:
        if name in self._indexes:
            return self._indexes[name]
        try:
            index = socket.if_nametoindex(name)
        except OSError:
            index = -(len(self._indexes) + 1)
        self._indexes[name] = index
        self._names[index] = name
        return index

    def get_route_list(self) -> list[RouteEntry]:
        if self.family == FAMILY_IPV4:
            text = Path(self._proc_root, "net", "route").read_text()
            return list(self._parse_ipv4(text))
        text = Path(self._proc_root, "net", "ipv6_route").read_text()
        return list(self._parse_ipv6(text))

    def get_link_name(self, route: RouteEntry) -> str:
        index = _first_link_index(route)
        if index in self._names:
            return self._names[index]
        if index <= 0:
            raise OSError(errno.ENODEV, os.strerror(errno.ENODEV), f"link index {index}")
        return socket.if_indextoname(index)

    def _parse_ipv4(self, text: str) -> Iterator[RouteEntry]:
        for line in text.splitlines()[1:]:
            fields = line.split()
            if len(fields) < 8:
                continue
            try:
                flags = int(fields[3], 16)
                destination = _ipv4(fields[1])
                gateway = _ipv4(fields[2])
                prefixlen = bin(int(_ipv4(fields[7]))).count("1")
                metric = int(fields[6])
            except ValueError:
                continue
            if not flags & _RTF_UP:
                continue
            yield RouteEntry(
                link_index=self._index_for(fields[0]),
                destination=None if prefixlen == 0 else str(destination),
                gateway=str(gateway) if flags & _RTF_GATEWAY else None,
                priority=metric,
            )

    def _parse_ipv6(self, text: str) -> Iterator[RouteEntry]:
        for line in text.splitlines():
            fields = line.split()
            if len(fields) < 10:
                continue
            try:
                destination = ipaddress.IPv6Address(bytes.fromhex(fields[0]))
                prefixlen = int(fields[1], 16)
                nexthop = ipaddress.IPv6Address(bytes.fromhex(fields[4]))
                metric = int(fields[5], 16)
                flags = int(fields[8], 16)
            except ValueError:
                continue
            if flags & (_RTF_REJECT | _RTF_LOCAL):
                continue
            yield RouteEntry(
                link_index=self._index_for(fields[9]),
                destination=None if prefixlen == 0 else str(destination),
                gateway=str(nexthop) if flags & _RTF_GATEWAY else None,
                priority=metric,
            )


def _ipv4(little_endian_hex: str) -> ipaddress.IPv4Address:
    return ipaddress.IPv4Address(int.from_bytes(bytes.fromhex(little_endian_hex), "little"))


def get_ip_routes(handler: _Handler) -> list[Route]:
    """Routes of the handler's family; raises OSError when they cannot be read."""
    try:
        entries = handler.get_route_list()
    except OSError as exc:
        logger.error("Unable to retrieve the routes of family %d: %s", handler.family, exc)
        raise
    routes = []
    for entry in entries:
        try:
            link_name = handler.get_link_name(entry)
        except OSError as exc:
            logger.error("Unable to retrieve the link name for index %d: %s", entry.link_index, exc)
            raise
        destination = entry.destination if entry.destination is not None else _ZERO[handler.family]
        if entry.multipath and entry.multipath[0].gateway is not None:
            gateway = entry.multipath[0].gateway
        else:
            gateway = entry.gateway or ""
        routes.append(
            Route(
                interface=link_name,
                destination=destination,
                gateway=gateway,
                family=handler.family,
                metric=entry.priority,
            )
        )
    return routes


def get_routes(
    ipv4_handler: Optional[_Handler] = None, ipv6_handler: Optional[_Handler] = None
) -> list[Route]:
    """IPv4 then IPv6 routes; a family that cannot be read is left out."""
    ipv4_handler = ipv4_handler or RouteHandler(FAMILY_IPV4)
    ipv6_handler = ipv6_handler or RouteHandler(FAMILY_IPV6)
    try:
        routes = get_ip_routes(ipv4_handler)
    except OSError as exc:
        logger.warning("Unable to determine the IPv4 routes: %s", exc)
        routes = []
    try:
        routes.extend(get_ip_routes(ipv6_handler))
    except OSError as exc:
        logger.warning("Unable to determine the IPv6 routes: %s", exc)
    return routes