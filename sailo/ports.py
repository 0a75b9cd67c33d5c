"""Host port allocation for workspace containers."""

from __future__ import annotations

import errno
import logging
import os
import re
import socket
from typing import Callable, Iterable

_INTEGER = re.compile(r"[+-]?[0-9]+")


class PortError(Exception):
    """Raised for invalid port ranges and failed port allocation."""


def is_port_available(port: int) -> bool:
    """Return whether a TCP port is free on 127.0.0.1."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            if os.name != "nt":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("127.0.0.1", port))
            sock.listen()
    except OverflowError as exc:
        raise PortError(f"check port {port}: {exc}") from exc
    except OSError as exc:
        if exc.errno == errno.EADDRINUSE:
            return False
        raise PortError(f"check port {port}: {exc}") from exc
    return True


def find_used_ports(min_port: int, max_port: int) -> set[int]:
    """Return the ports in the inclusive range that are in use."""
    return {port for port in range(min_port, max_port + 1) if not is_port_available(port)}


class Allocator:
    """Assigns free host ports from a fixed range."""

    def __init__(
        self,
        min_port: int,
        max_port: int,
        used_ports: Callable[[], Iterable[int]],
        logger: logging.Logger | None = None,
    ) -> None:
        self.min_port = min_port
        self.max_port = max_port
        self._used_ports = used_ports
        self._logger = logger or logging.getLogger(__name__)

    def _query_used(self) -> list[int]:
        try:
            return list(self._used_ports())
        except Exception as exc:
            raise PortError(f"query used ports: {exc}") from exc

    def allocate(self, container_port: int) -> int:
        """Return a host port that is neither recorded as used nor busy on the host."""
        used = self._query_used()
        taken = set(used)
        for port in range(self.min_port, self.max_port + 1):
            if port in taken:
                continue
            try:
                available = is_port_available(port)
            except PortError as exc:
                self._logger.debug("error checking port availability: port=%d error=%s", port, exc)
                continue
            if available:
                self._logger.debug("allocated port: container=%d host=%d", container_port, port)
                return port
        raise PortError(
            f"port range exhausted ({self.min_port}-{self.max_port}): {len(used)} ports allocated; "
            "run 'sailo ps' to check for stale workspaces"
        )

    def release(self, host_port: int) -> None:
        """Do nothing; ports are freed when their workspace is removed."""
        self._logger.debug("port released: %d", host_port)

    def allocated_ports(self) -> dict[int, int]:
        """Return the currently allocated host ports, each mapped to itself."""
        return {port: port for port in self._query_used()}


def _parse_int(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError("invalid syntax")
    return int(text)


def parse_port_range(text: str) -> tuple[int, int]:
    """Parse a range such as "3001-3999" into (min, max)."""
    parts = text.split("-", 1)
    if len(parts) != 2:
        raise PortError(f"invalid port range {text!r}: expected format min-max")
    low_text, high_text = parts
    try:
        low = _parse_int(low_text.strip())
    except ValueError as exc:
        raise PortError(f"invalid port range min {low_text!r}: {exc}") from exc
    try:
        high = _parse_int(high_text.strip())
    except ValueError as exc:
        raise PortError(f"invalid port range max {high_text!r}: {exc}") from exc
    if low > high:
        raise PortError(f"invalid port range: min {low} > max {high}")
    if low < 1 or high > 65535:
        raise PortError("invalid port range: must be between 1 and 65535")
    return low, high