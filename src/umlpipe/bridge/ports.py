"""Loopback port negotiation.

bind() tries one explicit port; bind_auto() scans a range in ascending
order and returns the first listener that binds. The bind itself is
delegated to a factory (a socket or an HTTP server constructor) that
raises OSError when the address is taken.
"""

from __future__ import annotations

import socket
from collections.abc import Callable
from typing import TypeVar

from loguru import logger

from umlpipe.errors import AllPortsUnavailable, PortUnavailable

LOOPBACK_HOST = "127.0.0.1"

T = TypeVar("T")

BindFactory = Callable[[tuple[str, int]], T]


def bind_socket(address: tuple[str, int]) -> socket.socket:
    """Bind a plain listening TCP socket to address."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind(address)
        sock.listen()
    except OSError:
        sock.close()
        raise
    return sock


def bind(port: int, factory: BindFactory[T], host: str = LOOPBACK_HOST) -> T:
    """Bind exactly one port.

    Args:
        port: Port to bind
        factory: Callable that binds (host, port) and returns the listener
        host: Interface to bind (loopback by default)

    Returns:
        Whatever the factory returned

    Raises:
        PortUnavailable: If the factory failed to bind the port
    """
    try:
        return factory((host, port))
    except OSError as e:
        logger.debug(f"Port {port} unavailable: {e}")
        raise PortUnavailable(port) from e


def bind_auto(
    start: int, end: int, factory: BindFactory[T], host: str = LOOPBACK_HOST
) -> T:
    """Bind the first free port in [start, end], trying ports in ascending order.

    Raises:
        AllPortsUnavailable: If no port in the range could be bound
    """
    for port in range(start, end + 1):
        try:
            return bind(port, factory, host)
        except PortUnavailable:
            logger.info(f"Port {port} is busy, trying next...")
    raise AllPortsUnavailable(start, end)
