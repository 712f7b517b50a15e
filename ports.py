from __future__ import annotations

import asyncio
import contextlib
import logging
import socket

from errors import ConfigurationError, NoAvailablePortError

log = logging.getLogger(__name__)

PORT_SEARCH_SPAN = 100
MAX_PORT = 65535


def is_port_free(port: int, host: str = "") -> bool:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        try:
            s.bind((host, port))
        except OSError:
            return False
        return True


def find_available_port(requested: int, span: int = PORT_SEARCH_SPAN, host: str = "") -> int:
    """Return the first port in ``[requested, requested + span)`` that binds.

    The probe socket is closed before returning, so the port may be taken
    by someone else before the real bind. Callers treat that as fatal.
    """
    if requested <= 0 or requested > MAX_PORT:
        raise ConfigurationError(f"Port {requested} is not a valid TCP port")
    stop = min(requested + span, MAX_PORT + 1)
    for port in range(requested, stop):
        if is_port_free(port, host):
            if port != requested:
                log.info("Port %d is busy, using %d", requested, port)
            return port
    raise NoAvailablePortError(requested, stop)


async def resolve_port(requested: int, span: int = PORT_SEARCH_SPAN, host: str = "") -> int:
    return await asyncio.to_thread(find_available_port, requested, span, host)
