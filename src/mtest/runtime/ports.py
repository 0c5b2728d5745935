# src/mtest/runtime/ports.py

"""
Selects the TCP port the Meteor test server binds to.
"""

import random
import socket

import structlog

from mtest.exceptions import PortExhaustedError
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.ports")

DEFAULT_PORT_MIN = 10000
DEFAULT_PORT_MAX = 12000
PROBE_HOST = "127.0.0.1"


def is_port_free(port: int, host: str = PROBE_HOST) -> bool:
    """Returns True if a listener can be bound on host:port right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
            sock.listen(1)
        except OSError:
            return False
    return True


def resolve_port(
    configured_port: int,
    port_min: int = DEFAULT_PORT_MIN,
    port_max: int = DEFAULT_PORT_MAX,
) -> int:
    """
    Returns the configured port, or a random free one in [port_min, port_max).

    Raises:
        PortExhaustedError: If no candidate in the range can be bound.
    """
    if configured_port > 0:
        log.debug("Using CLI-specified port", port=configured_port)
        return configured_port

    log.debug("No port specified; attempting dynamic discovery", port_min=port_min, port_max=port_max)

    ports = list(range(port_min, port_max))
    random.Random().shuffle(ports)

    for port in ports:
        if is_port_free(port):
            log.debug("Discovered available port", port=port)
            return port

    log.debug("Exhausted port range without finding a free port")
    raise PortExhaustedError(port_min, port_max)


# 🔼⚙️
