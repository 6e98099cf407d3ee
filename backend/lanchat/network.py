"""LAN address discovery for display.

The address is only shown to users (startup banner, GET /ip) so they
know which URL to open from other devices on the same network. No chat
logic depends on it.
"""
import logging
import socket
from functools import lru_cache

logger = logging.getLogger(__name__)

# Any routable address works; connecting a UDP socket sends no packets.
_PROBE_ADDRESS = ("10.255.255.255", 1)


def _is_usable(address: str) -> bool:
    return bool(address) and not address.startswith("127.") and address != "0.0.0.0"


@lru_cache(maxsize=None)
def get_local_ip() -> str:
    """Return the first non-loopback IPv4 address, or "localhost".

    Resolved once per process.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(_PROBE_ADDRESS)
            address = s.getsockname()[0]
        if _is_usable(address):
            return address
    except OSError as e:
        logger.debug(f"UDP probe for local address failed: {e}")

    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            address = info[4][0]
            if _is_usable(address):
                return address
    except OSError as e:
        logger.debug(f"Hostname lookup for local address failed: {e}")

    return "localhost"
