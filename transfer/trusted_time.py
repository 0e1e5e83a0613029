"""Trusted time from external NTP servers.

Token expiry is judged against this clock instead of the local one, which may
be skewed.
"""

import socket
import struct
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from common.exceptions import TokenError
from common.logging_config import get_logger

logger = get_logger(__name__)

NTP_PORT = 123
NTP_PACKET_FORMAT = '!12I'
NTP_PACKET_SIZE = struct.calcsize(NTP_PACKET_FORMAT)
# Seconds between 1900-01-01 (NTP era 0) and 1970-01-01
NTP_EPOCH_OFFSET = 2208988800
# LI=0, VN=3, Mode=3 (client)
NTP_CLIENT_REQUEST = b'\x1b' + 47 * b'\0'
NTP_LEAP_UNSYNCHRONIZED = 3
NTP_MODE_SERVER = 4


def query_ntp(server: str, port: int = NTP_PORT, timeout: float = 5.0) -> datetime:
    """
    Ask one NTP server for the current time (SNTP, single request).

    Args:
        server: Host name of the server
        port: UDP port
        timeout: Socket timeout in seconds

    Returns:
        Timezone-aware UTC datetime taken from the transmit timestamp

    Raises:
        OSError: On resolution, network or timeout failures
        ValueError: If the reply is short, is not a synchronized server reply,
            or carries no timestamp
    """
    address = socket.getaddrinfo(server, port, 0, socket.SOCK_DGRAM)[0][4]
    with socket.socket(socket.AF_INET if len(address) == 2 else socket.AF_INET6, socket.SOCK_DGRAM) as sock:
        sock.settimeout(timeout)
        sock.sendto(NTP_CLIENT_REQUEST, address)
        data, _ = sock.recvfrom(1024)

    if len(data) < NTP_PACKET_SIZE:
        raise ValueError(f"short NTP reply from {server}: {len(data)} bytes")
    fields = struct.unpack(NTP_PACKET_FORMAT, data[:NTP_PACKET_SIZE])
    leap, mode, stratum = fields[0] >> 30, (fields[0] >> 24) & 0x7, (fields[0] >> 16) & 0xff
    if mode != NTP_MODE_SERVER:
        raise ValueError(f"NTP reply from {server} has mode {mode}, expected a server reply")
    if leap == NTP_LEAP_UNSYNCHRONIZED:
        raise ValueError(f"NTP server {server} is not synchronized")
    if stratum == 0:
        raise ValueError(f"NTP server {server} refused the request (stratum 0)")
    seconds, fraction = fields[10], fields[11]
    if seconds == 0:
        raise ValueError(f"NTP reply from {server} has no transmit timestamp")
    timestamp = seconds - NTP_EPOCH_OFFSET + fraction / 2 ** 32
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class TrustedTimeSource:
    """
    Resolves "now" from an ordered list of time servers.

    The first server that answers wins; later servers are only asked when the
    earlier ones fail.
    """

    def __init__(
        self,
        servers: Iterable[str],
        timeout: float = 5.0,
        query: Optional[Callable[[str], datetime]] = None,
    ):
        """
        Args:
            servers: Server host names, in priority order
            timeout: Per-server socket timeout in seconds
            query: Callable asking a single server (defaults to query_ntp)
        """
        self.servers = list(servers)
        self.timeout = timeout
        self._query = query or (lambda server: query_ntp(server, timeout=self.timeout))

    def now(self) -> datetime:
        """
        Current trusted time.

        Raises:
            TokenError: If every server in the list failed
        """
        failures = []
        for server in self.servers:
            try:
                current = self._query(server)
            except (OSError, ValueError) as e:
                logger.warning(f"Time server {server} failed: {e}")
                failures.append(f"{server}: {e}")
                continue
            logger.debug(f"Trusted time from {server}: {current.isoformat()}")
            return current
        raise TokenError("No trusted time server reachable (" + "; ".join(failures) + ")")
