import socket
from typing import Optional

from ..errors import NetworkError, TransportTimeout

# Large enough for any EDNS payload size an authority may honour.
MAX_UDP_RESPONSE = 65535


class UDPError(NetworkError):
    """Socket failure while talking DNS over UDP."""


def _family_for(host: str) -> int:
    return socket.AF_INET6 if ":" in host else socket.AF_INET


def udp_query(
    host: str,
    port: int,
    query: bytes,
    *,
    timeout_ms: int = 2000,
    source_ip: Optional[str] = None,
) -> bytes:
    """
    Brief: Send one datagram query and wait for the first datagram back.

    Inputs:
    - host: authority IPv4 or IPv6 literal; the address family follows it
    - port: UDP port
    - query: wire-format query
    - timeout_ms: how long to wait for the reply
    - source_ip: local address to bind before sending

    Outputs:
    - bytes: the reply datagram, undecoded

    Raises:
    - TransportTimeout when nothing arrives in time
    - UDPError for every other socket failure

    Example:
        >>> udp_query('192.0.2.1', 53, query_bytes, timeout_ms=500)  # doctest: +SKIP
    """
    try:
        s = socket.socket(_family_for(host), socket.SOCK_DGRAM)
        try:
            if source_ip:
                s.bind((source_ip, 0))
            s.settimeout(max(1, int(timeout_ms)) / 1000.0)
            s.sendto(query, (host, int(port)))
            data, _ = s.recvfrom(MAX_UDP_RESPONSE)
            return data
        finally:
            s.close()
    except socket.timeout as e:
        raise TransportTimeout(f"UDP timeout talking to {host}:{port}: {e}") from e
    except OSError as e:
        raise UDPError(f"UDP error talking to {host}:{port}: {e}") from e
