import socket

from ..errors import NetworkError, TransportTimeout


class TCPError(NetworkError):
    """Connect, send or framing failure while talking DNS over TCP."""


def tcp_query(
    host: str,
    port: int,
    query: bytes,
    *,
    connect_timeout_ms: int = 1000,
    read_timeout_ms: int = 1500,
) -> bytes:
    """
    Send one query over a fresh TCP connection and read one framed reply (RFC 7766).

    Inputs:
      - host: Authority address.
      - port: TCP port, normally 53.
      - query: Wire-format query; sent behind a 2-byte big-endian length.
      - connect_timeout_ms: Budget for establishing the connection.
      - read_timeout_ms: Budget for each blocking socket operation afterwards.
    Outputs:
      - bytes: Reply message without its length prefix.

    Raises:
      - TransportTimeout when connecting or reading times out.
      - TCPError for other socket failures and for a connection closed
        before the announced length arrived.
    """
    if len(query) > 0xFFFF:
        raise TCPError(f"query of {len(query)} octets does not fit a TCP frame")
    try:
        sock = socket.create_connection((host, int(port)), timeout=_seconds(connect_timeout_ms))
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(_seconds(read_timeout_ms))
            sock.sendall(len(query).to_bytes(2, "big") + query)
            length = int.from_bytes(_read_exactly(sock, 2, "length prefix"), "big")
            return _read_exactly(sock, length, "message body")
        finally:
            sock.close()
    except socket.timeout as exc:
        raise TransportTimeout(f"TCP timeout talking to {host}:{port}: {exc}") from exc
    except OSError as exc:
        raise TCPError(f"TCP error talking to {host}:{port}: {exc}") from exc


def _seconds(ms: int) -> float:
    return max(1, int(ms)) / 1000.0


def _read_exactly(sock: socket.socket, n: int, what: str) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = sock.recv(n - len(buf))
        if not chunk:
            raise TCPError(f"connection closed after {len(buf)} of {n} octets of {what}")
        buf += chunk
    return bytes(buf)
