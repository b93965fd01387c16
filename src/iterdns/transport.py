from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from .errors import DeadlineExceeded, NetworkError
from .name import DomainName

# Module aliases so tests which monkeypatch udp_query/tcp_query see the effect.
from .transports import tcp as tcp_mod
from .transports import udp as udp_mod

"""Transport boundary between the resolver and the network.

Brief:
  The resolver only ever calls Transport.send(). SocketTransport is the
  default implementation on top of the UDP/TCP helpers in iterdns.transports;
  tests substitute an in-memory transport that serves synthetic zones.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorityEndpoint:
    """Authority server candidate used during iterative resolution.

    Inputs:
      - name: Nameserver host name (e.g. 'a.root-servers.net.').
      - host: IPv4/IPv6 address, or None while the address is unknown.
      - port: UDP/TCP port (53 by default).

    Outputs:
      - Immutable description of an authority endpoint for the resolver.
    """

    name: DomainName
    host: Optional[str] = None
    port: int = 53

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", DomainName.coerce(self.name))

    def with_host(self, host: str) -> "AuthorityEndpoint":
        return AuthorityEndpoint(self.name, host, self.port)

    def __str__(self) -> str:
        if self.host is None:
            return str(self.name)
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"


class Transport(Protocol):
    """Protocol for sending one DNS query to one authority endpoint.

    Inputs:
      - server: AuthorityEndpoint with a known host.
      - query: Wire-format DNS query.
      - reliable: False for a datagram (UDP) attempt, True for a stream (TCP).
      - deadline: Absolute time.monotonic() value after which the whole
        resolution must stop.

    Outputs:
      - Wire-format response bytes.

    Raises:
      - NetworkError when this server cannot be reached or does not answer.
      - DeadlineExceeded when the deadline has already passed.
    """

    def send(
        self,
        server: AuthorityEndpoint,
        query: bytes,
        reliable: bool,
        deadline: float,
    ) -> bytes:
        ...


class SocketTransport:
    """Transport that talks plain DNS over UDP and TCP sockets.

    Inputs:
      - per_try_timeout_ms: Upper bound for a single send/receive attempt.
      - source_ip: Optional source address to bind for UDP queries.
      - tcp_only: Send every query over TCP, even datagram attempts.
      - clock: Monotonic clock used to interpret deadlines.

    Outputs:
      - Instance suitable for IterativeResolver.
    """

    def __init__(
        self,
        *,
        per_try_timeout_ms: int = 2000,
        source_ip: Optional[str] = None,
        tcp_only: bool = False,
        clock=time.monotonic,
    ) -> None:
        self._per_try_timeout_ms = max(1, int(per_try_timeout_ms))
        self._source_ip = source_ip
        self._tcp_only = bool(tcp_only)
        self._clock = clock

    def send(
        self,
        server: AuthorityEndpoint,
        query: bytes,
        reliable: bool,
        deadline: float,
    ) -> bytes:
        remaining_ms = int((deadline - self._clock()) * 1000)
        if remaining_ms <= 0:
            raise DeadlineExceeded("resolution deadline passed before sending")
        if server.host is None:
            raise NetworkError(f"no address known for {server.name}")
        timeout_ms = min(self._per_try_timeout_ms, remaining_ms)
        reliable = reliable or self._tcp_only

        logger.debug(
            "send %s query to %s (timeout %dms)",
            "TCP" if reliable else "UDP",
            server,
            timeout_ms,
        )
        if reliable:
            return tcp_mod.tcp_query(
                server.host,
                server.port,
                query,
                connect_timeout_ms=timeout_ms,
                read_timeout_ms=timeout_ms,
            )
        return udp_mod.udp_query(
            server.host,
            server.port,
            query,
            timeout_ms=timeout_ms,
            source_ip=self._source_ip,
        )


def endpoint(name: Union[DomainName, str], host: Optional[str] = None, port: int = 53) -> AuthorityEndpoint:
    return AuthorityEndpoint(DomainName.coerce(name), host, port)
