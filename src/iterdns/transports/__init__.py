"""Socket-level DNS transports used to reach authority servers."""

from .tcp import TCPError, tcp_query
from .udp import UDPError, udp_query

__all__ = ["TCPError", "UDPError", "tcp_query", "udp_query"]
