"""iterdns: DNS wire-format codec and iterative resolver."""

from .cache import ZoneCache
from .errors import (
    CnameChainTooLong,
    CompressionLoopError,
    DeadlineExceeded,
    DnsError,
    FormatError,
    LoopDetected,
    MalformedRecordError,
    NetworkError,
    ResolutionError,
    ResolutionFailed,
    TransportTimeout,
    TruncatedMessageError,
)
from .message import DnsMessage, Edns, MessageBuilder, Opcode, Question, Rcode, decode, encode, make_query
from .name import ROOT, DomainName
from .records import RRClass, RRType, ResourceRecord
from .resolver import ROOT_HINTS, DnsQueryResult, IterativeResolver, ResolverConfig
from .transport import AuthorityEndpoint, SocketTransport, Transport

__version__ = "0.1.0"

__all__ = [
    "AuthorityEndpoint",
    "CnameChainTooLong",
    "CompressionLoopError",
    "DeadlineExceeded",
    "DnsError",
    "DnsMessage",
    "DnsQueryResult",
    "DomainName",
    "Edns",
    "FormatError",
    "IterativeResolver",
    "LoopDetected",
    "MalformedRecordError",
    "MessageBuilder",
    "NetworkError",
    "Opcode",
    "Question",
    "ROOT",
    "ROOT_HINTS",
    "RRClass",
    "RRType",
    "Rcode",
    "ResolutionError",
    "ResolutionFailed",
    "ResolverConfig",
    "ResourceRecord",
    "SocketTransport",
    "Transport",
    "TransportTimeout",
    "TruncatedMessageError",
    "ZoneCache",
    "decode",
    "encode",
    "make_query",
]
