"""Exception taxonomy for iterdns.

Brief:
  Wire-level failures derive from FormatError so callers that only care about
  "this message is broken" can catch one class. Resolution-level failures
  derive from ResolutionError and abort the whole query. NetworkError is
  per-server and is absorbed by the resolver.
"""

from __future__ import annotations


class DnsError(Exception):
    """Base class for every error raised by iterdns."""


class FormatError(DnsError):
    """Malformed wire data or presentation-format text."""


class CompressionLoopError(FormatError):
    """Compression pointer that does not point strictly backward."""


class MalformedRecordError(FormatError):
    """RDATA that does not fit the declared record type or length."""


class TruncatedMessageError(FormatError):
    """Buffer ended before the declared section counts were satisfied."""


class ResolutionError(DnsError):
    """Base class for errors that abort an iterative resolution."""


class LoopDetected(ResolutionError):
    """The same server was asked the same question twice in one resolution."""


class CnameChainTooLong(ResolutionError):
    """More CNAME indirections than the configured limit."""


class ResolutionFailed(ResolutionError):
    """Every candidate authority was exhausted without a usable answer."""


class DeadlineExceeded(ResolutionError, TimeoutError):
    """The overall resolution deadline passed."""


class NetworkError(DnsError):
    """A single authority could not be reached or did not answer.

    Inputs:
      - message: description, usually including host and port.
    """


class TransportTimeout(NetworkError):
    """A single send/receive attempt timed out."""
