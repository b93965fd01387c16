"""Low-level buffer helpers shared by the name, record and message codecs.

Brief:
  WireReader walks an immutable buffer with an optional upper limit so RDATA
  decoders cannot read past their declared RDLENGTH. WireWriter accumulates
  output plus the compression table for exactly one encode call.
"""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from .errors import DnsError, MalformedRecordError, TruncatedMessageError

# Compression pointers carry a 14-bit offset.
MAX_POINTER_OFFSET = 0x3FFF

_U16 = struct.Struct("!H")
_U32 = struct.Struct("!I")


class WireReader:
    """Cursor over a complete DNS message buffer.

    Inputs:
      - data: The whole message. Names inside RDATA may point anywhere in it.
      - offset: Starting position (default 0).

    Outputs:
      - Reader whose read helpers raise TruncatedMessageError at the end of the
        buffer, or MalformedRecordError at the end of a bounded RDATA region.
    """

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = bytes(data)
        self.offset = int(offset)
        self.limit = len(self.data)

    @property
    def in_rdata(self) -> bool:
        return self.limit < len(self.data)

    def remaining(self) -> int:
        return self.limit - self.offset

    def overrun(self, what: str) -> DnsError:
        """Brief: Build the error matching the current read region.

        Inputs:
          - what: Short description of the field being read.

        Outputs:
          - MalformedRecordError inside RDATA, TruncatedMessageError otherwise.
        """

        if self.in_rdata:
            return MalformedRecordError(f"{what} overruns record data at offset {self.offset}")
        return TruncatedMessageError(f"{what} overruns message at offset {self.offset}")

    def read(self, length: int, what: str = "field") -> bytes:
        end = self.offset + length
        if length < 0 or end > self.limit:
            raise self.overrun(what)
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def read_rest(self) -> bytes:
        return self.read(self.remaining(), "data")

    def u8(self, what: str = "octet") -> int:
        return self.read(1, what)[0]

    def u16(self, what: str = "16-bit field") -> int:
        return _U16.unpack(self.read(2, what))[0]

    def u32(self, what: str = "32-bit field") -> int:
        return _U32.unpack(self.read(4, what))[0]

    @contextmanager
    def bounded(self, length: int) -> Iterator[int]:
        """Brief: Restrict reads to the next `length` octets.

        Inputs:
          - length: Declared RDLENGTH.

        Outputs:
          - Yields the end offset. On exit the reader must sit exactly at the
            end, otherwise MalformedRecordError is raised. The outer limit is
            restored either way.
        """

        end = self.offset + length
        if end > self.limit:
            raise TruncatedMessageError(
                f"record data of {length} octets overruns message at offset {self.offset}"
            )
        saved = self.limit
        self.limit = end
        try:
            yield end
            if self.offset != end:
                raise MalformedRecordError(
                    f"record data has {end - self.offset} unparsed trailing octets"
                )
        finally:
            self.limit = saved


class WireWriter:
    """Output buffer plus name-compression table for one message encode.

    The compression table maps a suffix (tuple of raw labels) to the offset
    where that suffix was first written. Only offsets that fit the 14-bit
    pointer field are recorded.
    """

    def __init__(self) -> None:
        self.buf = bytearray()
        self.compression: Dict[Tuple[bytes, ...], int] = {}

    @property
    def offset(self) -> int:
        return len(self.buf)

    def write(self, data: bytes) -> None:
        self.buf += data

    def u8(self, value: int) -> None:
        self.buf.append(value & 0xFF)

    def u16(self, value: int) -> None:
        self.buf += _U16.pack(value & 0xFFFF)

    def u32(self, value: int) -> None:
        self.buf += _U32.pack(value & 0xFFFFFFFF)

    def patch_u16(self, position: int, value: int) -> None:
        _U16.pack_into(self.buf, position, value & 0xFFFF)

    def truncate(self, length: int) -> None:
        """Drop output past `length` and forget pointers into the dropped tail."""

        del self.buf[length:]
        self.compression = {k: v for k, v in self.compression.items() if v < length}

    def getvalue(self) -> bytes:
        return bytes(self.buf)
