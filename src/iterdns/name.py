"""Domain names: parsing, presentation, comparison and wire encoding.

Brief:
  DomainName is an immutable sequence of raw labels. Case is preserved for
  output but ignored (ASCII letters only) for equality, hashing and ordering.
  Wire decoding follows compression pointers that must point strictly
  backward; wire encoding compresses through the WireWriter's table.

Example:
  >>> name = DomainName.parse("WWW.Example.com")
  >>> name == DomainName.parse("www.example.COM.")
  True
  >>> str(name.parent)
  'Example.com.'
"""

from __future__ import annotations

from typing import Iterable, Tuple, Union

from .errors import CompressionLoopError, FormatError
from .wire import MAX_POINTER_OFFSET, WireReader, WireWriter

MAX_LABEL_LENGTH = 63
MAX_NAME_LENGTH = 255

_POINTER_MASK = 0xC0


class DomainName:
    """Immutable domain name.

    Inputs:
      - labels: Iterable of raw label bytes, leftmost first, without the
        empty root label.

    Outputs:
      - DomainName instance; raises FormatError when a label is empty or
        longer than 63 octets, or the encoded name exceeds 255 octets.
    """

    __slots__ = ("_labels", "_folded", "_hash")

    def __init__(self, labels: Iterable[bytes] = ()) -> None:
        labels = tuple(bytes(label) for label in labels)
        total = 1
        for label in labels:
            if not label:
                raise FormatError("empty label inside domain name")
            if len(label) > MAX_LABEL_LENGTH:
                raise FormatError(
                    f"label of {len(label)} octets exceeds {MAX_LABEL_LENGTH}"
                )
            total += len(label) + 1
        if total > MAX_NAME_LENGTH:
            raise FormatError(f"name of {total} octets exceeds {MAX_NAME_LENGTH}")
        self._labels: Tuple[bytes, ...] = labels
        # bytes.lower() folds ASCII letters only.
        self._folded: Tuple[bytes, ...] = tuple(label.lower() for label in labels)
        self._hash = hash(self._folded)

    # Construction ----------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> "DomainName":
        """Brief: Parse presentation format, honouring \\. \\\\ and \\DDD escapes.

        Inputs:
          - text: Name such as 'www.example.com' or 'www.example.com.'; '.' and
            '' are the root.

        Outputs:
          - DomainName; FormatError on malformed escapes, empty interior
            labels, or length violations.
        """

        if text in ("", "."):
            return ROOT
        labels: list[bytes] = []
        current = bytearray()
        i = 0
        n = len(text)
        while i < n:
            ch = text[i]
            if ch == "\\":
                if i + 1 >= n:
                    raise FormatError(f"dangling escape in {text!r}")
                nxt = text[i + 1]
                if nxt.isdigit():
                    digits = text[i + 1 : i + 4]
                    if len(digits) != 3 or not digits.isdigit():
                        raise FormatError(f"bad decimal escape in {text!r}")
                    value = int(digits)
                    if value > 255:
                        raise FormatError(f"decimal escape out of range in {text!r}")
                    current.append(value)
                    i += 4
                    continue
                current += _encode_char(nxt)
                i += 2
                continue
            if ch == ".":
                if not current:
                    raise FormatError(f"empty label in {text!r}")
                labels.append(bytes(current))
                current = bytearray()
                i += 1
                continue
            current += _encode_char(ch)
            i += 1
        if current:
            labels.append(bytes(current))
        return cls(labels)

    from_text = parse

    @classmethod
    def coerce(cls, value: Union["DomainName", str, bytes]) -> "DomainName":
        """Accept a DomainName or anything parse() accepts."""

        if isinstance(value, DomainName):
            return value
        if isinstance(value, bytes):
            value = value.decode("ascii")
        return cls.parse(value)

    @classmethod
    def from_wire(cls, reader: WireReader) -> "DomainName":
        """Brief: Decode a possibly compressed name at the reader's cursor.

        Inputs:
          - reader: WireReader positioned at the first length octet.

        Outputs:
          - DomainName; the reader ends just past the terminating zero octet or
            the first compression pointer.

        Notes:
          - Every pointer must target an offset strictly before the start of
            the segment that contains it, which rules out self and forward
            references and therefore guarantees termination.
        """

        data = reader.data
        pos = reader.offset
        bound = reader.limit
        segment_start = pos
        jumped = False
        labels: list[bytes] = []
        total = 1
        while True:
            if pos >= bound:
                raise reader.overrun("domain name")
            length = data[pos]
            kind = length & _POINTER_MASK
            if kind == _POINTER_MASK:
                if pos + 1 >= bound:
                    raise reader.overrun("compression pointer")
                target = ((length & 0x3F) << 8) | data[pos + 1]
                if target >= segment_start:
                    raise CompressionLoopError(
                        f"compression pointer at {pos} targets {target}, not strictly backward"
                    )
                if not jumped:
                    reader.offset = pos + 2
                jumped = True
                pos = segment_start = target
                bound = len(data)
                continue
            if kind:
                raise FormatError(f"unsupported label type 0x{kind:02x} at offset {pos}")
            pos += 1
            if length == 0:
                break
            if pos + length > bound:
                raise reader.overrun("label")
            total += length + 1
            if total > MAX_NAME_LENGTH:
                raise FormatError(f"name exceeds {MAX_NAME_LENGTH} octets")
            labels.append(data[pos : pos + length])
            pos += length
        if not jumped:
            reader.offset = pos
        return cls(labels)

    # Encoding --------------------------------------------------------------

    def to_wire(self, writer: WireWriter, compress: bool = True) -> None:
        """Brief: Append this name, reusing earlier suffixes when allowed.

        Inputs:
          - writer: WireWriter owning the message's compression table.
          - compress: When False the name is written in full, though its
            suffixes are still registered for later names.

        Outputs:
          - None
        """

        labels = self._labels
        for i in range(len(labels)):
            suffix = labels[i:]
            if compress:
                target = writer.compression.get(suffix)
                if target is not None:
                    writer.u16(0xC000 | target)
                    return
            if writer.offset <= MAX_POINTER_OFFSET and suffix not in writer.compression:
                writer.compression[suffix] = writer.offset
            writer.u8(len(labels[i]))
            writer.write(labels[i])
        writer.u8(0)

    def to_bytes(self) -> bytes:
        """Uncompressed wire form, case preserved."""

        return b"".join(bytes((len(label),)) + label for label in self._labels) + b"\x00"

    def canonical_wire(self) -> bytes:
        """Uncompressed, lower-cased wire form (RFC 4034 section 6.2)."""

        return b"".join(bytes((len(label),)) + label for label in self._folded) + b"\x00"

    # Structure -------------------------------------------------------------

    @property
    def labels(self) -> Tuple[bytes, ...]:
        return self._labels

    @property
    def label_count(self) -> int:
        return len(self._labels)

    def is_root(self) -> bool:
        return not self._labels

    @property
    def parent(self) -> "DomainName":
        """The name with its leftmost label removed; the root is its own parent."""

        if not self._labels:
            return self
        return DomainName(self._labels[1:])

    def is_subdomain_of(self, other: "DomainName") -> bool:
        """True when self equals other or lies below it."""

        n = len(other._folded)
        if n > len(self._folded):
            return False
        return n == 0 or self._folded[-n:] == other._folded

    def is_strict_subdomain_of(self, other: "DomainName") -> bool:
        return len(self._folded) > len(other._folded) and self.is_subdomain_of(other)

    def prepend(self, label: Union[bytes, str]) -> "DomainName":
        if isinstance(label, str):
            label = label.encode("ascii")
        return DomainName((label,) + self._labels)

    def concat(self, origin: "DomainName") -> "DomainName":
        return DomainName(self._labels + origin._labels)

    def ancestors(self) -> Iterable["DomainName"]:
        """Yield self, then each parent, ending with the root."""

        for i in range(len(self._labels) + 1):
            yield DomainName(self._labels[i:])

    def canonical_key(self) -> Tuple[bytes, ...]:
        """Sort key giving RFC 4034 canonical ordering."""

        return tuple(reversed(self._folded))

    # Presentation ----------------------------------------------------------

    def to_text(self, omit_final_dot: bool = False) -> str:
        if not self._labels:
            return "."
        text = ".".join(_escape_label(label) for label in self._labels)
        return text if omit_final_dot else text + "."

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"DomainName({self.to_text()!r})"

    # Comparison ------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        # Text never compares equal; DomainName.parse() it first.
        if not isinstance(other, DomainName):
            return NotImplemented
        return self._folded == other._folded

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self) -> int:
        return self._hash

    def __lt__(self, other: "DomainName") -> bool:
        return self.canonical_key() < other.canonical_key()

    def __len__(self) -> int:
        return len(self._labels)


def _encode_char(ch: str) -> bytes:
    try:
        return ch.encode("ascii")
    except UnicodeEncodeError:
        return ch.encode("utf-8")


def _escape_label(label: bytes) -> str:
    out = []
    for octet in label:
        if octet in (0x2E, 0x5C):
            out.append("\\" + chr(octet))
        elif 0x21 <= octet <= 0x7E:
            out.append(chr(octet))
        else:
            out.append(f"\\{octet:03d}")
    return "".join(out)


ROOT = DomainName()
