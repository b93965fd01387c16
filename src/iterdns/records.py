"""Resource records and the RDATA type registry.

Brief:
  A ResourceRecord carries an owner name, numeric type and class, TTL and a
  payload. Payloads are small frozen dataclasses; which one a record holds is
  decided by the record type through REGISTRY, a map from type code to the
  decode/encode functions for that code. Types absent from the registry
  decode to Opaque and round-trip byte for byte.

Inputs:
  - WireReader positioned at RDATA (decode) or a payload (encode).

Outputs:
  - Payload instances and ResourceRecord values.
"""

from __future__ import annotations

import base64
import dataclasses
import ipaddress
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, ClassVar, Dict, Optional, Sequence, Tuple, Union

from .errors import MalformedRecordError
from .name import DomainName
from .wire import WireReader, WireWriter

MAX_TTL = 0xFFFFFFFF


class RRType(IntEnum):
    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    HINFO = 13
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    NAPTR = 35
    DNAME = 39
    OPT = 41
    DS = 43
    SSHFP = 44
    RRSIG = 46
    NSEC = 47
    DNSKEY = 48
    NSEC3 = 50
    NSEC3PARAM = 51
    TLSA = 52
    CDS = 59
    CDNSKEY = 60
    SVCB = 64
    HTTPS = 65
    CAA = 257
    IXFR = 251
    AXFR = 252
    ANY = 255


class RRClass(IntEnum):
    IN = 1
    CH = 3
    HS = 4
    NONE = 254
    ANY = 255


def rrtype_of(value: Union[int, str]) -> int:
    """Brief: Normalize a type given as int, mnemonic or 'TYPEnnn'.

    Inputs:
      - value: 1, 'A', 'aaaa', 'TYPE65534', ...

    Outputs:
      - RRType member when known, else the plain int code.
    """

    if isinstance(value, str):
        text = value.strip().upper()
        if text in RRType.__members__:
            return RRType[text]
        if text.startswith("TYPE") and text[4:].isdigit():
            value = int(text[4:])
        else:
            raise ValueError(f"unknown record type {value!r}")
    code = int(value)
    if not 0 <= code <= 0xFFFF:
        raise ValueError(f"record type {code} out of range")
    try:
        return RRType(code)
    except ValueError:
        return code


def rrclass_of(value: Union[int, str]) -> int:
    if isinstance(value, str):
        text = value.strip().upper()
        if text in RRClass.__members__:
            return RRClass[text]
        if text.startswith("CLASS") and text[5:].isdigit():
            value = int(text[5:])
        else:
            raise ValueError(f"unknown record class {value!r}")
    code = int(value)
    if not 0 <= code <= 0xFFFF:
        raise ValueError(f"record class {code} out of range")
    try:
        return RRClass(code)
    except ValueError:
        return code


def type_text(code: int) -> str:
    try:
        return RRType(code).name
    except ValueError:
        return f"TYPE{int(code)}"


def class_text(code: int) -> str:
    try:
        return RRClass(code).name
    except ValueError:
        return f"CLASS{int(code)}"


# Payload variants ----------------------------------------------------------


@dataclass(frozen=True)
class Address:
    """A or AAAA payload. Accepts text or an ipaddress object."""

    address: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

    def __post_init__(self) -> None:
        if isinstance(self.address, (str, bytes, int)):
            object.__setattr__(self, "address", ipaddress.ip_address(self.address))

    @property
    def packed(self) -> bytes:
        return self.address.packed

    def to_text(self) -> str:
        return str(self.address)


@dataclass(frozen=True)
class NameTarget:
    """NS, CNAME, PTR and DNAME payload: a single domain name."""

    target: DomainName

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", DomainName.coerce(self.target))

    def to_text(self) -> str:
        return str(self.target)


@dataclass(frozen=True)
class MX:
    preference: int
    exchange: DomainName

    def __post_init__(self) -> None:
        object.__setattr__(self, "exchange", DomainName.coerce(self.exchange))

    def to_text(self) -> str:
        return f"{self.preference} {self.exchange}"


@dataclass(frozen=True)
class SRV:
    priority: int
    weight: int
    port: int
    target: DomainName

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", DomainName.coerce(self.target))

    def to_text(self) -> str:
        return f"{self.priority} {self.weight} {self.port} {self.target}"


@dataclass(frozen=True)
class SOA:
    mname: DomainName
    rname: DomainName
    serial: int
    refresh: int
    retry: int
    expire: int
    minimum: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "mname", DomainName.coerce(self.mname))
        object.__setattr__(self, "rname", DomainName.coerce(self.rname))

    def to_text(self) -> str:
        return (
            f"{self.mname} {self.rname} {self.serial} {self.refresh} "
            f"{self.retry} {self.expire} {self.minimum}"
        )


@dataclass(frozen=True)
class TXT:
    """Ordered character-strings, each at most 255 octets."""

    strings: Tuple[bytes, ...]

    def __post_init__(self) -> None:
        strings = tuple(
            s.encode("utf-8") if isinstance(s, str) else bytes(s) for s in self.strings
        )
        for s in strings:
            if len(s) > 255:
                raise ValueError("TXT character-string longer than 255 octets")
        object.__setattr__(self, "strings", strings)

    @property
    def text(self) -> str:
        """Strings decoded and joined, the way most TXT consumers read them."""

        return "".join(s.decode("utf-8", errors="replace") for s in self.strings)

    def to_text(self) -> str:
        return " ".join(_quote(s) for s in self.strings)


@dataclass(frozen=True)
class OPT:
    """EDNS options as (code, data) pairs; header fields live on the record."""

    options: Tuple[Tuple[int, bytes], ...] = ()

    def to_text(self) -> str:
        return " ".join(f"{code}:{data.hex()}" for code, data in self.options)


@dataclass(frozen=True)
class DNSKEY:
    FLAG_SECURE_ENTRY_POINT: ClassVar[int] = 0x0001
    FLAG_REVOKE: ClassVar[int] = 0x0080
    FLAG_ZONE: ClassVar[int] = 0x0100
    PROTOCOL_RFC4034: ClassVar[int] = 3

    flags: int
    protocol: int
    algorithm: int
    key: bytes
    key_tag: int = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "key_tag", _key_tag(self))

    @property
    def is_zone_key(self) -> bool:
        return bool(self.flags & self.FLAG_ZONE)

    @property
    def is_secure_entry_point(self) -> bool:
        return bool(self.flags & self.FLAG_SECURE_ENTRY_POINT)

    @property
    def rdata(self) -> bytes:
        return (
            self.flags.to_bytes(2, "big")
            + bytes((self.protocol, self.algorithm))
            + self.key
        )

    def to_text(self) -> str:
        key = base64.b64encode(self.key).decode("ascii")
        return f"{self.flags} {self.protocol} {self.algorithm} {key}"


@dataclass(frozen=True)
class DS:
    key_tag: int
    algorithm: int
    digest_type: int
    digest: bytes

    def to_text(self) -> str:
        return f"{self.key_tag} {self.algorithm} {self.digest_type} {self.digest.hex().upper()}"


@dataclass(frozen=True)
class RRSIG:
    type_covered: int
    algorithm: int
    labels: int
    original_ttl: int
    expiration: int
    inception: int
    key_tag: int
    signer: DomainName
    signature: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "signer", DomainName.coerce(self.signer))

    def to_text(self) -> str:
        sig = base64.b64encode(self.signature).decode("ascii")
        return (
            f"{type_text(self.type_covered)} {self.algorithm} {self.labels} "
            f"{self.original_ttl} {self.expiration} {self.inception} "
            f"{self.key_tag} {self.signer} {sig}"
        )


@dataclass(frozen=True)
class NSEC:
    next_name: DomainName
    types: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "next_name", DomainName.coerce(self.next_name))
        object.__setattr__(self, "types", tuple(sorted({rrtype_of(t) for t in self.types})))

    def to_text(self) -> str:
        return " ".join([str(self.next_name)] + [type_text(t) for t in self.types])


@dataclass(frozen=True)
class NSEC3:
    HASH_SHA1: ClassVar[int] = 1
    FLAG_OPT_OUT: ClassVar[int] = 0x01

    hash_algorithm: int
    flags: int
    iterations: int
    salt: bytes
    next_hashed: bytes
    types: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", tuple(sorted({rrtype_of(t) for t in self.types})))

    @property
    def next_hashed_base32(self) -> str:
        return base64.b32hexencode(self.next_hashed).decode("ascii").rstrip("=")

    def to_text(self) -> str:
        salt = self.salt.hex().upper() or "-"
        parts = [
            str(self.hash_algorithm),
            str(self.flags),
            str(self.iterations),
            salt,
            self.next_hashed_base32,
        ]
        return " ".join(parts + [type_text(t) for t in self.types])


@dataclass(frozen=True)
class NSEC3PARAM:
    hash_algorithm: int
    flags: int
    iterations: int
    salt: bytes

    def to_text(self) -> str:
        return f"{self.hash_algorithm} {self.flags} {self.iterations} {self.salt.hex().upper() or '-'}"


@dataclass(frozen=True)
class Opaque:
    """RDATA of a type without a registered codec (RFC 3597)."""

    data: bytes

    def to_text(self) -> str:
        return f"\\# {len(self.data)} {self.data.hex()}".rstrip()


Payload = Union[
    Address, NameTarget, MX, SRV, SOA, TXT, OPT, DNSKEY, DS, RRSIG, NSEC, NSEC3, NSEC3PARAM, Opaque
]


# Registry ------------------------------------------------------------------


@dataclass(frozen=True)
class RecordType:
    """Codec entry for one record type.

    Inputs:
      - code: 16-bit type code.
      - mnemonic: Presentation name.
      - payload: Payload class produced by decode.
      - decode: (reader, rdlength) -> payload; the reader is bounded to the
        RDATA region but sees the whole message for compression pointers.
      - encode: (payload, writer) -> None.
      - compress: Whether names in RDATA may be compressed on output. Only the
        RFC 1035 types may be, see RFC 3597 section 4.
    """

    code: int
    mnemonic: str
    payload: type
    decode: Callable[[WireReader, int], Payload]
    encode: Callable[[Payload, WireWriter, bool], None]
    compress: bool = False


REGISTRY: Dict[int, RecordType] = {}


def register(record_type: RecordType) -> None:
    REGISTRY[int(record_type.code)] = record_type


def lookup(code: int) -> Optional[RecordType]:
    return REGISTRY.get(int(code))


def decode_rdata(rrtype: int, reader: WireReader, rdlength: int) -> Payload:
    """Brief: Decode RDATA of `rdlength` octets at the reader's cursor.

    Inputs:
      - rrtype: Record type code selecting the codec.
      - reader: Reader over the enclosing message.
      - rdlength: Declared RDLENGTH.

    Outputs:
      - Payload; MalformedRecordError when the data does not fit the type.
    """

    entry = lookup(rrtype)
    with reader.bounded(rdlength):
        if entry is None:
            return Opaque(reader.read_rest())
        return entry.decode(reader, rdlength)


def encode_rdata(rrtype: int, payload: Payload, writer: WireWriter) -> None:
    if isinstance(payload, Opaque):
        writer.write(payload.data)
        return
    entry = lookup(rrtype)
    if entry is None or not isinstance(payload, entry.payload):
        raise MalformedRecordError(
            f"{type(payload).__name__} payload cannot be encoded as {type_text(rrtype)}"
        )
    entry.encode(payload, writer, entry.compress)


def _fixed_length(name: str, rdlength: int, expected: int) -> None:
    if rdlength != expected:
        raise MalformedRecordError(f"{name} record must be {expected} octets, got {rdlength}")


def _min_length(name: str, rdlength: int, minimum: int) -> None:
    if rdlength < minimum:
        raise MalformedRecordError(
            f"{name} record needs at least {minimum} octets, got {rdlength}"
        )


def _decode_a(reader: WireReader, rdlength: int) -> Address:
    _fixed_length("A", rdlength, 4)
    return Address(ipaddress.IPv4Address(reader.read(4)))


def _decode_aaaa(reader: WireReader, rdlength: int) -> Address:
    _fixed_length("AAAA", rdlength, 16)
    return Address(ipaddress.IPv6Address(reader.read(16)))


def _encode_a(payload: Address, writer: WireWriter, compress: bool) -> None:
    if payload.address.version != 4:
        raise MalformedRecordError("A record requires an IPv4 address")
    writer.write(payload.packed)


def _encode_aaaa(payload: Address, writer: WireWriter, compress: bool) -> None:
    if payload.address.version != 6:
        raise MalformedRecordError("AAAA record requires an IPv6 address")
    writer.write(payload.packed)


def _decode_name_target(reader: WireReader, rdlength: int) -> NameTarget:
    return NameTarget(DomainName.from_wire(reader))


def _encode_name_target(payload: NameTarget, writer: WireWriter, compress: bool) -> None:
    payload.target.to_wire(writer, compress)


def _decode_mx(reader: WireReader, rdlength: int) -> MX:
    _min_length("MX", rdlength, 3)
    return MX(reader.u16(), DomainName.from_wire(reader))


def _encode_mx(payload: MX, writer: WireWriter, compress: bool) -> None:
    writer.u16(payload.preference)
    payload.exchange.to_wire(writer, compress)


def _decode_srv(reader: WireReader, rdlength: int) -> SRV:
    _min_length("SRV", rdlength, 7)
    return SRV(reader.u16(), reader.u16(), reader.u16(), DomainName.from_wire(reader))


def _encode_srv(payload: SRV, writer: WireWriter, compress: bool) -> None:
    writer.u16(payload.priority)
    writer.u16(payload.weight)
    writer.u16(payload.port)
    payload.target.to_wire(writer, compress)


def _decode_soa(reader: WireReader, rdlength: int) -> SOA:
    _min_length("SOA", rdlength, 22)
    mname = DomainName.from_wire(reader)
    rname = DomainName.from_wire(reader)
    return SOA(mname, rname, reader.u32(), reader.u32(), reader.u32(), reader.u32(), reader.u32())


def _encode_soa(payload: SOA, writer: WireWriter, compress: bool) -> None:
    payload.mname.to_wire(writer, compress)
    payload.rname.to_wire(writer, compress)
    for value in (payload.serial, payload.refresh, payload.retry, payload.expire, payload.minimum):
        writer.u32(value)


def _decode_txt(reader: WireReader, rdlength: int) -> TXT:
    strings = []
    while reader.remaining():
        length = reader.u8("TXT length")
        strings.append(reader.read(length, "TXT character-string"))
    return TXT(tuple(strings))


def _encode_txt(payload: TXT, writer: WireWriter, compress: bool) -> None:
    for s in payload.strings:
        writer.u8(len(s))
        writer.write(s)


def _decode_opt(reader: WireReader, rdlength: int) -> OPT:
    options = []
    while reader.remaining():
        code = reader.u16("EDNS option code")
        length = reader.u16("EDNS option length")
        options.append((code, reader.read(length, "EDNS option data")))
    return OPT(tuple(options))


def _encode_opt(payload: OPT, writer: WireWriter, compress: bool) -> None:
    for code, data in payload.options:
        writer.u16(code)
        writer.u16(len(data))
        writer.write(data)


def _decode_dnskey(reader: WireReader, rdlength: int) -> DNSKEY:
    _min_length("DNSKEY", rdlength, 4)
    return DNSKEY(reader.u16(), reader.u8(), reader.u8(), reader.read_rest())


def _encode_dnskey(payload: DNSKEY, writer: WireWriter, compress: bool) -> None:
    writer.write(payload.rdata)


def _decode_ds(reader: WireReader, rdlength: int) -> DS:
    _min_length("DS", rdlength, 4)
    return DS(reader.u16(), reader.u8(), reader.u8(), reader.read_rest())


def _encode_ds(payload: DS, writer: WireWriter, compress: bool) -> None:
    writer.u16(payload.key_tag)
    writer.u8(payload.algorithm)
    writer.u8(payload.digest_type)
    writer.write(payload.digest)


def _decode_rrsig(reader: WireReader, rdlength: int) -> RRSIG:
    _min_length("RRSIG", rdlength, 19)
    return RRSIG(
        type_covered=rrtype_of(reader.u16()),
        algorithm=reader.u8(),
        labels=reader.u8(),
        original_ttl=reader.u32(),
        expiration=reader.u32(),
        inception=reader.u32(),
        key_tag=reader.u16(),
        signer=DomainName.from_wire(reader),
        signature=reader.read_rest(),
    )


def _encode_rrsig(payload: RRSIG, writer: WireWriter, compress: bool) -> None:
    writer.u16(payload.type_covered)
    writer.u8(payload.algorithm)
    writer.u8(payload.labels)
    writer.u32(payload.original_ttl)
    writer.u32(payload.expiration)
    writer.u32(payload.inception)
    writer.u16(payload.key_tag)
    payload.signer.to_wire(writer, compress)
    writer.write(payload.signature)


def decode_type_bitmap(reader: WireReader) -> Tuple[int, ...]:
    """Brief: Read RFC 4034 window blocks until the end of the RDATA region."""

    types = []
    last_window = -1
    while reader.remaining():
        window = reader.u8("bitmap window")
        length = reader.u8("bitmap length")
        if window <= last_window or not 1 <= length <= 32:
            raise MalformedRecordError(f"bad type bitmap window {window} of length {length}")
        last_window = window
        bitmap = reader.read(length, "type bitmap")
        for index, octet in enumerate(bitmap):
            for bit in range(8):
                if octet & (0x80 >> bit):
                    types.append(window * 256 + index * 8 + bit)
    return tuple(types)


def encode_type_bitmap(types: Sequence[int], writer: WireWriter) -> None:
    windows: Dict[int, bytearray] = {}
    for code in sorted(set(int(t) for t in types)):
        window, low = divmod(code, 256)
        bitmap = windows.setdefault(window, bytearray())
        index = low // 8
        if len(bitmap) <= index:
            bitmap.extend(b"\x00" * (index + 1 - len(bitmap)))
        bitmap[index] |= 0x80 >> (low % 8)
    for window in sorted(windows):
        bitmap = windows[window]
        writer.u8(window)
        writer.u8(len(bitmap))
        writer.write(bytes(bitmap))


def _decode_nsec(reader: WireReader, rdlength: int) -> NSEC:
    next_name = DomainName.from_wire(reader)
    return NSEC(next_name, decode_type_bitmap(reader))


def _encode_nsec(payload: NSEC, writer: WireWriter, compress: bool) -> None:
    payload.next_name.to_wire(writer, compress)
    encode_type_bitmap(payload.types, writer)


def _decode_nsec3(reader: WireReader, rdlength: int) -> NSEC3:
    _min_length("NSEC3", rdlength, 6)
    algorithm = reader.u8()
    flags = reader.u8()
    iterations = reader.u16()
    salt = reader.read(reader.u8("salt length"), "salt")
    next_hashed = reader.read(reader.u8("hash length"), "next hashed owner")
    return NSEC3(algorithm, flags, iterations, salt, next_hashed, decode_type_bitmap(reader))


def _encode_nsec3(payload: NSEC3, writer: WireWriter, compress: bool) -> None:
    writer.u8(payload.hash_algorithm)
    writer.u8(payload.flags)
    writer.u16(payload.iterations)
    writer.u8(len(payload.salt))
    writer.write(payload.salt)
    writer.u8(len(payload.next_hashed))
    writer.write(payload.next_hashed)
    encode_type_bitmap(payload.types, writer)


def _decode_nsec3param(reader: WireReader, rdlength: int) -> NSEC3PARAM:
    _min_length("NSEC3PARAM", rdlength, 5)
    algorithm = reader.u8()
    flags = reader.u8()
    iterations = reader.u16()
    salt = reader.read(reader.u8("salt length"), "salt")
    return NSEC3PARAM(algorithm, flags, iterations, salt)


def _encode_nsec3param(payload: NSEC3PARAM, writer: WireWriter, compress: bool) -> None:
    writer.u8(payload.hash_algorithm)
    writer.u8(payload.flags)
    writer.u16(payload.iterations)
    writer.u8(len(payload.salt))
    writer.write(payload.salt)


for _entry in (
    RecordType(RRType.A, "A", Address, _decode_a, _encode_a),
    RecordType(RRType.AAAA, "AAAA", Address, _decode_aaaa, _encode_aaaa),
    RecordType(RRType.NS, "NS", NameTarget, _decode_name_target, _encode_name_target, True),
    RecordType(RRType.CNAME, "CNAME", NameTarget, _decode_name_target, _encode_name_target, True),
    RecordType(RRType.PTR, "PTR", NameTarget, _decode_name_target, _encode_name_target, True),
    RecordType(RRType.DNAME, "DNAME", NameTarget, _decode_name_target, _encode_name_target),
    RecordType(RRType.MX, "MX", MX, _decode_mx, _encode_mx, True),
    RecordType(RRType.SRV, "SRV", SRV, _decode_srv, _encode_srv),
    RecordType(RRType.SOA, "SOA", SOA, _decode_soa, _encode_soa, True),
    RecordType(RRType.TXT, "TXT", TXT, _decode_txt, _encode_txt),
    RecordType(RRType.OPT, "OPT", OPT, _decode_opt, _encode_opt),
    RecordType(RRType.DNSKEY, "DNSKEY", DNSKEY, _decode_dnskey, _encode_dnskey),
    RecordType(RRType.CDNSKEY, "CDNSKEY", DNSKEY, _decode_dnskey, _encode_dnskey),
    RecordType(RRType.DS, "DS", DS, _decode_ds, _encode_ds),
    RecordType(RRType.CDS, "CDS", DS, _decode_ds, _encode_ds),
    RecordType(RRType.RRSIG, "RRSIG", RRSIG, _decode_rrsig, _encode_rrsig),
    RecordType(RRType.NSEC, "NSEC", NSEC, _decode_nsec, _encode_nsec),
    RecordType(RRType.NSEC3, "NSEC3", NSEC3, _decode_nsec3, _encode_nsec3),
    RecordType(RRType.NSEC3PARAM, "NSEC3PARAM", NSEC3PARAM, _decode_nsec3param, _encode_nsec3param),
):
    register(_entry)


def _key_tag(key: DNSKEY) -> int:
    """Key tag per RFC 4034 appendix B."""

    if key.algorithm == 1:
        # RSA/MD5 keys use the top 16 of the low 24 bits of the modulus.
        return int.from_bytes(key.key[-3:-1], "big") if len(key.key) >= 3 else 0
    acc = 0
    for i, octet in enumerate(key.rdata):
        acc += octet if i & 1 else octet << 8
    acc += (acc >> 16) & 0xFFFF
    return acc & 0xFFFF


def _quote(data: bytes) -> str:
    out = []
    for octet in data:
        if octet in (0x22, 0x5C):
            out.append("\\" + chr(octet))
        elif 0x20 <= octet <= 0x7E:
            out.append(chr(octet))
        else:
            out.append(f"\\{octet:03d}")
    return '"' + "".join(out) + '"'


# Records -------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceRecord:
    """One resource record.

    Inputs:
      - name: Owner name (DomainName or text).
      - rrtype: Type code; known codes become RRType members.
      - rrclass: Class code. OPT records reuse this field for the UDP size.
      - ttl: 0..2**32-1 seconds.
      - payload: Payload matching rrtype, or Opaque.

    Outputs:
      - Immutable, hashable record.
    """

    name: DomainName
    rrtype: int
    rrclass: int
    ttl: int
    payload: Payload

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", DomainName.coerce(self.name))
        object.__setattr__(self, "rrtype", rrtype_of(self.rrtype))
        object.__setattr__(self, "rrclass", rrclass_of(self.rrclass))
        ttl = int(self.ttl)
        if not 0 <= ttl <= MAX_TTL:
            raise ValueError(f"TTL {ttl} out of range")
        object.__setattr__(self, "ttl", ttl)

    @property
    def key(self) -> Tuple[DomainName, int, int]:
        return (self.name, int(self.rrtype), int(self.rrclass))

    def with_ttl(self, ttl: int) -> "ResourceRecord":
        return dataclasses.replace(self, ttl=ttl)

    @classmethod
    def from_wire(cls, reader: WireReader) -> "ResourceRecord":
        name = DomainName.from_wire(reader)
        rrtype = reader.u16("record type")
        rrclass = reader.u16("record class")
        ttl = reader.u32("record TTL")
        rdlength = reader.u16("RDLENGTH")
        payload = decode_rdata(rrtype, reader, rdlength)
        return cls(name, rrtype, rrclass, ttl, payload)

    def to_wire(self, writer: WireWriter) -> None:
        self.name.to_wire(writer)
        writer.u16(self.rrtype)
        writer.u16(self.rrclass)
        writer.u32(self.ttl)
        length_at = writer.offset
        writer.u16(0)
        encode_rdata(self.rrtype, self.payload, writer)
        rdlength = writer.offset - length_at - 2
        if rdlength > 0xFFFF:
            raise MalformedRecordError(f"RDATA of {rdlength} octets does not fit RDLENGTH")
        writer.patch_u16(length_at, rdlength)

    def to_text(self) -> str:
        return (
            f"{self.name} {self.ttl} {class_text(self.rrclass)} "
            f"{type_text(self.rrtype)} {self.payload.to_text()}"
        )

    def __str__(self) -> str:
        return self.to_text()


def record(
    name: Union[DomainName, str],
    rrtype: Union[int, str],
    payload: Payload,
    ttl: int = 3600,
    rrclass: Union[int, str] = RRClass.IN,
) -> ResourceRecord:
    """Brief: Shorthand for ResourceRecord with IN class and a 1h TTL."""

    return ResourceRecord(DomainName.coerce(name), rrtype_of(rrtype), rrclass_of(rrclass), ttl, payload)


def a(name: Union[DomainName, str], address: str, ttl: int = 3600) -> ResourceRecord:
    return record(name, RRType.A, Address(address), ttl)


def aaaa(name: Union[DomainName, str], address: str, ttl: int = 3600) -> ResourceRecord:
    return record(name, RRType.AAAA, Address(address), ttl)


def ns(name: Union[DomainName, str], target: Union[DomainName, str], ttl: int = 3600) -> ResourceRecord:
    return record(name, RRType.NS, NameTarget(target), ttl)


def cname(name: Union[DomainName, str], target: Union[DomainName, str], ttl: int = 3600) -> ResourceRecord:
    return record(name, RRType.CNAME, NameTarget(target), ttl)


def soa(
    name: Union[DomainName, str],
    mname: Union[DomainName, str],
    rname: Union[DomainName, str],
    *,
    serial: int = 1,
    refresh: int = 3600,
    retry: int = 600,
    expire: int = 86400,
    minimum: int = 300,
    ttl: int = 3600,
) -> ResourceRecord:
    return record(name, RRType.SOA, SOA(mname, rname, serial, refresh, retry, expire, minimum), ttl)


__all__ = [
    "Address",
    "DNSKEY",
    "DS",
    "MX",
    "NSEC",
    "NSEC3",
    "NSEC3PARAM",
    "NameTarget",
    "OPT",
    "Opaque",
    "Payload",
    "REGISTRY",
    "RRClass",
    "RRSIG",
    "RRType",
    "RecordType",
    "ResourceRecord",
    "SOA",
    "SRV",
    "TXT",
    "a",
    "aaaa",
    "class_text",
    "cname",
    "decode_rdata",
    "encode_rdata",
    "lookup",
    "ns",
    "record",
    "register",
    "rrclass_of",
    "rrtype_of",
    "soa",
    "type_text",
]
