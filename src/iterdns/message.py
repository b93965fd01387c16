"""DNS message model and wire codec.

Brief:
  DnsMessage is an immutable view of one DNS message. Section counts are never
  stored; they are derived from the section tuples when encoding. The EDNS OPT
  pseudo-record is held separately as DnsMessage.edns and is synthesised as
  the last additional record on the wire.

  encode() writes every name in the message through a single compression table
  scoped to that call. decode() reads the header and the four sections in
  order and rejects structural damage: short buffers, bad names, reserved
  header bits, duplicate OPT records.

Example:
  >>> msg = MessageBuilder().set_id(42).add_question("www.example.com", "A").build()
  >>> decode(encode(msg)) == msg
  True
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .errors import FormatError, TruncatedMessageError
from .name import ROOT, DomainName
from .records import (
    OPT,
    RRClass,
    RRType,
    ResourceRecord,
    class_text,
    rrclass_of,
    rrtype_of,
    type_text,
)
from .wire import WireReader, WireWriter

HEADER_LENGTH = 12

_QR = 0x8000
_AA = 0x0400
_TC = 0x0200
_RD = 0x0100
_RA = 0x0080
_Z = 0x0040
_AD = 0x0020
_CD = 0x0010

_EDNS_DO = 0x8000


class Opcode(IntEnum):
    QUERY = 0
    IQUERY = 1
    STATUS = 2
    NOTIFY = 4
    UPDATE = 5


class Rcode(IntEnum):
    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5
    YXDOMAIN = 6
    YXRRSET = 7
    NXRRSET = 8
    NOTAUTH = 9
    NOTZONE = 10
    BADVERS = 16


def _enum_text(enum_cls, value: int) -> str:
    try:
        return enum_cls(value).name
    except ValueError:
        return str(int(value))


@dataclass(frozen=True)
class Question:
    """One entry of the question section."""

    name: DomainName
    qtype: int = RRType.A
    qclass: int = RRClass.IN

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", DomainName.coerce(self.name))
        object.__setattr__(self, "qtype", rrtype_of(self.qtype))
        object.__setattr__(self, "qclass", rrclass_of(self.qclass))

    @classmethod
    def from_wire(cls, reader: WireReader) -> "Question":
        name = DomainName.from_wire(reader)
        return cls(name, reader.u16("question type"), reader.u16("question class"))

    def to_wire(self, writer: WireWriter) -> None:
        self.name.to_wire(writer)
        writer.u16(self.qtype)
        writer.u16(self.qclass)

    def to_text(self) -> str:
        return f"{self.name} {class_text(self.qclass)} {type_text(self.qtype)}"


@dataclass(frozen=True)
class Edns:
    """EDNS(0) parameters carried by the OPT pseudo-record (RFC 6891).

    Inputs:
      - udp_payload_size: Advertised UDP payload size (OPT CLASS field).
      - extended_rcode: Upper 8 bits of the 12-bit rcode. Inside a DnsMessage
        this always mirrors DnsMessage.rcode.
      - version: EDNS version.
      - dnssec_ok: DO flag.
      - options: (code, data) pairs.
    """

    udp_payload_size: int = 4096
    extended_rcode: int = 0
    version: int = 0
    dnssec_ok: bool = False
    options: Tuple[Tuple[int, bytes], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "options", tuple((int(code), bytes(data)) for code, data in self.options)
        )

    @property
    def flags(self) -> int:
        return _EDNS_DO if self.dnssec_ok else 0

    def to_record(self) -> ResourceRecord:
        ttl = (self.extended_rcode & 0xFF) << 24 | (self.version & 0xFF) << 16 | self.flags
        return ResourceRecord(ROOT, RRType.OPT, self.udp_payload_size, ttl, OPT(self.options))

    @classmethod
    def from_record(cls, rr: ResourceRecord) -> "Edns":
        """Brief: Build Edns from a decoded OPT record.

        Inputs:
          - rr: ResourceRecord of type OPT.

        Outputs:
          - Edns; FormatError when the owner is not the root or the payload is
            not an OPT payload.
        """

        if not rr.name.is_root():
            raise FormatError(f"OPT record owner must be the root, got {rr.name}")
        if not isinstance(rr.payload, OPT):
            raise FormatError("OPT record carries a non-OPT payload")
        return cls(
            udp_payload_size=int(rr.rrclass),
            extended_rcode=(rr.ttl >> 24) & 0xFF,
            version=(rr.ttl >> 16) & 0xFF,
            dnssec_ok=bool(rr.ttl & _EDNS_DO),
            options=rr.payload.options,
        )

    def to_text(self) -> str:
        flags = "do" if self.dnssec_ok else ""
        return f"EDNS: version: {self.version}, flags: {flags}; udp: {self.udp_payload_size}"


@dataclass(frozen=True)
class DnsMessage:
    """Immutable DNS message.

    Inputs:
      - id: 16-bit transaction id.
      - qr, aa, tc, rd, ra, ad, cd: Header flags (all default False).
      - opcode: Opcode (default QUERY).
      - rcode: Full response code; values above 15 need EDNS.
      - questions, answers, authority, additional: Section contents in order.
        The additional section never holds the OPT record.
      - edns: Optional Edns parameters.

    Outputs:
      - Hashable message compared field by field.
    """

    id: int = 0
    qr: bool = False
    opcode: int = Opcode.QUERY
    aa: bool = False
    tc: bool = False
    rd: bool = False
    ra: bool = False
    ad: bool = False
    cd: bool = False
    rcode: int = Rcode.NOERROR
    questions: Tuple[Question, ...] = ()
    answers: Tuple[ResourceRecord, ...] = ()
    authority: Tuple[ResourceRecord, ...] = ()
    additional: Tuple[ResourceRecord, ...] = ()
    edns: Optional[Edns] = None

    def __post_init__(self) -> None:
        if not 0 <= int(self.id) <= 0xFFFF:
            raise ValueError(f"message id {self.id} out of range")
        if not 0 <= int(self.opcode) <= 15:
            raise ValueError(f"opcode {self.opcode} out of range")
        if not 0 <= int(self.rcode) <= 0xFFF:
            raise ValueError(f"rcode {self.rcode} out of range")
        if self.rcode > 15 and self.edns is None:
            raise ValueError("extended rcodes need an EDNS record")
        for attr in ("questions", "answers", "authority", "additional"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))
        if any(rr.rrtype == RRType.OPT for rr in self.additional):
            raise ValueError("OPT records belong in DnsMessage.edns, not the additional section")
        # Unassigned codes stay plain ints.
        try:
            object.__setattr__(self, "opcode", Opcode(self.opcode))
        except ValueError:
            pass
        try:
            object.__setattr__(self, "rcode", Rcode(self.rcode))
        except ValueError:
            pass
        if self.edns is not None and self.edns.extended_rcode != self.rcode >> 4:
            object.__setattr__(
                self, "edns", dataclasses.replace(self.edns, extended_rcode=self.rcode >> 4)
            )

    # Convenience -----------------------------------------------------------

    @property
    def question(self) -> Optional[Question]:
        return self.questions[0] if self.questions else None

    @property
    def flags(self) -> int:
        """The 16-bit header flags word as it appears on the wire."""

        word = (int(self.opcode) & 0xF) << 11 | (int(self.rcode) & 0xF)
        for bit, on in (
            (_QR, self.qr),
            (_AA, self.aa),
            (_TC, self.tc),
            (_RD, self.rd),
            (_RA, self.ra),
            (_AD, self.ad),
            (_CD, self.cd),
        ):
            if on:
                word |= bit
        return word

    def records(self) -> Iterable[ResourceRecord]:
        """All answer, authority and additional records, in wire order."""

        yield from self.answers
        yield from self.authority
        yield from self.additional

    def get_rrset(
        self,
        section: Sequence[ResourceRecord],
        name: Union[DomainName, str],
        rrtype: int,
        rrclass: int = RRClass.IN,
    ) -> List[ResourceRecord]:
        name = DomainName.coerce(name)
        return [
            rr
            for rr in section
            if rr.rrtype == rrtype and rr.rrclass == rrclass and rr.name == name
        ]

    def as_builder(self) -> "MessageBuilder":
        return MessageBuilder(self)

    def copy_with_id(self, new_id: int) -> "DnsMessage":
        return dataclasses.replace(self, id=new_id)

    def reply(self) -> "MessageBuilder":
        """Brief: Start a response to this query.

        Outputs:
          - MessageBuilder with qr set and id, opcode, rd, cd and questions copied.
        """

        builder = MessageBuilder()
        builder.set_id(self.id).set_qr(True).set_opcode(self.opcode)
        builder.set_rd(self.rd).set_cd(self.cd)
        for q in self.questions:
            builder.add_question(q)
        return builder

    def encode(self, max_size: Optional[int] = None) -> bytes:
        return encode(self, max_size=max_size)

    @classmethod
    def decode(cls, data: bytes) -> "DnsMessage":
        return decode(data)

    def to_text(self) -> str:
        flag_names = [
            name
            for name, on in (
                ("qr", self.qr),
                ("aa", self.aa),
                ("tc", self.tc),
                ("rd", self.rd),
                ("ra", self.ra),
                ("ad", self.ad),
                ("cd", self.cd),
            )
            if on
        ]
        additional_count = len(self.additional) + (1 if self.edns else 0)
        lines = [
            f";; ->>HEADER<<- opcode: {_enum_text(Opcode, self.opcode)}, "
            f"status: {_enum_text(Rcode, self.rcode)}, id: {self.id}",
            f";; flags: {' '.join(flag_names)}; QUERY: {len(self.questions)}, "
            f"ANSWER: {len(self.answers)}, AUTHORITY: {len(self.authority)}, "
            f"ADDITIONAL: {additional_count}",
        ]
        if self.edns is not None:
            lines += ["", ";; OPT PSEUDOSECTION:", "; " + self.edns.to_text()]
        if self.questions:
            lines += ["", ";; QUESTION SECTION:"]
            lines += [";" + q.to_text() for q in self.questions]
        for title, section in (
            ("ANSWER", self.answers),
            ("AUTHORITY", self.authority),
            ("ADDITIONAL", self.additional),
        ):
            if section:
                lines += ["", f";; {title} SECTION:"]
                lines += [rr.to_text() for rr in section]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_text()


class MessageBuilder:
    """Mutable builder for DnsMessage.

    Brief:
      Setters return the builder so calls can be chained. Adding an OPT record
      to the additional section sets the EDNS parameters instead; a second OPT
      record is rejected.

    Inputs:
      - template: Optional DnsMessage whose fields seed the builder.
    """

    def __init__(self, template: Optional[DnsMessage] = None) -> None:
        template = template or DnsMessage()
        self._fields = {
            f.name: getattr(template, f.name)
            for f in dataclasses.fields(DnsMessage)
            if f.name not in ("questions", "answers", "authority", "additional")
        }
        self.questions: List[Question] = list(template.questions)
        self.answers: List[ResourceRecord] = list(template.answers)
        self.authority: List[ResourceRecord] = list(template.authority)
        self.additional: List[ResourceRecord] = list(template.additional)

    def _set(self, field_name: str, value) -> "MessageBuilder":
        self._fields[field_name] = value
        return self

    def set_id(self, value: int) -> "MessageBuilder":
        return self._set("id", int(value))

    def set_qr(self, value: bool = True) -> "MessageBuilder":
        return self._set("qr", bool(value))

    def set_opcode(self, value: int) -> "MessageBuilder":
        return self._set("opcode", value)

    def set_aa(self, value: bool = True) -> "MessageBuilder":
        return self._set("aa", bool(value))

    def set_tc(self, value: bool = True) -> "MessageBuilder":
        return self._set("tc", bool(value))

    def set_rd(self, value: bool = True) -> "MessageBuilder":
        return self._set("rd", bool(value))

    def set_ra(self, value: bool = True) -> "MessageBuilder":
        return self._set("ra", bool(value))

    def set_ad(self, value: bool = True) -> "MessageBuilder":
        return self._set("ad", bool(value))

    def set_cd(self, value: bool = True) -> "MessageBuilder":
        return self._set("cd", bool(value))

    def set_rcode(self, value: int) -> "MessageBuilder":
        return self._set("rcode", value)

    def set_edns(
        self,
        udp_payload_size: int = 4096,
        *,
        dnssec_ok: bool = False,
        version: int = 0,
        options: Sequence[Tuple[int, bytes]] = (),
    ) -> "MessageBuilder":
        return self._set(
            "edns",
            Edns(
                udp_payload_size=udp_payload_size,
                version=version,
                dnssec_ok=dnssec_ok,
                options=tuple(options),
            ),
        )

    def clear_edns(self) -> "MessageBuilder":
        return self._set("edns", None)

    def add_question(
        self,
        name: Union[Question, DomainName, str],
        qtype: Union[int, str] = RRType.A,
        qclass: Union[int, str] = RRClass.IN,
    ) -> "MessageBuilder":
        if not isinstance(name, Question):
            name = Question(DomainName.coerce(name), rrtype_of(qtype), rrclass_of(qclass))
        self.questions.append(name)
        return self

    def add_answer(self, *records: ResourceRecord) -> "MessageBuilder":
        self.answers.extend(records)
        return self

    def add_authority(self, *records: ResourceRecord) -> "MessageBuilder":
        self.authority.extend(records)
        return self

    def add_additional(self, *records: ResourceRecord) -> "MessageBuilder":
        for rr in records:
            if rr.rrtype == RRType.OPT:
                if self._fields.get("edns") is not None:
                    raise FormatError("message already carries an OPT record")
                self._fields["edns"] = Edns.from_record(rr)
                continue
            self.additional.append(rr)
        return self

    def build(self) -> DnsMessage:
        return DnsMessage(
            questions=tuple(self.questions),
            answers=tuple(self.answers),
            authority=tuple(self.authority),
            additional=tuple(self.additional),
            **self._fields,
        )


def make_query(
    name: Union[DomainName, str],
    rrtype: Union[int, str] = RRType.A,
    rrclass: Union[int, str] = RRClass.IN,
    *,
    msg_id: int = 0,
    rd: bool = False,
    edns_udp_payload: Optional[int] = None,
    dnssec_ok: bool = False,
) -> DnsMessage:
    """Brief: Build a single-question query message.

    Inputs:
      - name, rrtype, rrclass: The question.
      - msg_id: Transaction id.
      - rd: Recursion desired (iterative resolvers leave it off).
      - edns_udp_payload: When set, attach EDNS with this payload size.
      - dnssec_ok: Set the EDNS DO bit (implies EDNS).

    Outputs:
      - DnsMessage.
    """

    builder = MessageBuilder().set_id(msg_id).set_rd(rd).add_question(name, rrtype, rrclass)
    if edns_udp_payload or dnssec_ok:
        builder.set_edns(edns_udp_payload or 1232, dnssec_ok=dnssec_ok)
    return builder.build()


def encode(message: DnsMessage, max_size: Optional[int] = None) -> bytes:
    """Brief: Serialize a message to wire format.

    Inputs:
      - message: DnsMessage to encode.
      - max_size: Optional size limit. Records that do not fit are dropped from
        the end (the OPT record is kept) and TC is set.

    Outputs:
      - bytes
    """

    writer = WireWriter()
    writer.write(b"\x00" * HEADER_LENGTH)
    for q in message.questions:
        q.to_wire(writer)

    opt_record = message.edns.to_record() if message.edns is not None else None
    budget = None
    if max_size is not None:
        opt_length = 11 + sum(4 + len(data) for _, data in message.edns.options) if opt_record else 0
        budget = max_size - opt_length
        if writer.offset > budget:
            raise ValueError(f"question section alone exceeds {max_size} octets")

    truncated = False
    counts = []
    for section in (message.answers, message.authority, message.additional):
        written = 0
        if not truncated:
            for rr in section:
                before = writer.offset
                rr.to_wire(writer)
                if budget is not None and writer.offset > budget:
                    writer.truncate(before)
                    truncated = True
                    break
                written += 1
        counts.append(written)

    if opt_record is not None:
        opt_record.to_wire(writer)
        counts[2] += 1

    flags = message.flags | (_TC if truncated else 0)
    writer.patch_u16(0, message.id)
    writer.patch_u16(2, flags)
    writer.patch_u16(4, len(message.questions))
    writer.patch_u16(6, counts[0])
    writer.patch_u16(8, counts[1])
    writer.patch_u16(10, counts[2])
    return writer.getvalue()


def decode(data: bytes) -> DnsMessage:
    """Brief: Parse a wire-format message.

    Inputs:
      - data: Complete message bytes (no TCP length prefix).

    Outputs:
      - DnsMessage.

    Raises:
      - TruncatedMessageError: buffer shorter than the header or the declared
        section counts.
      - FormatError: reserved Z bit set, bad names, duplicate or misplaced OPT.
      - MalformedRecordError: RDATA that does not fit its declared type.
    """

    if len(data) < HEADER_LENGTH:
        raise TruncatedMessageError(f"message of {len(data)} octets is shorter than the header")
    reader = WireReader(data)
    msg_id = reader.u16()
    flags = reader.u16()
    qdcount = reader.u16()
    ancount = reader.u16()
    nscount = reader.u16()
    arcount = reader.u16()
    if flags & _Z:
        raise FormatError("reserved Z header bit is set")

    questions = tuple(Question.from_wire(reader) for _ in range(qdcount))
    answers = tuple(ResourceRecord.from_wire(reader) for _ in range(ancount))
    authority = tuple(ResourceRecord.from_wire(reader) for _ in range(nscount))
    additional: List[ResourceRecord] = []
    edns: Optional[Edns] = None
    for _ in range(arcount):
        rr = ResourceRecord.from_wire(reader)
        if rr.rrtype == RRType.OPT:
            if edns is not None:
                raise FormatError("more than one OPT record")
            edns = Edns.from_record(rr)
            continue
        additional.append(rr)

    rcode = flags & 0xF
    if edns is not None:
        rcode |= edns.extended_rcode << 4
    return DnsMessage(
        id=msg_id,
        qr=bool(flags & _QR),
        opcode=(flags >> 11) & 0xF,
        aa=bool(flags & _AA),
        tc=bool(flags & _TC),
        rd=bool(flags & _RD),
        ra=bool(flags & _RA),
        ad=bool(flags & _AD),
        cd=bool(flags & _CD),
        rcode=rcode,
        questions=questions,
        answers=answers,
        authority=authority,
        additional=tuple(additional),
        edns=edns,
    )
