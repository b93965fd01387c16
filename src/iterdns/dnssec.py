from __future__ import annotations

import hashlib
import logging
from base64 import b32hexdecode, b32hexencode
from collections import defaultdict
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

import dns.dnssec
import dns.exception
import dns.name
import dns.rdata
import dns.rrset

from .message import Question
from .name import DomainName
from .records import DNSKEY, NSEC, NSEC3, RRSIG, RRType, ResourceRecord, encode_rdata, type_text
from .wire import WireWriter

"""DNSSEC helpers: denial-of-existence checks and RRSIG verification.

Brief:
  The resolver hands the records of a final response, plus the DNSKEYs of the
  signing zones, to a Verifier and reports the resulting DnssecStatus. Chain
  of trust construction is out of scope; DnspythonVerifier only checks that
  each signed RRset verifies against the supplied keys.

  The NSEC/NSEC3 helpers check whether one denial record covers a question.
  They return None on success and a short reason string otherwise.
"""

logger = logging.getLogger(__name__)

UnverifiedReason = str

NSEC3_SHA1 = 1


class DnssecStatus(str, Enum):
    SECURE = "secure"
    INSECURE = "insecure"
    BOGUS = "bogus"
    INDETERMINATE = "indeterminate"


class Verifier(Protocol):
    """Protocol for verifying the records of a response.

    Inputs:
      - records: Records of the final response (answer and authority).
      - keys: DNSKEY records of the zones that signed them.

    Outputs:
      - DnssecStatus
    """

    def verify(
        self, records: Sequence[ResourceRecord], keys: Sequence[ResourceRecord]
    ) -> DnssecStatus:
        ...


# Denial of existence -------------------------------------------------------


def nsec_matches(
    name: Union[DomainName, str],
    owner: Union[DomainName, str],
    next_name: Union[DomainName, str],
) -> bool:
    """Brief: True when `name` falls strictly between owner and next_name.

    Inputs:
      - name: Name being tested.
      - owner: NSEC owner name.
      - next_name: NSEC next domain name.

    Outputs:
      - bool using RFC 4034 canonical ordering. When next_name does not sort
        after owner the record is the last of its zone and next_name is the
        apex; it then covers names after owner that lie inside the apex.
    """

    name = DomainName.coerce(name)
    owner = DomainName.coerce(owner)
    next_name = DomainName.coerce(next_name)
    if owner < next_name:
        return owner < name < next_name
    return owner < name and name.is_subdomain_of(next_name)


def verify_nsec(record: ResourceRecord, question: Question) -> Optional[UnverifiedReason]:
    """Brief: Check that an NSEC record denies `question`.

    Inputs:
      - record: NSEC ResourceRecord.
      - question: Question whose name or type should not exist.

    Outputs:
      - None when the record proves the name absent, or the name present
        without the queried type; otherwise a reason string.
    """

    nsec = record.payload
    if not isinstance(nsec, NSEC):
        return f"{record.name} {type_text(record.rrtype)} is not an NSEC record"
    if record.name == question.name and question.qtype not in nsec.types:
        return None
    if nsec_matches(question.name, record.name, nsec.next_name):
        return None
    return f"NSEC {record.name} -> {nsec.next_name} does not cover {question.to_text()}"


def nsec3_hash(name_wire: bytes, salt: bytes, iterations: int) -> bytes:
    """Brief: Iterated SHA-1 hash of RFC 5155 section 5.

    Inputs:
      - name_wire: Canonical (lower-case, uncompressed) wire form of the name.
      - salt: NSEC3 salt.
      - iterations: Additional iterations after the first hash.

    Outputs:
      - 20-byte digest.
    """

    digest = bytes(name_wire)
    for _ in range(int(iterations) + 1):
        digest = hashlib.sha1(digest + bytes(salt)).digest()
    return digest


def verify_nsec3(
    zone: Union[DomainName, str], record: ResourceRecord, question: Question
) -> Optional[UnverifiedReason]:
    """Brief: Check that an NSEC3 record of `zone` denies `question`.

    Inputs:
      - zone: Apex of the zone holding the NSEC3 chain.
      - record: NSEC3 ResourceRecord.
      - question: Question whose name or type should not exist.

    Outputs:
      - None when the hashed name matches the owner without the queried type,
        or falls strictly inside the owner..next interval; otherwise a
        reason string.
    """

    zone = DomainName.coerce(zone)
    nsec3 = record.payload
    if not isinstance(nsec3, NSEC3):
        return f"{record.name} {type_text(record.rrtype)} is not an NSEC3 record"
    if nsec3.hash_algorithm != NSEC3_SHA1:
        return f"unsupported NSEC3 hash algorithm {nsec3.hash_algorithm}"

    hashed = nsec3_hash(question.name.canonical_wire(), nsec3.salt, nsec3.iterations)
    label = b32hexencode(hashed).decode("ascii").rstrip("=")
    if record.name == zone.prepend(label):
        if question.qtype in nsec3.types:
            return f"NSEC3 {record.name} lists {type_text(question.qtype)} for {question.name}"
        return None

    try:
        owner_hash = _decode_hash_label(record.name.labels[0])
    except (IndexError, ValueError):
        return f"NSEC3 owner {record.name} is not a hashed name"
    next_hash = nsec3.next_hashed
    if owner_hash < next_hash:
        covered = owner_hash < hashed < next_hash
    else:
        covered = hashed > owner_hash or hashed < next_hash
    if covered:
        return None
    return f"NSEC3 {record.name} does not cover {question.to_text()}"


def _decode_hash_label(label: bytes) -> bytes:
    text = label.decode("ascii").upper()
    return b32hexdecode(text + "=" * (-len(text) % 8))


# Conversions to dnspython --------------------------------------------------


def to_dns_name(name: DomainName) -> dns.name.Name:
    return dns.name.Name(name.labels + (b"",))


def rdata_wire(rr: ResourceRecord) -> bytes:
    writer = WireWriter()
    encode_rdata(rr.rrtype, rr.payload, writer)
    return writer.getvalue()


def to_dns_rdata(rr: ResourceRecord) -> dns.rdata.Rdata:
    wire = rdata_wire(rr)
    return dns.rdata.from_wire(int(rr.rrclass), int(rr.rrtype), wire, 0, len(wire))


def to_dns_rrset(records: Sequence[ResourceRecord]) -> dns.rrset.RRset:
    first = records[0]
    ttl = min(rr.ttl for rr in records)
    return dns.rrset.from_rdata_list(to_dns_name(first.name), ttl, [to_dns_rdata(rr) for rr in records])


def ds_digest(owner: Union[DomainName, str], dnskey: ResourceRecord, digest_type: int) -> bytes:
    """Brief: DS digest of a DNSKEY record (RFC 4034 section 5.1.4).

    Inputs:
      - owner: Owner name of the DNSKEY.
      - dnskey: DNSKEY ResourceRecord.
      - digest_type: 1 (SHA-1), 2 (SHA-256) or 4 (SHA-384).

    Outputs:
      - Digest bytes, comparable to DS.digest.
    """

    if not isinstance(dnskey.payload, DNSKEY):
        raise ValueError("ds_digest needs a DNSKEY record")
    ds = dns.dnssec.make_ds(
        to_dns_name(DomainName.coerce(owner)), to_dns_rdata(dnskey), int(digest_type)
    )
    return ds.digest


# Verification --------------------------------------------------------------


class DnspythonVerifier:
    """Verifier backed by dns.dnssec.validate (cryptography under the hood).

    Inputs (constructor):
      - now: Optional fixed POSIX time used for signature validity windows;
        tests pin it, production leaves it as None (current time).

    Outputs:
      - Verifier instance.

    Notes:
      - No RRSIG among the records gives INSECURE.
      - A signed RRset whose signer has no key among `keys` gives
        INDETERMINATE unless another RRset is BOGUS.
      - Any signed RRset that fails validation gives BOGUS.
    """

    def __init__(self, now: Optional[float] = None) -> None:
        self._now = now

    def verify(
        self, records: Sequence[ResourceRecord], keys: Sequence[ResourceRecord]
    ) -> DnssecStatus:
        rrsets: Dict[Tuple[DomainName, int, int], List[ResourceRecord]] = defaultdict(list)
        sigs: Dict[Tuple[DomainName, int, int], List[ResourceRecord]] = defaultdict(list)
        for rr in records:
            if rr.rrtype == RRType.RRSIG and isinstance(rr.payload, RRSIG):
                sigs[(rr.name, int(rr.payload.type_covered), int(rr.rrclass))].append(rr)
            else:
                rrsets[rr.key].append(rr)
        if not sigs:
            return DnssecStatus.INSECURE

        key_sets = self._key_sets(keys)
        status = DnssecStatus.SECURE
        for key, signatures in sigs.items():
            rrset = rrsets.get(key)
            if not rrset:
                continue
            signers = {sig.payload.signer for sig in signatures}
            if not any(signer in key_sets for signer in signers):
                logger.debug("no DNSKEY for signer(s) of %s %s", key[0], type_text(key[1]))
                status = DnssecStatus.INDETERMINATE
                continue
            try:
                dns.dnssec.validate(
                    to_dns_rrset(rrset),
                    to_dns_rrset(signatures),
                    {to_dns_name(name): krs for name, krs in key_sets.items()},
                    now=self._now,
                )
            except dns.dnssec.ValidationFailure as exc:
                logger.warning("DNSSEC validation failed for %s %s: %s", key[0], type_text(key[1]), exc)
                return DnssecStatus.BOGUS
            except dns.exception.DNSException as exc:
                logger.warning("could not validate %s %s: %s", key[0], type_text(key[1]), exc)
                return DnssecStatus.BOGUS
        return status

    @staticmethod
    def _key_sets(keys: Iterable[ResourceRecord]) -> Dict[DomainName, dns.rrset.RRset]:
        grouped: Dict[DomainName, List[ResourceRecord]] = defaultdict(list)
        for rr in keys:
            if rr.rrtype == RRType.DNSKEY and isinstance(rr.payload, DNSKEY):
                grouped[rr.name].append(rr)
        return {name: to_dns_rrset(rrs) for name, rrs in grouped.items()}


__all__ = [
    "DnspythonVerifier",
    "DnssecStatus",
    "UnverifiedReason",
    "Verifier",
    "ds_digest",
    "nsec3_hash",
    "nsec_matches",
    "verify_nsec",
    "verify_nsec3",
]
