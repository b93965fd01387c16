"""
Brief: Tests for iterdns.dnssec denial-of-existence checks and RRSIG verification.

Inputs:
  - None

Outputs:
  - None
"""

import base64
import hashlib

import dns.dnssec
import dns.name
import pytest
from cryptography.hazmat.primitives.asymmetric import ed25519

from iterdns.dnssec import (
    DnspythonVerifier,
    DnssecStatus,
    ds_digest,
    nsec3_hash,
    nsec_matches,
    to_dns_rrset,
    verify_nsec,
    verify_nsec3,
)
from iterdns.message import Question
from iterdns.name import DomainName
from iterdns.records import NSEC, NSEC3, RRType, ResourceRecord, a, decode_rdata, record
from iterdns.wire import WireReader

INCEPTION = 1_700_000_000
EXPIRATION = INCEPTION + 86400


@pytest.mark.parametrize(
    "name,owner,next_name,expected",
    [
        ("example.com", "com", "com", True),
        ("example.com", "e.com", "f.com", True),
        ("example.com", "be", "de", True),
        ("nsec.example.com", "example.com", "www.example.com", True),
        ("example.com", "a.com", "example.com", False),
        ("example.com", "example1.com", "example2.com", False),
        ("example.com", "test.com", "xxx.com", False),
        ("example.com", "xxx.com", "test.com", False),
        ("example.com", "aaa.com", "bbb.com", False),
        ("www.example.com", "example2.com", "example3.com", False),
        ("test.nsec.example.com", "nsec.example.com", "a.nsec.example.com", False),
        ("test.nsec.example.com", "test.nsec.example.com", "a.example.com", False),
        ("www.example.com", "example.com", "nsec.example.com", False),
        ("example.com", "nsec.example.com", "www.example.com", False),
    ],
)
def test_nsec_matches(name, owner, next_name, expected):
    assert nsec_matches(name, owner, next_name) is expected


def test_verify_nsec():
    """
    Brief: An NSEC record denies names it covers and types it does not list.

    Inputs:
      - None

    Outputs:
      - None: Asserts None for proofs and a reason otherwise
    """
    nsec = record(
        "example.com",
        "NSEC",
        NSEC("www.example.com", ["A", "NS", "SOA", "TXT", "AAAA", "RRSIG", "NSEC", "DNSKEY"]),
    )
    assert verify_nsec(nsec, Question("nsec.example.com", "A")) is None
    assert verify_nsec(nsec, Question("example.com", "PTR")) is None
    assert verify_nsec(nsec, Question("www.example.com", "A")) is not None
    assert verify_nsec(nsec, Question("example.com", "NS")) is not None
    assert verify_nsec(a("example.com", "192.0.2.1"), Question("x.example.com")) is not None


def test_nsec3_hash_vector():
    assert nsec3_hash(b"\x58", b"\x2a", 5).hex() == "6e8777855bcd60d7b45fc51893776dde75bf6cd4"


def test_nsec3_hash_without_iterations_is_plain_sha1():
    wire = DomainName.parse("x.net").canonical_wire()
    assert nsec3_hash(wire, b"", 0) == hashlib.sha1(wire).digest()


def test_verify_nsec3():
    """
    Brief: A hashed owner interval of .net covers x.net but not example.net.

    Inputs:
      - None

    Outputs:
      - None: Asserts coverage results
    """
    next_hashed = bytes(
        [
            0x3F, 0xB1, 0xD0, 0xAA, 0x27, 0xE2, 0x5F, 0xDA, 0x40, 0x75,
            0x92, 0x95, 0x5A, 0x1C, 0x7F, 0x98, 0xDB, 0x5B, 0x79, 0x91,
        ]
    )
    nsec3 = record(
        "7UO4LIHALHHLNGLJAFT7TBIQ6H1SL1CN.net",
        "NSEC3",
        NSEC3(1, 1, 0, b"", next_hashed, ["NS", "SOA", "RRSIG", "DNSKEY", "NSEC3PARAM"]),
    )
    assert verify_nsec3("net", nsec3, Question("x.net", "A")) is None
    assert verify_nsec3("net", nsec3, Question("example.net", "A")) is not None


def test_verify_nsec3_exact_owner_match():
    x_net = DomainName.parse("x.net")
    hashed = nsec3_hash(x_net.canonical_wire(), b"", 0)
    owner = base64.b32hexencode(hashed).decode("ascii").rstrip("=")
    nsec3 = record(f"{owner}.net", "NSEC3", NSEC3(1, 0, 0, b"", b"\xff" * 20, ["A", "RRSIG"]))
    assert verify_nsec3("net", nsec3, Question(x_net, "MX")) is None
    assert verify_nsec3("net", nsec3, Question(x_net, "A")) is not None


def test_verify_nsec3_rejects_unknown_algorithm():
    nsec3 = record("abc.net", "NSEC3", NSEC3(2, 0, 0, b"", b"\x00" * 20, []))
    assert "unsupported" in verify_nsec3("net", nsec3, Question("x.net"))


# Signature verification ----------------------------------------------------


def _from_dnspython(name, rdtype, rdata, ttl=3600) -> ResourceRecord:
    wire = rdata.to_wire()
    payload = decode_rdata(rdtype, WireReader(wire), len(wire))
    return ResourceRecord(DomainName.parse(name), rdtype, 1, ttl, payload)


@pytest.fixture
def signed_zone():
    """
    Brief: Ed25519 key for example. plus a signed A RRset.

    Inputs:
      - None

    Outputs:
      - dict with 'key', 'answers' (A records) and 'sig' (RRSIG record)
    """
    private_key = ed25519.Ed25519PrivateKey.generate()
    dnskey = dns.dnssec.make_dnskey(
        private_key.public_key(), dns.dnssec.Algorithm.ED25519, flags=257
    )
    answers = [a("www.example", "192.0.2.1"), a("www.example", "192.0.2.2")]
    rrsig = dns.dnssec.sign(
        to_dns_rrset(answers),
        private_key,
        dns.name.from_text("example."),
        dnskey,
        inception=INCEPTION,
        expiration=EXPIRATION,
    )
    return {
        "key": _from_dnspython("example.", RRType.DNSKEY, dnskey),
        "answers": answers,
        "sig": _from_dnspython("www.example.", RRType.RRSIG, rrsig),
    }


def test_signed_rrset_is_secure(signed_zone):
    verifier = DnspythonVerifier(now=INCEPTION + 100)
    records = signed_zone["answers"] + [signed_zone["sig"]]
    assert verifier.verify(records, [signed_zone["key"]]) == DnssecStatus.SECURE
    assert signed_zone["sig"].payload.key_tag == signed_zone["key"].payload.key_tag


def test_tampered_rrset_is_bogus(signed_zone):
    verifier = DnspythonVerifier(now=INCEPTION + 100)
    records = [a("www.example", "192.0.2.1"), a("www.example", "198.51.100.7"), signed_zone["sig"]]
    assert verifier.verify(records, [signed_zone["key"]]) == DnssecStatus.BOGUS


def test_expired_signature_is_bogus(signed_zone):
    verifier = DnspythonVerifier(now=EXPIRATION + 1)
    records = signed_zone["answers"] + [signed_zone["sig"]]
    assert verifier.verify(records, [signed_zone["key"]]) == DnssecStatus.BOGUS


def test_missing_key_is_indeterminate(signed_zone):
    verifier = DnspythonVerifier(now=INCEPTION + 100)
    records = signed_zone["answers"] + [signed_zone["sig"]]
    assert verifier.verify(records, []) == DnssecStatus.INDETERMINATE


def test_unsigned_records_are_insecure():
    verifier = DnspythonVerifier()
    assert verifier.verify([a("www.example", "192.0.2.1")], []) == DnssecStatus.INSECURE


def test_ds_digest_matches_rfc4034_definition(signed_zone):
    """
    Brief: SHA-256 DS digest is the hash of owner wire plus DNSKEY RDATA.

    Inputs:
      - signed_zone: fixture providing a DNSKEY record

    Outputs:
      - None: Asserts the digest bytes
    """
    key = signed_zone["key"]
    expected = hashlib.sha256(
        DomainName.parse("example.").canonical_wire() + key.payload.rdata
    ).digest()
    assert ds_digest("example.", key, 2) == expected
    with pytest.raises(ValueError):
        ds_digest("example.", a("example", "192.0.2.1"), 2)
