"""
Brief: Tests for iterdns.resolver.IterativeResolver against an in-memory zone world.

Inputs:
  - None

Outputs:
  - None
"""

import logging
from dataclasses import dataclass, field
from typing import List

import pytest

from iterdns.cache import ZoneCache
from iterdns.dnssec import DnssecStatus
from iterdns.errors import (
    CnameChainTooLong,
    DeadlineExceeded,
    LoopDetected,
    NetworkError,
    ResolutionFailed,
)
from iterdns.message import DnsMessage, Rcode, decode
from iterdns.name import ROOT, DomainName
from iterdns.records import (
    DNSKEY,
    RRSIG,
    RRType,
    ResourceRecord,
    a,
    cname,
    ns,
    record,
    soa,
    type_text,
)
from iterdns.resolver import IterativeResolver, ResolverConfig, follow_cnames
from iterdns.transport import AuthorityEndpoint

ROOT_HOST = "1.0.0.1"
TEST_ROOT_HINTS = (AuthorityEndpoint("root.ns.", ROOT_HOST),)


@dataclass
class Zone:
    """Authoritative data served by one host."""

    apex: DomainName
    host: str
    records: List[ResourceRecord] = field(default_factory=list)

    def _rrset(self, name, rrtype):
        return [rr for rr in self.records if rr.name == name and rr.rrtype == rrtype]

    def _zone_cut(self, name):
        cuts = [
            rr.name
            for rr in self.records
            if rr.rrtype == RRType.NS and rr.name != self.apex and name.is_subdomain_of(rr.name)
        ]
        return max(cuts, key=lambda n: n.label_count) if cuts else None

    def respond(self, query: DnsMessage) -> DnsMessage:
        q = query.question
        reply = query.reply()
        cut = self._zone_cut(q.name)
        if cut is not None:
            delegation = self._rrset(cut, RRType.NS)
            targets = {rr.payload.target for rr in delegation}
            glue = [
                rr
                for rr in self.records
                if rr.rrtype in (RRType.A, RRType.AAAA) and rr.name in targets
            ]
            return reply.add_authority(*delegation).add_additional(*glue).build()

        reply.set_aa()
        answers = self._rrset(q.name, q.qtype) or self._rrset(q.name, RRType.CNAME)
        if answers:
            reply.add_answer(*answers)
            if query.edns is not None and query.edns.dnssec_ok:
                reply.add_answer(
                    *[
                        rr
                        for rr in self._rrset(q.name, RRType.RRSIG)
                        if rr.payload.type_covered == answers[0].rrtype
                    ]
                )
            return reply.build()
        exists = any(rr.name == q.name for rr in self.records)
        reply.set_rcode(Rcode.NOERROR if exists else Rcode.NXDOMAIN)
        return reply.add_authority(*self._rrset(self.apex, RRType.SOA)).build()


def zone(apex, host, *records) -> Zone:
    return Zone(DomainName.parse(apex), host, list(records))


def root_zone(*records) -> Zone:
    return Zone(ROOT, ROOT_HOST, list(records))


class ZoneWorld:
    """
    Brief: Transport answering from Zone objects keyed by host address.

    Inputs:
      - zones: Zone instances; each host serves exactly one zone.

    Outputs:
      - Transport whose failure modes are switched on per host through the
        udp_truncate, tcp_truncate, servfail, unreachable, wrong_id, lame
        and apex_referral sets.
    """

    def __init__(self, *zones: Zone) -> None:
        self.zones = {z.host: z for z in zones}
        self.calls = []
        self.queries = []
        self.udp_truncate = set()
        self.tcp_truncate = set()
        self.servfail = set()
        self.unreachable = set()
        self.wrong_id = set()
        self.lame = set()
        self.apex_referral = set()
        self.on_send = None

    def send(self, server, query, reliable, deadline):
        message = decode(query)
        q = message.question
        self.calls.append((server.host, str(q.name), type_text(q.qtype), reliable))
        self.queries.append(message)
        if self.on_send is not None:
            self.on_send()
        host = server.host
        if host in self.unreachable:
            raise NetworkError(f"{host} unreachable")
        served = self.zones.get(host)
        if served is None:
            reply = message.reply().set_rcode(Rcode.REFUSED).build()
        elif host in self.servfail:
            reply = message.reply().set_rcode(Rcode.SERVFAIL).build()
        elif host in self.lame:
            reply = message.reply().add_authority(ns("org", "ns.org")).build()
        elif host in self.apex_referral:
            # Non-authoritative, naming only the zone the server already serves.
            reply = message.reply().add_authority(ns(served.apex, f"ns.{served.apex}")).build()
        else:
            reply = served.respond(message)
        if not reliable and host in self.udp_truncate:
            reply = message.reply().set_tc().build()
        elif reliable and host in self.tcp_truncate:
            reply = reply.as_builder().set_tc().build()
        if host in self.wrong_id:
            reply = reply.copy_with_id((reply.id + 1) & 0xFFFF)
        return reply.encode()

    def hosts(self):
        return [call[0] for call in self.calls]


def basic_world() -> ZoneWorld:
    return ZoneWorld(
        root_zone(
            ns("com", "ns.com"),
            a("ns.com", "1.1.1.1"),
        ),
        zone(
            "com",
            "1.1.1.1",
            ns("example.com", "ns.example.com"),
            a("ns.example.com", "1.1.1.2"),
        ),
        zone(
            "example.com",
            "1.1.1.2",
            soa("example.com", "ns.example.com", "hostmaster.example.com", minimum=60),
            a("www.example.com", "1.1.1.3"),
        ),
    )


def make_resolver(world, capacity=0, clock=None, **config) -> IterativeResolver:
    kwargs = {"clock": clock} if clock is not None else {}
    return IterativeResolver(
        ZoneCache(capacity, clock=clock),
        root_hints=TEST_ROOT_HINTS,
        transport=world,
        config=ResolverConfig(**config),
        **kwargs,
    )


def test_basic_iterative_resolution():
    """
    Brief: Root, com and example.com servers are asked in turn for the A record.

    Inputs:
      - None

    Outputs:
      - None: Asserts the answer, query order and result metadata
    """
    world = basic_world()
    result = make_resolver(world).resolve("www.example.com", "A")
    assert len(result.answers) == 1
    assert result.answers[0].rrtype == RRType.A
    assert result.answers[0].payload.to_text() == "1.1.1.3"
    assert result.rcode == Rcode.NOERROR
    assert result.response.aa
    assert world.hosts() == [ROOT_HOST, "1.1.1.1", "1.1.1.2"]
    assert all(not reliable for *_, reliable in world.calls)
    assert result.server == AuthorityEndpoint("ns.example.com", "1.1.1.2")
    assert not result.from_cache
    assert not result.truncated
    assert result.dnssec_status is None
    assert [hop.step for hop in result.trace] == ["referral", "referral", "answer"]


def test_queries_are_iterative_with_edns():
    world = basic_world()
    make_resolver(world, edns_udp_payload=1400).resolve("www.example.com")
    for query in world.queries:
        assert not query.rd
        assert query.edns is not None
        assert query.edns.udp_payload_size == 1400
        assert not query.edns.dnssec_ok

    world = basic_world()
    make_resolver(world, edns_udp_payload=0).resolve("www.example.com")
    assert all(query.edns is None for query in world.queries)


def test_referral_loop_is_detected():
    """
    Brief: Two zones delegating to nameservers inside each other abort with LoopDetected.

    Inputs:
      - None

    Outputs:
      - None: Asserts the repeated server is named and few queries were sent
    """
    world = ZoneWorld(
        root_zone(
            ns("a", "a.ns"),
            ns("b", "b.ns"),
            a("a.ns", "1.1.1.1"),
            a("b.ns", "1.1.1.2"),
        ),
        zone("a", "1.1.1.1", ns("test.a", "a.test.b")),
        zone("b", "1.1.1.2", ns("test.b", "b.test.a")),
    )
    with pytest.raises(LoopDetected) as excinfo:
        make_resolver(world, max_steps=10_000).resolve("www.test.a", "A")
    assert "already asked root.ns. (1.0.0.1) for a.test.b. A" in str(excinfo.value)
    # www.test.a, then a.test.b and b.test.a through root and one TLD each.
    assert len(world.calls) == 6


def test_glueless_delegation_resolves_nameserver_address():
    world = ZoneWorld(
        root_zone(
            ns("com", "ns.com"),
            ns("net", "ns.net"),
            a("ns.com", "1.1.1.1"),
            a("ns.net", "1.1.2.1"),
        ),
        zone("com", "1.1.1.1", ns("example.com", "example.ns.net")),
        zone("net", "1.1.2.1", a("example.ns.net", "1.1.2.2")),
        zone("example.com", "1.1.2.2", a("www.example.com", "1.1.1.3")),
    )
    result = make_resolver(world).resolve("www.example.com", "A")
    assert [rr.payload.to_text() for rr in result.answers] == ["1.1.1.3"]
    assert ("1.1.2.1", "example.ns.net.", "A", False) in world.calls
    assert world.hosts()[-1] == "1.1.2.2"


def test_nxdomain_is_cached_negatively(fake_clock):
    """
    Brief: NXDOMAIN is served from cache until min(SOA TTL, SOA minimum) passes.

    Inputs:
      - fake_clock: controllable clock fixture

    Outputs:
      - None: Asserts rcode, cache use and expiry
    """
    now, advance = fake_clock
    world = basic_world()
    resolver = make_resolver(world, capacity=64, clock=now)

    result = resolver.resolve("nope.example.com", "A")
    assert result.rcode == Rcode.NXDOMAIN
    assert not result.answers
    assert result.response.authority[0].rrtype == RRType.SOA
    calls = len(world.calls)

    again = resolver.resolve("nope.example.com", "A")
    assert again.rcode == Rcode.NXDOMAIN
    assert again.from_cache
    assert again.server is None
    assert len(world.calls) == calls

    advance(61)
    resolver.resolve("nope.example.com", "A")
    assert world.calls[-1] == ("1.1.1.2", "nope.example.com.", "A", False)


def test_nodata_keeps_noerror():
    world = basic_world()
    result = make_resolver(world).resolve("www.example.com", "AAAA")
    assert result.rcode == Rcode.NOERROR
    assert not result.answers
    assert result.trace[-1].step == "negative"


def test_cache_hit_and_closest_cached_zone():
    """
    Brief: Cached answers skip the network and cached delegations shorten the walk.

    Inputs:
      - None

    Outputs:
      - None: Asserts hosts contacted on the second and third query
    """
    world = basic_world()
    resolver = make_resolver(world, capacity=64)
    resolver.resolve("www.example.com")
    first = len(world.calls)

    cached = resolver.resolve("www.example.com")
    assert cached.from_cache
    assert [rr.payload.to_text() for rr in cached.answers] == ["1.1.1.3"]
    assert cached.trace[0].step == "cache_hit"
    assert len(world.calls) == first

    resolver.resolve("mail.example.com")
    assert world.hosts()[first:] == ["1.1.1.2"]


def cname_world() -> ZoneWorld:
    return ZoneWorld(
        root_zone(
            ns("com", "ns.com"),
            ns("net", "ns.net"),
            a("ns.com", "1.1.1.1"),
            a("ns.net", "1.1.2.1"),
        ),
        zone("com", "1.1.1.1", ns("example.com", "ns.example.com"), a("ns.example.com", "1.1.1.2")),
        zone("net", "1.1.2.1", ns("example.net", "ns.example.net"), a("ns.example.net", "1.1.3.2")),
        zone(
            "example.com",
            "1.1.1.2",
            cname("www.example.com", "www.example.net"),
            cname("c0.example.com", "c1.example.com"),
            cname("c1.example.com", "c2.example.com"),
            cname("c2.example.com", "c3.example.com"),
            a("c3.example.com", "1.1.1.9"),
        ),
        zone("example.net", "1.1.3.2", a("www.example.net", "1.1.1.4")),
    )


def test_cname_chain_is_followed_across_zones():
    world = cname_world()
    result = make_resolver(world).resolve("www.example.com", "A")
    assert [rr.rrtype for rr in result.answers] == [RRType.CNAME, RRType.A]
    assert result.answers[1].payload.to_text() == "1.1.1.4"
    assert result.response.question.name == DomainName.parse("www.example.com")
    assert result.server.host == "1.1.3.2"
    assert "cname" in [hop.step for hop in result.trace]


def test_cname_chain_from_cache():
    world = cname_world()
    resolver = make_resolver(world, capacity=64)
    resolver.resolve("www.example.com")
    calls = len(world.calls)
    result = resolver.resolve("www.example.com")
    assert result.from_cache
    assert [rr.rrtype for rr in result.answers] == [RRType.CNAME, RRType.A]
    assert len(world.calls) == calls


def test_cname_chain_limit():
    world = cname_world()
    result = make_resolver(world, max_cname_chain=3).resolve("c0.example.com")
    assert result.answers[-1].payload.to_text() == "1.1.1.9"

    with pytest.raises(CnameChainTooLong):
        make_resolver(cname_world(), max_cname_chain=2).resolve("c0.example.com")


def test_cname_query_type_is_not_followed():
    result = make_resolver(cname_world()).resolve("www.example.com", "CNAME")
    assert len(result.answers) == 1
    assert result.answers[0].payload.to_text() == "www.example.net."


def test_truncated_udp_answer_is_retried_over_tcp():
    world = basic_world()
    world.udp_truncate.add("1.1.1.2")
    result = make_resolver(world).resolve("www.example.com")
    assert world.calls[-2:] == [
        ("1.1.1.2", "www.example.com.", "A", False),
        ("1.1.1.2", "www.example.com.", "A", True),
    ]
    assert not result.truncated
    assert result.answers[0].payload.to_text() == "1.1.1.3"


def test_answer_still_truncated_over_tcp_is_flagged_and_not_cached():
    world = basic_world()
    world.udp_truncate.add("1.1.1.2")
    world.tcp_truncate.add("1.1.1.2")
    resolver = make_resolver(world, capacity=64)
    result = resolver.resolve("www.example.com")
    assert result.truncated
    assert result.answers
    assert resolver.cache.get("www.example.com", RRType.A) == frozenset()


def test_servfail_falls_back_to_next_server(caplog):
    """
    Brief: A SERVFAIL from one nameserver is logged and the next one is asked.

    Inputs:
      - caplog: pytest log capture

    Outputs:
      - None: Asserts the answer, the error trace hop and the warning
    """
    world = basic_world()
    world.zones[ROOT_HOST].records += [ns("com", "ns2.com"), a("ns2.com", "1.1.1.5")]
    world.zones["1.1.1.5"] = zone(
        "com", "1.1.1.5", ns("example.com", "ns.example.com"), a("ns.example.com", "1.1.1.2")
    )
    world.servfail.add("1.1.1.1")
    with caplog.at_level(logging.WARNING, logger="iterdns.resolver"):
        result = make_resolver(world).resolve("www.example.com")
    assert result.answers[0].payload.to_text() == "1.1.1.3"
    assert world.hosts() == [ROOT_HOST, "1.1.1.1", "1.1.1.5", "1.1.1.2"]
    errors = [hop for hop in result.trace if hop.step == "error"]
    assert errors[0].server.host == "1.1.1.1"
    assert "SERVFAIL" in caplog.text


@pytest.mark.parametrize("failure", ["lame", "apex_referral", "wrong_id", "unreachable"])
def test_per_server_failures_try_next_server(failure):
    world = basic_world()
    world.zones[ROOT_HOST].records += [ns("com", "ns2.com"), a("ns2.com", "1.1.1.5")]
    world.zones["1.1.1.5"] = zone(
        "com", "1.1.1.5", ns("example.com", "ns.example.com"), a("ns.example.com", "1.1.1.2")
    )
    getattr(world, failure).add("1.1.1.1")
    result = make_resolver(world).resolve("www.example.com")
    assert result.answers[0].payload.to_text() == "1.1.1.3"
    assert "1.1.1.5" in world.hosts()


def test_all_servers_failing_raises_resolution_failed():
    world = basic_world()
    world.servfail.add("1.1.1.1")
    with pytest.raises(ResolutionFailed):
        make_resolver(world).resolve("www.example.com")


def test_referral_to_current_zone_is_a_failed_server():
    """
    Brief: A non-authoritative reply naming only the zone being asked makes no progress.

    Inputs:
      - None

    Outputs:
      - None: Asserts the server is recorded as failed and ResolutionFailed follows
    """
    world = basic_world()
    world.apex_referral.add("1.1.1.1")
    with pytest.raises(ResolutionFailed):
        make_resolver(world).resolve("www.example.com")
    assert world.hosts() == [ROOT_HOST, "1.1.1.1"]

    world = basic_world()
    world.zones[ROOT_HOST].records += [ns("com", "ns2.com"), a("ns2.com", "1.1.1.5")]
    world.zones["1.1.1.5"] = zone(
        "com", "1.1.1.5", ns("example.com", "ns.example.com"), a("ns.example.com", "1.1.1.2")
    )
    world.apex_referral.add("1.1.1.1")
    result = make_resolver(world).resolve("www.example.com")
    errors = [hop for hop in result.trace if hop.step == "error"]
    assert [hop.server.host for hop in errors] == ["1.1.1.1"]
    assert "does not lead towards www.example.com." in errors[0].detail
    assert world.hosts() == [ROOT_HOST, "1.1.1.1", "1.1.1.5", "1.1.1.2"]


def test_referral_glue_and_ns_are_not_served_as_answers():
    """
    Brief: Delegation data cached from referrals only steers later walks.

    Inputs:
      - None

    Outputs:
      - None: Asserts nameserver questions still go to the authoritative zone
    """
    world = basic_world()
    world.zones["1.1.1.2"].records += [
        ns("example.com", "ns.example.com"),
        a("ns.example.com", "1.1.1.2"),
    ]
    resolver = make_resolver(world, capacity=64)
    resolver.resolve("www.example.com", "A")
    first = len(world.calls)

    glue = resolver.resolve("ns.example.com", "A")
    assert not glue.from_cache
    assert glue.response.aa
    assert [rr.payload.to_text() for rr in glue.answers] == ["1.1.1.2"]

    delegation = resolver.resolve("example.com", "NS")
    assert not delegation.from_cache
    assert delegation.response.aa
    assert world.hosts()[first:] == ["1.1.1.2", "1.1.1.2"]

    assert resolver.resolve("example.com", "NS").from_cache
    assert len(world.calls) == first + 2


def test_step_budget_is_enforced():
    with pytest.raises(LoopDetected):
        make_resolver(basic_world(), max_steps=2).resolve("www.example.com")
    assert make_resolver(basic_world(), max_steps=3).resolve("www.example.com").answers


def test_deadline_aborts_resolution(fake_clock):
    now, advance = fake_clock
    world = basic_world()
    world.on_send = lambda: advance(5)
    resolver = make_resolver(world, clock=now, timeout_ms=10000)
    with pytest.raises(DeadlineExceeded):
        resolver.resolve("www.example.com")
    assert len(world.calls) == 2


class RecordingVerifier:
    def __init__(self, status):
        self.status = status
        self.calls = []

    def verify(self, records, keys):
        self.calls.append((list(records), list(keys)))
        return self.status


def test_verifier_gets_answer_and_signer_keys():
    """
    Brief: With DNSSEC on, queries carry DO and the signer's DNSKEYs are fetched.

    Inputs:
      - None

    Outputs:
      - None: Asserts the DO bit, verifier input and reported status
    """
    world = basic_world()
    example = world.zones["1.1.1.2"]
    dnskey = record("example.com", "DNSKEY", DNSKEY(257, 3, 15, b"\x01" * 32))
    sig = record(
        "www.example.com",
        "RRSIG",
        RRSIG(RRType.A, 15, 3, 3600, 2000000000, 1700000000, 12345, "example.com", b"\x00" * 64),
    )
    example.records += [dnskey, sig]
    verifier = RecordingVerifier(DnssecStatus.SECURE)
    resolver = IterativeResolver(
        ZoneCache(0),
        root_hints=TEST_ROOT_HINTS,
        transport=world,
        verifier=verifier,
        config=ResolverConfig(dnssec=True),
    )
    result = resolver.resolve("www.example.com")
    assert result.dnssec_status == DnssecStatus.SECURE
    assert all(query.edns.dnssec_ok for query in world.queries)
    records, keys = verifier.calls[0]
    assert sig in records
    assert keys == [dnskey]
    assert ("1.1.1.2", "example.com.", "DNSKEY", False) in world.calls


def test_follow_cnames_helper():
    records = [
        cname("a.example", "b.example"),
        cname("b.example", "c.example"),
        a("c.example", "192.0.2.1"),
        a("unrelated.example", "192.0.2.2"),
    ]
    chain, final, complete, hops = follow_cnames(
        records, DomainName.parse("a.example"), RRType.A, 1, budget=8
    )
    assert complete
    assert final == DomainName.parse("c.example")
    assert hops == 2
    assert [rr.rrtype for rr in chain] == [RRType.CNAME, RRType.CNAME, RRType.A]

    with pytest.raises(CnameChainTooLong):
        follow_cnames(records, DomainName.parse("a.example"), RRType.A, 1, budget=1)


def test_resolver_requires_root_hints():
    with pytest.raises(ValueError):
        IterativeResolver(ZoneCache(0), root_hints=())
