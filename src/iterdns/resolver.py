from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .cache import ZoneCache
from .dnssec import DnssecStatus
from .errors import (
    CnameChainTooLong,
    DeadlineExceeded,
    DnsError,
    FormatError,
    LoopDetected,
    NetworkError,
    ResolutionFailed,
)
from .message import DnsMessage, MessageBuilder, Question, Rcode, decode, make_query
from .name import ROOT, DomainName
from .records import RRSIG, SOA, RRClass, RRType, ResourceRecord, rrclass_of, rrtype_of, type_text
from .transport import AuthorityEndpoint, SocketTransport, Transport

"""Iterative resolver: walks delegations from the root to an authority.

Brief:
  IterativeResolver answers one question at a time by sending non-recursive
  queries to authority servers, starting at the closest zone whose
  nameservers are already cached (or at the root hints) and following NS
  referrals until a server returns an answer or a negative result.

  Every top-level resolution owns a ResolutionState. Nested lookups of
  nameserver addresses (for referrals without glue) share that state, so the
  visited set, the step budget and the deadline cover the whole tree of
  queries made on behalf of one question.

Notes:
  - Per-server failures (network errors, undecodable or mismatched replies,
    SERVFAIL/REFUSED and bogus referrals) are logged and the next candidate
    is tried.
  - LoopDetected, CnameChainTooLong and DeadlineExceeded abort the whole
    resolution.
"""

logger = logging.getLogger(__name__)


# Snapshot of the IANA root hints. This list is intentionally static; if root
# server addresses change, this constant should be updated in a dedicated
# change.
ROOT_HINTS: Tuple[AuthorityEndpoint, ...] = (
    AuthorityEndpoint(name="a.root-servers.net.", host="198.41.0.4"),
    AuthorityEndpoint(name="a.root-servers.net.", host="2001:503:ba3e::2:30"),
    AuthorityEndpoint(name="b.root-servers.net.", host="170.247.170.2"),
    AuthorityEndpoint(name="b.root-servers.net.", host="2801:1b8:10::b"),
    AuthorityEndpoint(name="c.root-servers.net.", host="192.33.4.12"),
    AuthorityEndpoint(name="c.root-servers.net.", host="2001:500:2::c"),
    AuthorityEndpoint(name="d.root-servers.net.", host="199.7.91.13"),
    AuthorityEndpoint(name="d.root-servers.net.", host="2001:500:2d::d"),
    AuthorityEndpoint(name="e.root-servers.net.", host="192.203.230.10"),
    AuthorityEndpoint(name="e.root-servers.net.", host="2001:500:a8::e"),
    AuthorityEndpoint(name="f.root-servers.net.", host="192.5.5.241"),
    AuthorityEndpoint(name="f.root-servers.net.", host="2001:500:2f::f"),
    AuthorityEndpoint(name="g.root-servers.net.", host="192.112.36.4"),
    AuthorityEndpoint(name="g.root-servers.net.", host="2001:500:12::d0d"),
    AuthorityEndpoint(name="h.root-servers.net.", host="198.97.190.53"),
    AuthorityEndpoint(name="h.root-servers.net.", host="2001:500:1::53"),
    AuthorityEndpoint(name="i.root-servers.net.", host="192.36.148.17"),
    AuthorityEndpoint(name="i.root-servers.net.", host="2001:7fe::53"),
    AuthorityEndpoint(name="j.root-servers.net.", host="192.58.128.30"),
    AuthorityEndpoint(name="j.root-servers.net.", host="2001:503:c27::2:30"),
    AuthorityEndpoint(name="k.root-servers.net.", host="193.0.14.129"),
    AuthorityEndpoint(name="k.root-servers.net.", host="2001:7fd::1"),
    AuthorityEndpoint(name="l.root-servers.net.", host="199.7.83.42"),
    AuthorityEndpoint(name="l.root-servers.net.", host="2001:500:9f::42"),
    AuthorityEndpoint(name="m.root-servers.net.", host="202.12.27.33"),
    AuthorityEndpoint(name="m.root-servers.net.", host="2001:dc3::35"),
)


@dataclass(frozen=True)
class ResolverConfig:
    """Configuration shared by every resolution of one IterativeResolver.

    Inputs:
      - timeout_ms: End-to-end budget for one top-level resolution.
      - per_try_timeout_ms: Upper bound for a single authority attempt.
      - max_steps: Maximum number of queries sent for one resolution,
        nested nameserver lookups included.
      - max_cname_chain: Maximum number of CNAME indirections followed.
      - edns_udp_payload: EDNS UDP payload size to advertise; 0 disables EDNS.
      - dnssec: Request DNSSEC records (EDNS DO bit).

    Outputs:
      - Immutable config snapshot.
    """

    timeout_ms: int = 10000
    per_try_timeout_ms: int = 2000
    max_steps: int = 128
    max_cname_chain: int = 8
    edns_udp_payload: int = 1232
    dnssec: bool = False


@dataclass(frozen=True)
class TraceHop:
    """Single step in the resolution trace.

    Inputs:
      - qname: Query name at this step.
      - qtype: Query type at this step.
      - server: Authority contacted, or None for cache steps.
      - rcode: Response code, or None when no response was decoded.
      - step: Short label ('cache_hit', 'query', 'referral', 'answer',
        'negative', 'cname', 'error').
      - detail: Optional freeform detail.
    """

    qname: DomainName
    qtype: int
    server: Optional[AuthorityEndpoint]
    rcode: Optional[int]
    step: str
    detail: str = ""


VisitKey = Tuple[DomainName, DomainName, Optional[str], DomainName, int]


@dataclass
class ResolutionState:
    """Mutable bookkeeping for one top-level resolution.

    Inputs:
      - deadline: Absolute clock value after which the resolution aborts.
      - max_steps: Query budget.
      - clock: Clock used to compare against the deadline.

    Outputs:
      - State object threaded through the resolver and its nested lookups.
    """

    deadline: float
    max_steps: int
    clock: Callable[[], float] = time.monotonic
    visited: Set[VisitKey] = field(default_factory=set)
    steps: int = 0
    cname_chain: int = 0
    trace: List[TraceHop] = field(default_factory=list)

    def visit(self, key: VisitKey) -> None:
        """Record (zone, server, address, qname, qtype); a repeat is a loop."""

        if key in self.visited:
            zone, server, host, qname, qtype = key
            raise LoopDetected(
                f"already asked {server} ({host}) for {qname} {type_text(qtype)} in zone {zone}"
            )
        self.visited.add(key)

    def step(self) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise LoopDetected(f"step budget of {self.max_steps} queries exhausted")

    def check_deadline(self) -> None:
        if self.clock() >= self.deadline:
            raise DeadlineExceeded("resolution deadline exceeded")

    def record(self, hop: TraceHop) -> None:
        self.trace.append(hop)


@dataclass(frozen=True)
class DnsQueryResult:
    """Outcome of one iterative resolution.

    Inputs:
      - response: Final response. When several responses contributed (CNAME
        chains) or the answer came from the cache, a synthesized response
        carrying the original question.
      - server: Authority that produced the final response (None from cache).
      - truncated: True when the final answer was still truncated over TCP.
      - from_cache: True when no query was sent.
      - dnssec_status: Verifier verdict, or None without a verifier.
      - trace: Ordered TraceHop entries.
    """

    response: DnsMessage
    server: Optional[AuthorityEndpoint] = None
    truncated: bool = False
    from_cache: bool = False
    dnssec_status: Optional[DnssecStatus] = None
    trace: Tuple[TraceHop, ...] = ()

    @property
    def answers(self) -> Tuple[ResourceRecord, ...]:
        return self.response.answers

    @property
    def rcode(self) -> int:
        return self.response.rcode


@dataclass(frozen=True)
class _Hop:
    """Answer or negative result for one (qname, qtype) from one source."""

    response: DnsMessage
    server: Optional[AuthorityEndpoint]
    answers: Tuple[ResourceRecord, ...]
    truncated: bool = False
    from_cache: bool = False


@dataclass(frozen=True)
class _Referral:
    zone: DomainName
    candidates: Tuple[AuthorityEndpoint, ...]
    glue: Dict[DomainName, List[str]]


@dataclass(frozen=True)
class _Chain:
    question: Question
    records: Tuple[ResourceRecord, ...]
    hops: Tuple[_Hop, ...]


class _ServerFailed(DnsError):
    """A server answered with an rcode that disqualifies it."""


def follow_cnames(
    records: Iterable[ResourceRecord],
    qname: DomainName,
    qtype: int,
    qclass: int,
    budget: int,
) -> Tuple[List[ResourceRecord], DomainName, bool, int]:
    """Brief: Walk CNAMEs from qname through `records` towards a qtype RRset.

    Inputs:
      - records: Candidate answer records.
      - qname, qtype, qclass: The question.
      - budget: Number of CNAME indirections still allowed.

    Outputs:
      - (chain, final_name, complete, hops):
        * chain: CNAME records followed plus the final RRset, each with its
          covering RRSIGs.
        * final_name: Name reached at the end of the chain.
        * complete: True when an RRset of qtype was found for final_name.
        * hops: Number of CNAMEs followed.

    Raises:
      - CnameChainTooLong when more than `budget` CNAMEs would be followed.
    """

    records = list(records)
    chain: List[ResourceRecord] = []
    current = qname
    hops = 0
    while True:
        matches = [
            rr
            for rr in records
            if rr.name == current
            and rr.rrclass == qclass
            and rr.rrtype != RRType.RRSIG
            and (rr.rrtype == qtype or qtype == RRType.ANY)
        ]
        if matches:
            chain.extend(matches)
            chain.extend(_signatures(records, current, None if qtype == RRType.ANY else qtype))
            return chain, current, True, hops
        cnames = [
            rr
            for rr in records
            if rr.name == current and rr.rrclass == qclass and rr.rrtype == RRType.CNAME
        ]
        if not cnames:
            return chain, current, False, hops
        hops += 1
        if hops > budget:
            raise CnameChainTooLong(f"CNAME chain from {qname} exceeds the limit")
        chain.append(cnames[0])
        chain.extend(_signatures(records, current, RRType.CNAME))
        current = cnames[0].payload.target


def _signatures(
    records: Sequence[ResourceRecord], name: DomainName, covered: Optional[int]
) -> List[ResourceRecord]:
    return [
        rr
        for rr in records
        if rr.rrtype == RRType.RRSIG
        and rr.name == name
        and isinstance(rr.payload, RRSIG)
        and (covered is None or rr.payload.type_covered == covered)
    ]


def _sorted(records: Iterable[ResourceRecord]) -> List[ResourceRecord]:
    return sorted(records, key=lambda rr: (rr.name.canonical_key(), int(rr.rrtype), rr.to_text()))


def _rcode_text(rcode: int) -> str:
    try:
        return Rcode(rcode).name
    except ValueError:
        return str(int(rcode))


class IterativeResolver:
    """Brief: Iterative DNS resolver over a shared ZoneCache.

    Inputs (constructor):
      - cache: ZoneCache shared with other resolvers/threads.
      - root_hints: Root authority endpoints (with addresses).
      - transport: Transport implementation; defaults to SocketTransport.
      - verifier: Optional DNSSEC Verifier consulted for final answers.
      - config: ResolverConfig.
      - clock: Monotonic clock used for deadlines.

    Outputs:
      - Instance able to resolve questions via resolve()/resolve_question().

    Example:
        >>> resolver = IterativeResolver(ZoneCache())
        >>> result = resolver.resolve("www.example.com", "A")  # doctest: +SKIP
    """

    def __init__(
        self,
        cache: ZoneCache,
        root_hints: Sequence[AuthorityEndpoint] = ROOT_HINTS,
        transport: Optional[Transport] = None,
        verifier=None,
        config: Optional[ResolverConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or ResolverConfig()
        self._cache = cache
        self._root_hints: Tuple[AuthorityEndpoint, ...] = tuple(root_hints)
        if not self._root_hints:
            raise ValueError("at least one root hint is required")
        self._transport: Transport = transport or SocketTransport(
            per_try_timeout_ms=self._config.per_try_timeout_ms, clock=clock
        )
        self._verifier = verifier
        self._clock = clock

    @property
    def config(self) -> ResolverConfig:
        return self._config

    @property
    def cache(self) -> ZoneCache:
        return self._cache

    # Public API ------------------------------------------------------------

    def resolve(
        self,
        name: Union[DomainName, str],
        rrtype: Union[int, str] = RRType.A,
        rrclass: Union[int, str] = RRClass.IN,
    ) -> DnsQueryResult:
        """Brief: Resolve (name, type, class) iteratively.

        Inputs:
          - name: Query name (DomainName or text).
          - rrtype: Type code or mnemonic (default A).
          - rrclass: Class code or mnemonic (default IN).

        Outputs:
          - DnsQueryResult

        Raises:
          - LoopDetected, CnameChainTooLong, ResolutionFailed, DeadlineExceeded.
        """

        return self.resolve_question(
            Question(DomainName.coerce(name), rrtype_of(rrtype), rrclass_of(rrclass))
        )

    def resolve_question(self, question: Question) -> DnsQueryResult:
        state = ResolutionState(
            deadline=self._clock() + self._config.timeout_ms / 1000.0,
            max_steps=self._config.max_steps,
            clock=self._clock,
        )
        logger.debug("resolving %s", question.to_text())
        chain = self._resolve_chain(question, state)
        last = chain.hops[-1]

        if len(chain.hops) == 1 and not last.from_cache:
            response = last.response
        else:
            response = (
                MessageBuilder()
                .set_qr(True)
                .set_aa(last.response.aa and not last.from_cache)
                .set_rcode(last.response.rcode)
                .add_question(question)
                .add_answer(*chain.records)
                .add_authority(*last.response.authority)
                .build()
            )

        status = None
        if self._verifier is not None:
            status = self._verify(response, state)

        from_cache = all(hop.from_cache for hop in chain.hops)
        logger.debug(
            "resolved %s: %s, %d answers%s",
            question.to_text(),
            _rcode_text(response.rcode),
            len(response.answers),
            " (cache)" if from_cache else "",
        )
        return DnsQueryResult(
            response=response,
            server=last.server,
            truncated=any(hop.truncated for hop in chain.hops),
            from_cache=from_cache,
            dnssec_status=status,
            trace=tuple(state.trace),
        )

    # CNAME chains ----------------------------------------------------------

    def _resolve_chain(self, question: Question, state: ResolutionState) -> _Chain:
        current = question.name
        records: List[ResourceRecord] = []
        hops: List[_Hop] = []
        while True:
            hop = self._resolve_once(Question(current, question.qtype, question.qclass), state)
            hops.append(hop)
            budget = self._config.max_cname_chain - state.cname_chain
            chain, final, complete, followed = follow_cnames(
                hop.answers, current, question.qtype, question.qclass, budget
            )
            state.cname_chain += followed
            records.extend(chain)
            if complete or not followed or hop.response.rcode != Rcode.NOERROR:
                return _Chain(question, tuple(records), tuple(hops))
            state.record(
                TraceHop(current, question.qtype, hop.server, hop.response.rcode, "cname", str(final))
            )
            logger.debug("following CNAME %s -> %s", current, final)
            current = final

    # One question ----------------------------------------------------------

    def _resolve_once(self, question: Question, state: ResolutionState) -> _Hop:
        cached = self._from_cache(question, state)
        if cached is not None:
            return cached

        zone, candidates = self._starting_zone(question.name, question.qclass)
        glue: Dict[DomainName, List[str]] = {}
        while True:
            outcome: Union[_Hop, _Referral, None] = None
            for candidate in candidates:
                for server in self._addresses_for(candidate, glue, state):
                    try:
                        outcome = self._ask(zone, server, question, state)
                    except (NetworkError, FormatError, _ServerFailed) as exc:
                        logger.warning("%s failed for %s: %s", server, question.to_text(), exc)
                        state.record(
                            TraceHop(question.name, question.qtype, server, None, "error", str(exc))
                        )
                        continue
                    break
                if outcome is not None:
                    break
            if outcome is None:
                raise ResolutionFailed(
                    f"no authority for {zone} answered {question.to_text()}"
                )
            if isinstance(outcome, _Hop):
                return outcome
            zone, candidates, glue = outcome.zone, outcome.candidates, outcome.glue

    def _from_cache(self, question: Question, state: ResolutionState) -> Optional[_Hop]:
        qname, qtype, qclass = question.name, question.qtype, question.qclass
        answers = self._cache.get(qname, qtype, qclass)
        if not answers and qtype != RRType.CNAME:
            answers = self._cache.get(qname, RRType.CNAME, qclass)
        if answers:
            records = _sorted(answers) + _sorted(
                rr
                for rr in self._cache.get(qname, RRType.RRSIG, qclass)
                if isinstance(rr.payload, RRSIG)
                and any(rr.payload.type_covered == a.rrtype for a in answers)
            )
            state.record(TraceHop(qname, qtype, None, Rcode.NOERROR, "cache_hit"))
            response = (
                MessageBuilder().set_qr(True).add_question(question).add_answer(*records).build()
            )
            return _Hop(response, None, tuple(records), from_cache=True)

        negative = self._cache.get_negative(qname, qtype, qclass)
        if negative is not None:
            state.record(TraceHop(qname, qtype, None, negative.rcode, "cache_hit", "negative"))
            builder = MessageBuilder().set_qr(True).set_rcode(negative.rcode).add_question(question)
            if negative.soa is not None:
                builder.add_authority(negative.soa)
            return _Hop(builder.build(), None, (), from_cache=True)
        return None

    def _starting_zone(
        self, qname: DomainName, qclass: int
    ) -> Tuple[DomainName, Tuple[AuthorityEndpoint, ...]]:
        """Closest enclosing zone whose nameservers have cached addresses."""

        for zone in qname.ancestors():
            if zone.is_root():
                break
            ns_rrset = self._cache.get_delegation(zone, RRType.NS, qclass)
            candidates = [
                AuthorityEndpoint(rr.payload.target, host)
                for rr in _sorted(ns_rrset)
                for host in self._cached_addresses(rr.payload.target)
            ]
            if candidates:
                logger.debug("starting at cached zone %s", zone)
                return zone, tuple(candidates)
        return ROOT, self._root_hints

    def _cached_addresses(self, name: DomainName) -> List[str]:
        hosts: List[str] = []
        for rrtype in (RRType.A, RRType.AAAA):
            hosts.extend(
                rr.payload.to_text()
                for rr in _sorted(self._cache.get_delegation(name, rrtype, RRClass.IN))
            )
        return hosts

    def _addresses_for(
        self,
        candidate: AuthorityEndpoint,
        glue: Dict[DomainName, List[str]],
        state: ResolutionState,
    ) -> List[AuthorityEndpoint]:
        """Brief: Addresses for a candidate: its own, glue, cache, then lookup.

        Inputs:
          - candidate: Endpoint, possibly without a host.
          - glue: Addresses from the referral's additional section.
          - state: Shared resolution state for nested lookups.

        Outputs:
          - List of endpoints with hosts; empty when none could be found.
        """

        if candidate.host is not None:
            return [candidate]
        hosts = glue.get(candidate.name) or self._cached_addresses(candidate.name)
        if not hosts:
            hosts = self._lookup_addresses(candidate.name, state)
        if not hosts:
            logger.warning("no address found for nameserver %s", candidate.name)
        return [candidate.with_host(host) for host in hosts]

    def _lookup_addresses(self, name: DomainName, state: ResolutionState) -> List[str]:
        for rrtype in (RRType.A, RRType.AAAA):
            logger.debug("looking up %s %s for a glueless delegation", name, type_text(rrtype))
            try:
                chain = self._resolve_chain(Question(name, rrtype, RRClass.IN), state)
            except ResolutionFailed as exc:
                logger.warning("nameserver lookup %s %s failed: %s", name, type_text(rrtype), exc)
                continue
            hosts = [rr.payload.to_text() for rr in chain.records if rr.rrtype == rrtype]
            if hosts:
                return hosts
        return []

    # Talking to one server -------------------------------------------------

    def _ask(
        self,
        zone: DomainName,
        server: AuthorityEndpoint,
        question: Question,
        state: ResolutionState,
    ) -> Union[_Hop, _Referral]:
        """Brief: Query one server and classify its response.

        Inputs:
          - zone: Apex of the zone `server` is expected to serve.
          - server: Endpoint with a host.
          - question: Question being resolved.
          - state: Shared resolution state.

        Outputs:
          - _Hop for an answer or a negative result; _Referral to descend.

        Raises:
          - LoopDetected / DeadlineExceeded (abort the resolution).
          - NetworkError, FormatError, _ServerFailed (this server only).
        """

        state.visit((zone, server.name, server.host, question.name, int(question.qtype)))
        response, truncated = self._exchange(server, question, state)
        rcode = response.rcode
        if rcode not in (Rcode.NOERROR, Rcode.NXDOMAIN):
            raise _ServerFailed(f"server answered {_rcode_text(rcode)}")

        answers = tuple(rr for rr in response.answers if rr.name.is_subdomain_of(zone))
        if any(self._answers_question(rr, question) for rr in answers):
            state.record(TraceHop(question.name, question.qtype, server, rcode, "answer"))
            if not truncated:
                self._cache_answer(zone, response)
            return _Hop(response, server, answers, truncated=truncated)

        if rcode == Rcode.NOERROR:
            referral = self._referral(zone, question, response)
            if referral is not None:
                state.record(
                    TraceHop(question.name, question.qtype, server, rcode, "referral", str(referral.zone))
                )
                logger.debug("%s refers %s to %s", server, question.name, referral.zone)
                return referral

        state.record(TraceHop(question.name, question.qtype, server, rcode, "negative"))
        if not truncated:
            self._cache_negative(question, response)
        return _Hop(response, server, answers, truncated=truncated)

    @staticmethod
    def _answers_question(rr: ResourceRecord, question: Question) -> bool:
        if rr.name != question.name or rr.rrclass != question.qclass:
            return False
        return rr.rrtype in (question.qtype, RRType.CNAME) or question.qtype == RRType.ANY

    def _cache_answer(self, zone: DomainName, response: DnsMessage) -> None:
        # Only the answer section may answer later questions from cache.
        def in_zone(section):
            return [rr for rr in section if rr.name.is_subdomain_of(zone)]

        self._cache.put(in_zone(response.answers))
        self._cache.put(
            in_zone(response.authority) + in_zone(response.additional), authoritative=False
        )

    def _referral(
        self, zone: DomainName, question: Question, response: DnsMessage
    ) -> Optional[_Referral]:
        ns_records = [
            rr
            for rr in response.authority
            if rr.rrtype == RRType.NS and rr.rrclass == question.qclass
        ]
        if not ns_records:
            return None
        delegations = [
            rr
            for rr in ns_records
            if rr.name.is_strict_subdomain_of(zone) and question.name.is_subdomain_of(rr.name)
        ]
        if not delegations:
            if response.aa:
                # Authoritative NODATA listing the zone's own NS set.
                return None
            raise FormatError(
                f"referral from {zone} to {ns_records[0].name} does not lead towards {question.name}"
            )

        child = delegations[0].name
        delegations = [rr for rr in delegations if rr.name == child]
        targets = [rr.payload.target for rr in delegations]
        glue_records = [
            rr
            for rr in response.additional
            if rr.rrtype in (RRType.A, RRType.AAAA)
            and rr.name in targets
            and rr.name.is_subdomain_of(zone)
        ]
        glue: Dict[DomainName, List[str]] = {}
        for rr in glue_records:
            glue.setdefault(rr.name, []).append(rr.payload.to_text())
        self._cache.put(delegations + glue_records, authoritative=False)

        candidates = tuple(AuthorityEndpoint(target) for target in dict.fromkeys(targets))
        return _Referral(child, candidates, glue)

    def _cache_negative(self, question: Question, response: DnsMessage) -> None:
        soa_rr = next(
            (
                rr
                for rr in response.authority
                if rr.rrtype == RRType.SOA
                and isinstance(rr.payload, SOA)
                and question.name.is_subdomain_of(rr.name)
            ),
            None,
        )
        if soa_rr is None:
            logger.debug("negative answer for %s without SOA; not cached", question.to_text())
            return
        # RFC 2308 section 5: the SOA MINIMUM, capped by the SOA record's own TTL.
        ttl = min(soa_rr.ttl, soa_rr.payload.minimum)
        self._cache.put_negative(
            question.name,
            question.qtype,
            question.qclass,
            rcode=response.rcode,
            ttl=ttl,
            soa=soa_rr,
        )

    def _exchange(
        self, server: AuthorityEndpoint, question: Question, state: ResolutionState
    ) -> Tuple[DnsMessage, bool]:
        """Brief: Send over UDP, retrying over TCP when the answer is truncated.

        Outputs:
          - (response, truncated): truncated is True only when the TCP answer
            itself still carries TC.
        """

        state.check_deadline()
        state.step()
        msg_id = random.randint(0, 0xFFFF)
        query = make_query(
            question.name,
            question.qtype,
            question.qclass,
            msg_id=msg_id,
            edns_udp_payload=self._config.edns_udp_payload or None,
            dnssec_ok=self._config.dnssec,
        )
        wire = query.encode()
        logger.debug("asking %s for %s", server, question.to_text())
        response = self._send(server, wire, query, reliable=False, state=state)
        if response.tc:
            logger.debug("truncated UDP answer from %s; retrying over TCP", server)
            state.check_deadline()
            response = self._send(server, wire, query, reliable=True, state=state)
        return response, response.tc

    def _send(
        self,
        server: AuthorityEndpoint,
        wire: bytes,
        query: DnsMessage,
        *,
        reliable: bool,
        state: ResolutionState,
    ) -> DnsMessage:
        raw = self._transport.send(server, wire, reliable, state.deadline)
        response = decode(raw)
        if response.id != query.id:
            raise FormatError(f"response id {response.id} does not match query id {query.id}")
        if not response.qr:
            raise FormatError("response does not have the QR bit set")
        if response.questions and response.question != query.question:
            raise FormatError(f"response is for {response.question.to_text()}")
        return response

    # DNSSEC ----------------------------------------------------------------

    def _verify(self, response: DnsMessage, state: ResolutionState) -> DnssecStatus:
        records = list(response.answers) + list(response.authority)
        signers = []
        for rr in records:
            if rr.rrtype == RRType.RRSIG and isinstance(rr.payload, RRSIG):
                if rr.payload.signer not in signers:
                    signers.append(rr.payload.signer)
        keys: List[ResourceRecord] = []
        for signer in signers:
            keys.extend(self._zone_keys(signer, state))
        status = self._verifier.verify(records, keys)
        logger.debug("DNSSEC status for %s: %s", response.question, status)
        return status

    def _zone_keys(self, zone: DomainName, state: ResolutionState) -> List[ResourceRecord]:
        cached = self._cache.get(zone, RRType.DNSKEY, RRClass.IN)
        if cached:
            return _sorted(cached)
        try:
            chain = self._resolve_chain(Question(zone, RRType.DNSKEY, RRClass.IN), state)
        except ResolutionFailed as exc:
            logger.warning("could not fetch DNSKEY for %s: %s", zone, exc)
            return []
        return [rr for rr in chain.records if rr.rrtype == RRType.DNSKEY]


__all__ = [
    "DnsQueryResult",
    "IterativeResolver",
    "ROOT_HINTS",
    "ResolutionState",
    "ResolverConfig",
    "TraceHop",
    "follow_cnames",
]
