from __future__ import annotations

import logging
import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from cachetools import Cache, LRUCache

from .name import DomainName
from .records import RRClass, ResourceRecord

""" Bounded, TTL-aware RRset cache shared by concurrent resolutions.

Brief:
  Entries are keyed by (name, type, class). Each entry remembers when it was
  inserted and one TTL for the whole RRset; the remaining TTL is the stored
  TTL minus the time elapsed since insertion, and an entry with no remaining
  TTL is treated as absent and dropped when looked at. Negative results
  (NXDOMAIN / NODATA) share the same capacity budget.

  Records learnt from referrals (delegation NS sets and glue) are kept apart
  from answer data: get() never returns them, get_delegation() does. A
  non-authoritative referral is good enough to find the next server to ask,
  not to answer a question with.

Notes:
  - Capacity is enforced with cachetools.LRUCache: inserting beyond capacity
    evicts the least recently accessed key.
  - capacity == 0 turns the cache into a pass-through that stores nothing.
  - Every public method runs under a single RLock.
"""


_logger = logging.getLogger(__name__)

CacheKey = Tuple[DomainName, int, int]


@dataclass(frozen=True)
class CacheEntry:
    """Positive RRset entry.

    Inputs:
      - records: Records stored with the entry TTL.
      - inserted_at: Clock reading at insertion.
      - ttl: Entry TTL in seconds.
    """

    records: FrozenSet[ResourceRecord]
    inserted_at: float
    ttl: int

    def remaining(self, now: float) -> float:
        return self.ttl - (now - self.inserted_at)


@dataclass(frozen=True)
class NegativeEntry:
    """Cached NXDOMAIN or NODATA result for one (name, type, class).

    Inputs:
      - rcode: Response code of the negative answer.
      - soa: SOA record from the authority section, when the server sent one.
      - inserted_at: Clock reading at insertion.
      - ttl: Negative TTL in seconds.
    """

    rcode: int
    soa: Optional[ResourceRecord]
    inserted_at: float
    ttl: int

    def remaining(self, now: float) -> float:
        return self.ttl - (now - self.inserted_at)


class _LRUStore(LRUCache):
    """LRUCache that reports capacity evictions to its owner."""

    def __init__(self, maxsize: int, on_evict: Callable[[object], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key)
        return key, value

    def peek_items(self) -> List[Tuple[object, object]]:
        """Items without refreshing recency."""

        return [(key, Cache.__getitem__(self, key)) for key in list(self)]


class ZoneCache:
    """Thread-safe RRset cache with per-entry TTL and LRU capacity bound.

    Inputs:
      - capacity: Maximum number of keys (positive and negative combined).
        0 disables caching.
      - clock: Callable returning seconds; defaults to time.monotonic. Tests
        inject a fake clock to simulate expiry.

    Outputs:
      - ZoneCache instance.

    Example use:
        >>> from iterdns.records import a
        >>> cache = ZoneCache(capacity=16)
        >>> cache.put([a("www.example.com", "192.0.2.1", ttl=60)])
        >>> len(cache.get("www.example.com", 1))
        1
    """

    def __init__(
        self,
        capacity: int = 4096,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._capacity = max(0, int(capacity))
        self._clock: Callable[[], float] = clock or time.monotonic
        self._lock = threading.RLock()
        self._store: Optional[_LRUStore] = (
            _LRUStore(self._capacity, self._count_capacity_eviction)
            if self._capacity
            else None
        )

        # Best-effort counters for diagnostics; they never affect lookups.
        self.cache_hits: int = 0
        self.cache_misses: int = 0
        self.evictions_ttl: int = 0
        self.evictions_capacity: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def _count_capacity_eviction(self, key: object) -> None:
        self.evictions_capacity += 1
        _logger.debug("ZoneCache capacity eviction: key=%r", key)

    @staticmethod
    def _key(name: Union[DomainName, str], rrtype: int, rrclass: int) -> CacheKey:
        return (DomainName.coerce(name), int(rrtype), int(rrclass))

    def _lookup_locked(self, key: Tuple[str, CacheKey], now: float):
        entry = self._store.get(key) if self._store is not None else None
        if entry is None:
            self.cache_misses += 1
            return None
        if entry.remaining(now) <= 0:
            del self._store[key]
            self.evictions_ttl += 1
            self.cache_misses += 1
            _logger.debug("ZoneCache TTL eviction (get): key=%r", key)
            return None
        self.cache_hits += 1
        return entry

    # Positive RRsets -------------------------------------------------------

    def get(
        self,
        name: Union[DomainName, str],
        rrtype: int,
        rrclass: int = RRClass.IN,
    ) -> FrozenSet[ResourceRecord]:
        """Brief: Return the live RRset for (name, type, class).

        Inputs:
          - name: Owner name.
          - rrtype: Record type code.
          - rrclass: Record class code (default IN).

        Outputs:
          - frozenset of records whose TTL is the remaining TTL, or an empty
            frozenset on a miss or expiry.
        """

        key = ("rrset", self._key(name, rrtype, rrclass))
        with self._lock:
            now = self._clock()
            return self._records_locked(self._lookup_locked(key, now), now)

    def get_delegation(
        self,
        name: Union[DomainName, str],
        rrtype: int,
        rrclass: int = RRClass.IN,
    ) -> FrozenSet[ResourceRecord]:
        """Brief: Return the RRset to use for finding nameservers.

        Inputs:
          - name: Owner name (a zone cut for NS, a nameserver for A/AAAA).
          - rrtype: Record type code.
          - rrclass: Record class code (default IN).

        Outputs:
          - The answer RRset when one is cached, otherwise the RRset learnt
            from a referral; empty on a miss.
        """

        key = self._key(name, rrtype, rrclass)
        with self._lock:
            now = self._clock()
            entry = self._lookup_locked(("rrset", key), now)
            if entry is None:
                entry = self._lookup_locked(("delegation", key), now)
            return self._records_locked(entry, now)

    @staticmethod
    def _records_locked(entry: Optional[CacheEntry], now: float) -> FrozenSet[ResourceRecord]:
        if entry is None:
            return frozenset()
        remaining = int(math.ceil(entry.remaining(now)))
        return frozenset(rr.with_ttl(remaining) for rr in entry.records)

    def put(self, records: Iterable[ResourceRecord], *, authoritative: bool = True) -> None:
        """Brief: Insert records, merging each RRset with any live entry.

        Inputs:
          - records: Records in any order; they are grouped by
            (name, type, class). An RRset with any TTL-0 member is not
            cached at all.
          - authoritative: False for referral data (delegation NS sets and
            glue), which only get_delegation() returns.

        Outputs:
          - None

        Notes:
          - A merged entry is re-stamped with the current time and takes the
            smallest TTL among the existing entry's remaining TTL and the new
            records' TTLs.
          - Answer data for a key replaces a cached negative result.
        """

        if self._store is None:
            return
        groups: Dict[CacheKey, List[ResourceRecord]] = defaultdict(list)
        for rr in records:
            groups[rr.key].append(rr)
        kind = "rrset" if authoritative else "delegation"
        with self._lock:
            now = self._clock()
            for key, new_records in groups.items():
                ttl = min(rr.ttl for rr in new_records)
                if ttl <= 0:
                    continue
                merged = list(new_records)
                existing = self._store.get((kind, key))
                if existing is not None:
                    remaining = existing.remaining(now)
                    if remaining > 0:
                        ttl = min(ttl, int(math.ceil(remaining)))
                        merged.extend(existing.records)
                if authoritative:
                    self._store.pop(("negative", key), None)
                self._store[(kind, key)] = CacheEntry(
                    records=frozenset(rr.with_ttl(ttl) for rr in merged),
                    inserted_at=now,
                    ttl=ttl,
                )

    # Negative results ------------------------------------------------------

    def put_negative(
        self,
        name: Union[DomainName, str],
        rrtype: int,
        rrclass: int,
        *,
        rcode: int,
        ttl: int,
        soa: Optional[ResourceRecord] = None,
    ) -> None:
        """Brief: Record that (name, type, class) does not exist for `ttl` seconds."""

        if self._store is None or ttl <= 0:
            return
        key = self._key(name, rrtype, rrclass)
        with self._lock:
            self._store[("negative", key)] = NegativeEntry(
                rcode=int(rcode), soa=soa, inserted_at=self._clock(), ttl=int(ttl)
            )

    def get_negative(
        self,
        name: Union[DomainName, str],
        rrtype: int,
        rrclass: int = RRClass.IN,
    ) -> Optional[NegativeEntry]:
        key = ("negative", self._key(name, rrtype, rrclass))
        with self._lock:
            return self._lookup_locked(key, self._clock())

    # Maintenance -----------------------------------------------------------

    def evict_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""

        if self._store is None:
            return 0
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._store.peek_items() if entry.remaining(now) <= 0]
            for k in expired:
                del self._store[k]
            self.evictions_ttl += len(expired)
            return len(expired)

    def clear(self) -> None:
        if self._store is None:
            return
        with self._lock:
            # MutableMapping.clear() goes through popitem(), which would be
            # counted as capacity evictions.
            for key in list(self._store):
                del self._store[key]

    def __len__(self) -> int:
        if self._store is None:
            return 0
        with self._lock:
            return len(self._store)

    def stats(self) -> Dict[str, int]:
        """Brief: Snapshot of counters and size for diagnostics."""

        with self._lock:
            return {
                "capacity": self._capacity,
                "size": len(self._store) if self._store is not None else 0,
                "cache_hits": self.cache_hits,
                "cache_misses": self.cache_misses,
                "evictions_ttl": self.evictions_ttl,
                "evictions_capacity": self.evictions_capacity,
            }
