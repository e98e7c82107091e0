"""An LRU cache of DNS lookups with TTL clamping, stale serving and persistence."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from os import PathLike
from typing import Iterable, Iterator, Optional, Tuple, Union

from smartresolve.lookup import (
    MAX_TTL,
    Lookup,
    LookupDecodeError,
    Query,
    Record,
    deserialize,
    serialize,
)

log = logging.getLogger(__name__)

CachedResult = Union[Lookup, Exception]


@dataclass
class TtlOpts:
    """TTL bounds in seconds for positive answers and for stale (negative) serving."""

    positive_min: int = 0
    positive_max: int = MAX_TTL
    negative_min: int = 0
    negative_max: int = MAX_TTL


class OutOfDate(Enum):
    """Whether a cached answer has passed its deadline."""

    YES = "yes"
    NO = "no"


@dataclass
class CacheEntry:
    """A cached answer (or error) and the monotonic time it stays valid until."""

    lookup: CachedResult
    valid_until: float

    def is_current(self, now: float) -> bool:
        """True while the entry has not expired."""
        return now <= self.valid_until

    def ttl(self, now: float) -> float:
        """Seconds left before the entry expires, never negative."""
        return max(0.0, self.valid_until - now)


class DnsLruCache:
    """A bounded least-recently-used cache of lookups keyed by query."""

    def __init__(self, cache_size: int, ttl: Optional[TtlOpts] = None) -> None:
        if cache_size <= 0:
            raise ValueError("cache size must be positive")
        self.cache_size = cache_size
        self.ttl = ttl if ttl is not None else TtlOpts()
        self._entries: "OrderedDict[Query, CacheEntry]" = OrderedDict()

    def _put(self, query: Query, entry: CacheEntry) -> None:
        self._entries[query] = entry
        self._entries.move_to_end(query)
        while len(self._entries) > self.cache_size:
            self._entries.popitem(last=False)

    def insert(self, query: Query, records_and_ttl: Iterable[Tuple[Record, int]],
               now: float) -> Lookup:
        """Store records under a query, valid for their smallest TTL within bounds."""
        records = []
        ttl = self.ttl.positive_max
        for record, record_ttl in records_and_ttl:
            records.append(record)
            ttl = min(ttl, record_ttl)
        ttl = max(self.ttl.positive_min, ttl)
        ttl = min(self.ttl.positive_max, ttl)
        valid_until = now + ttl
        lookup = Lookup(query, tuple(records), valid_until)
        self._put(query, CacheEntry(lookup, valid_until))
        return lookup

    def insert_records(self, original_query: Query, records: Iterable[Record],
                       now: float) -> Optional[Lookup]:
        """Store records grouped by name, type and class.

        Returns the lookup stored for the original query, or None when no
        record matched it.
        """
        groups: "dict[Query, list]" = {}
        for record in records:
            query = Query(record.name, record.record_type, record.dns_class)
            groups.setdefault(query, []).append((record, record.ttl))

        result = None
        for query, records_and_ttl in groups.items():
            inserted = self.insert(query, records_and_ttl, now)
            if query == original_query:
                result = inserted
        return result

    def get(self, query: Query, now: float) -> Optional[Tuple[OutOfDate, CachedResult]]:
        """Look a query up.

        A current entry comes back marked OutOfDate.NO. An expired entry still
        within the stale window comes back marked OutOfDate.YES, and its stored
        records are rewritten to carry the stale reply TTL. Anything older is
        dropped.
        """
        entry = self._entries.get(query)
        if entry is None:
            return None
        self._entries.move_to_end(query)

        if entry.is_current(now):
            return OutOfDate.NO, entry.lookup

        negative_ttl = max(0.0, entry.valid_until - now)
        if negative_ttl < self.ttl.negative_max:
            result = entry.lookup
            if isinstance(result, Lookup):
                entry.lookup = result.with_new_ttl(int(self.ttl.negative_min))
            return OutOfDate.YES, result

        del self._entries[query]
        return None

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def persist(self, path: Union[str, PathLike]) -> int:
        """Write every cached answer to a file; returns how many were written."""
        lookups = [e.lookup for e in self._entries.values() if isinstance(e.lookup, Lookup)]
        try:
            with open(path, "wb") as handle:
                serialize(lookups, handle)
        except (OSError, ValueError, TypeError) as err:
            log.error("failed to save DNS cache to file %s: %s", path, err)
            return 0
        log.info("saved DNS cache to file %s", path)
        return len(lookups)

    def load(self, path: Union[str, PathLike]) -> int:
        """Read answers written by persist into the cache; returns how many were read."""
        log.info("reading DNS cache from file %s", path)
        try:
            with open(path, "rb") as handle:
                lookups = deserialize(handle.read())
        except (OSError, LookupDecodeError) as err:
            log.error("failed to read DNS cache file %s: %s", path, err)
            return 0
        for lookup in lookups:
            self._put(lookup.query, CacheEntry(lookup, lookup.valid_until))
        log.info("DNS cache %d records loaded", len(lookups))
        return len(lookups)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: object) -> bool:
        return query in self._entries

    def __iter__(self) -> Iterator[Query]:
        return iter(list(self._entries))