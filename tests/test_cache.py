import ipaddress

import pytest

from smartresolve.cache import CacheEntry, DnsLruCache, OutOfDate, TtlOpts
from smartresolve.lookup import Lookup, Query, Record, RecordType


def create_lookup(name, rr_type, ttl, now=1000.0):
    query = Query(name, rr_type)
    records = (Record(name, rr_type, ttl),)
    return Lookup(query, records, now + ttl)


def test_cache_persist(tmp_path):
    now = 1000.0
    lookup1 = create_lookup("abc.exmample.com.", RecordType.A, 3000, now)
    lookup2 = create_lookup("xyz.exmample.com.", RecordType.A, 3000, now)

    cache = DnsLruCache(10, TtlOpts())
    cache.insert_records(lookup1.query, iter(lookup1), now)
    cache.insert_records(lookup2.query, iter(lookup2), now)

    assert cache.get(lookup1.query, now) is not None
    assert len(cache) == 2

    path = tmp_path / "smartdns-test.cache"
    assert cache.persist(path) == 2
    assert lookup1.query in cache

    cache.clear()
    assert len(cache) == 0

    assert cache.load(path) == 2
    assert len(cache) == 2
    assert any(q == lookup1.query for q in cache)
    assert any(q == lookup2.query for q in cache)
    assert lookup1.query in cache
    assert lookup2.query in cache

    out_of_date, lookup = cache.get(lookup1.query, now)
    assert out_of_date is OutOfDate.NO
    assert lookup.query == lookup1.query
    assert lookup.records == lookup1.records


def test_entry_currency_and_ttl():
    entry = CacheEntry(create_lookup("a.example.com.", RecordType.A, 10), 50.0)
    assert entry.is_current(50.0)
    assert not entry.is_current(50.5)
    assert entry.ttl(40.0) == 10.0
    assert entry.ttl(60.0) == 0.0


def test_insert_uses_minimum_ttl():
    cache = DnsLruCache(4)
    query = Query("dns.example.com", RecordType.A)
    records = [
        Record.from_rdata("dns.example.com", 96, ipaddress.ip_address("192.0.2.1")),
        Record.from_rdata("dns.example.com", 48, ipaddress.ip_address("192.0.2.2")),
    ]
    lookup = cache.insert_records(query, records, 0.0)
    assert lookup.valid_until == 48.0
    assert lookup.records == tuple(records)


def test_insert_clamps_ttl_to_bounds():
    cache = DnsLruCache(4, TtlOpts(positive_min=30, positive_max=60))
    query = Query("a.example.com", RecordType.A)
    low = cache.insert(query, [(Record("a.example.com", RecordType.A, 5), 5)], 0.0)
    assert low.valid_until == 30.0
    high = cache.insert(query, [(Record("a.example.com", RecordType.A, 500), 500)], 0.0)
    assert high.valid_until == 60.0


def test_insert_records_groups_by_query():
    cache = DnsLruCache(8)
    query = Query("www.example.com", RecordType.CNAME)
    records = [
        Record("www.example.com", RecordType.CNAME, 60, "edge.example.com."),
        Record.from_rdata("edge.example.com", 60, ipaddress.ip_address("192.0.2.9")),
    ]
    lookup = cache.insert_records(query, records, 0.0)
    assert lookup.records == (records[0],)
    assert len(cache) == 2
    assert Query("edge.example.com", RecordType.A) in cache


def test_insert_records_without_match_returns_none():
    cache = DnsLruCache(8)
    records = [Record("other.example.com", RecordType.A, 60)]
    assert cache.insert_records(Query("www.example.com", RecordType.A), records, 0.0) is None
    assert len(cache) == 1


def test_get_missing_returns_none():
    cache = DnsLruCache(2)
    assert cache.get(Query("none.example.com", RecordType.A), 0.0) is None


def test_expired_entry_is_served_stale_with_new_ttl():
    cache = DnsLruCache(4, TtlOpts(negative_min=7))
    query = Query("a.example.com", RecordType.A)
    original = cache.insert(query, [(Record("a.example.com", RecordType.A, 20), 20)], 0.0)

    out_of_date, result = cache.get(query, 100.0)
    assert out_of_date is OutOfDate.YES
    assert result == original

    out_of_date, again = cache.get(query, 100.0)
    assert out_of_date is OutOfDate.YES
    assert all(r.ttl == 7 for r in again)


def test_expired_entry_dropped_without_stale_window():
    cache = DnsLruCache(4, TtlOpts(negative_max=0))
    query = Query("a.example.com", RecordType.A)
    cache.insert(query, [(Record("a.example.com", RecordType.A, 20), 20)], 0.0)
    assert cache.get(query, 100.0) is None
    assert query not in cache


def test_lru_eviction_keeps_recently_used():
    cache = DnsLruCache(2)
    q1, q2, q3 = (Query(f"h{i}.example.com", RecordType.A) for i in range(3))
    for q in (q1, q2):
        cache.insert(q, [(Record(q.name, RecordType.A, 60), 60)], 0.0)
    assert cache.get(q1, 0.0) is not None
    cache.insert(q3, [(Record(q3.name, RecordType.A, 60), 60)], 0.0)
    assert len(cache) == 2
    assert q1 in cache
    assert q2 not in cache
    assert q3 in cache


def test_zero_size_is_rejected():
    with pytest.raises(ValueError):
        DnsLruCache(0)


def test_load_missing_file_reads_nothing(tmp_path):
    cache = DnsLruCache(2)
    assert cache.load(tmp_path / "absent.cache") == 0
    assert len(cache) == 0