# smartresolve

Building blocks for a rule-driven DNS forwarder. The package uses only the
standard library.

## Modules

- `smartresolve.lookup` defines the DNS data types:
  - `RecordType` is an enum of record types. `is_ip_addr()` is true for A and AAAA.
  - `Record` and `Query` compare names case-insensitively and ignore a trailing dot.
  - `Lookup` holds a query, its records and a monotonic `valid_until`
    deadline. It has `min_ttl()`, `max_ttl()` and `with_new_ttl()`.
  - `serialize(lookups, stream)` writes lookups to a binary stream and
    `deserialize(data)` reads them back. Malformed data raises
    `LookupDecodeError`.
- `smartresolve.cache` provides `DnsLruCache`, a bounded LRU cache of lookups.
  - `insert` and `insert_records` store records. The smallest record TTL
    becomes the entry's lifetime, clamped by `TtlOpts`.
  - `get` returns `(OutOfDate.NO, lookup)` for a current entry. An expired
    entry still inside the `negative_max` window comes back as
    `(OutOfDate.YES, lookup)`, and its stored records are rewritten to the
    `negative_min` TTL. Anything older is dropped.
  - `persist(path)` and `load(path)` save the cache to a file and read it back.
- `smartresolve.dns_url` parses upstream server URLs with `DnsUrl.parse`. It
  accepts `8.8.8.8`, `[240e:1f:1::1]`, `udp://…`, `tcp://…`, `tls://…`,
  `quic://…` and `https://…/dns-query`.
  - A missing scheme means UDP.
  - Each protocol has a default port (`default_port`): 53, 853 or 443.
  - Query parameters are available through `get_param` and `set_param`, and
    through `sni_off`/`sni_on` and `ssl_verify`.
  - `DnsUrl.from_ip` builds a plain UDP URL.
  - Parse failures raise `DnsUrlParseError`.
- `smartresolve.rules` merges domain, address, forward and cname rules, and
  expands domain sets, with `DomainRuleMap.create`.
  - `DomainRuleMap.find(name)` returns the `DomainRuleTreeNode` of the name or
    of its closest parent domain that has a rule.
  - Each node links to its parent's node through `zone`.
  - A node's rule settings can be read as attributes of the node.
- `smartresolve.bogus`: `check_bogus(query_type, lookup, bogus_nxdomain)`
  raises `NXDomainError` when an A or AAAA answer holds an address in one of
  the listed addresses or networks.
- `smartresolve.dnsmasq` reads dnsmasq DHCP lease files with
  `read_lease_file` and `ClientInfo.parse`. `LanClientStore.lookup` answers A
  and AAAA queries for LAN host names, optionally under a zone.
  `LanClientStore.lookup_static` wraps the answer in a `Lookup` with a local TTL.
- `smartresolve.zone` handles local zone answers:
  - `parse_arpa_name` turns `in-addr.arpa` and `ip6.arpa` names into networks.
  - `ServerZone.resolve_ptr` answers PTR queries about the server's own names
    (`smartdns.`, `whoami.`) and addresses with the configured server name.
  - `Catalog` finds the authority of the closest enclosing zone.
- `smartresolve.audit` records answered queries:
  - `AuditRecord` formats a query as a log line.
  - `write_audit_records` appends records to a file: CSV with a header when
    the file name ends in `.csv`, plain log lines otherwise.
  - `AuditLog` buffers records and writes them out in batches. It flushes on
    leaving a `with` block.
  - `format_duration` renders durations such as `10ms` or `1.5s`.

## Examples

```python
from smartresolve.dns_url import DnsUrl, Protocol

url = DnsUrl.parse("tls://8.8.8.8:953")
url.set_host_name("dns.google")
assert url.proto is Protocol.TLS
assert str(url) == "tls://dns.google:953"
```

```python
import ipaddress
from smartresolve.lookup import Query, Record, RecordType
from smartresolve.cache import DnsLruCache, OutOfDate

cache = DnsLruCache(100)
query = Query("example.com", RecordType.A)
record = Record.from_rdata("example.com", 300, ipaddress.IPv4Address("192.0.2.1"))
cache.insert_records(query, [record], now=0.0)

state, lookup = cache.get(query, now=10.0)
assert state is OutOfDate.NO
assert lookup.min_ttl() == 300
```

## What it does not do

This package has no DNS server and no network transport. It does not send
queries to upstream servers, does not listen for client requests, and has no
command-line program. It does not read configuration files. The package also
does not answer queries from address rules, and it does not clip the record
count or TTLs of replies. Rules, URLs, caches and lookups are built in code
from the types above.

## Tests

```
pip install -e .[test]
pytest
```