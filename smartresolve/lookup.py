"""DNS records, queries and lookups, with a compact binary form for persistence."""

from __future__ import annotations

import ipaddress
import struct
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import BinaryIO, Iterable, Iterator, Optional, Union

MAX_TTL = 86400
DNS_CLASS_IN = 1

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
RData = Union[IpAddress, str, bytes, None]


class LookupDecodeError(ValueError):
    """Raised when serialized lookup data cannot be decoded."""


class RecordType(Enum):
    """DNS resource record types."""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    SVCB = 64
    HTTPS = 65
    ANY = 255

    def is_ip_addr(self) -> bool:
        """True for the address record types A and AAAA."""
        return self in (RecordType.A, RecordType.AAAA)

    def __str__(self) -> str:
        return self.name


_NAME_TYPES = (RecordType.CNAME, RecordType.NS, RecordType.PTR)


def normalize_name(name: str) -> str:
    """Return the comparison form of a domain name: lower case, no trailing dot."""
    if name.endswith("."):
        name = name[:-1]
    return name.lower()


@dataclass(frozen=True, eq=False)
class Record:
    """A resource record; names compare case-insensitively and ignore a trailing dot."""

    name: str
    record_type: RecordType
    ttl: int
    data: RData = None
    dns_class: int = DNS_CLASS_IN

    @classmethod
    def from_rdata(cls, name: str, ttl: int, data: RData,
                   record_type: Optional[RecordType] = None) -> "Record":
        """Build a record, inferring the type from an IP address when not given."""
        if record_type is None:
            if isinstance(data, ipaddress.IPv4Address):
                record_type = RecordType.A
            elif isinstance(data, ipaddress.IPv6Address):
                record_type = RecordType.AAAA
            else:
                raise ValueError("record type required for non-address data")
        return cls(name, record_type, ttl, data)

    def with_ttl(self, ttl: int) -> "Record":
        return replace(self, ttl=ttl)

    def _key(self):
        return (normalize_name(self.name), self.record_type, self.dns_class,
                self.ttl, self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


@dataclass(frozen=True, eq=False)
class Query:
    """A question: a name, a record type and a class."""

    name: str
    query_type: RecordType
    query_class: int = DNS_CLASS_IN

    def _key(self):
        return (normalize_name(self.name), self.query_type, self.query_class)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return f"{self.name} {self.query_type}"


@dataclass(frozen=True, eq=False)
class Lookup:
    """The answer to a query, valid until a monotonic deadline in seconds."""

    query: Query
    records: tuple
    valid_until: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))

    @classmethod
    def from_rdata(cls, query: Query, data: RData, now: Optional[float] = None) -> "Lookup":
        """A single-record answer with the maximum TTL."""
        now = time.monotonic() if now is None else now
        record = Record(query.name, query.query_type, MAX_TTL, data)
        return cls(query, (record,), now + MAX_TTL)

    @classmethod
    def new_with_max_ttl(cls, query: Query, records: Iterable[Record],
                         now: Optional[float] = None) -> "Lookup":
        now = time.monotonic() if now is None else now
        return cls(query, tuple(records), now + MAX_TTL)

    def min_ttl(self) -> Optional[int]:
        return min((r.ttl for r in self.records), default=None)

    def max_ttl(self) -> Optional[int]:
        return max((r.ttl for r in self.records), default=None)

    def with_new_ttl(self, ttl: int) -> "Lookup":
        """A copy whose records all carry the given TTL."""
        return replace(self, records=tuple(r.with_ttl(ttl) for r in self.records))

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lookup):
            return NotImplemented
        return (self.query == other.query and self.records == other.records
                and self.valid_until == other.valid_until)

    def __hash__(self) -> int:
        return hash((self.query, self.records, self.valid_until))


def _encode_name(name: str) -> bytes:
    text = name[:-1] if name.endswith(".") else name
    if not text:
        return b"\x00"
    out = bytearray()
    for label in text.split("."):
        raw = label.encode("utf-8")
        if not 1 <= len(raw) <= 63:
            raise ValueError(f"invalid label in name {name!r}")
        out.append(len(raw))
        out += raw
    out.append(0)
    if len(out) > 255:
        raise ValueError(f"name too long: {name!r}")
    return bytes(out)


def _encode_rdata(record: Record) -> bytes:
    data = record.data
    if data is None:
        return b""
    if isinstance(data, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return data.packed
    if isinstance(data, str):
        return _encode_name(data)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    raise TypeError(f"unsupported record data: {data!r}")


def _encode_lookup(lookup: Lookup) -> bytes:
    if len(lookup.records) > 255:
        raise ValueError("a lookup holds at most 255 records")
    query = lookup.query
    out = bytearray(_encode_name(query.name))
    out += struct.pack(">HH", query.query_type.value, query.query_class)
    out += struct.pack(">d", lookup.valid_until)
    out.append(len(lookup.records))
    for record in lookup.records:
        rdata = _encode_rdata(record)
        out += _encode_name(record.name)
        out += struct.pack(">HHIH", record.record_type.value, record.dns_class,
                           record.ttl, len(rdata))
        out += rdata
    return bytes(out)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise LookupDecodeError("unexpected end of data")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: str):
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def name(self) -> str:
        labels = []
        while True:
            size = self.take(1)[0]
            if size == 0:
                break
            if size > 63:
                raise LookupDecodeError("invalid label length")
            try:
                labels.append(self.take(size).decode("utf-8"))
            except UnicodeDecodeError as exc:
                raise LookupDecodeError("invalid label") from exc
        return ".".join(labels) + "."

    def record_type(self) -> RecordType:
        (value,) = self.unpack(">H")
        try:
            return RecordType(value)
        except ValueError as exc:
            raise LookupDecodeError(f"unknown record type {value}") from exc


def _decode_rdata(record_type: RecordType, raw: bytes) -> RData:
    if not raw:
        return None
    if record_type is RecordType.A:
        if len(raw) != 4:
            raise LookupDecodeError("bad A record length")
        return ipaddress.IPv4Address(raw)
    if record_type is RecordType.AAAA:
        if len(raw) != 16:
            raise LookupDecodeError("bad AAAA record length")
        return ipaddress.IPv6Address(raw)
    if record_type in _NAME_TYPES:
        reader = _Reader(raw)
        name = reader.name()
        if not reader.at_end():
            raise LookupDecodeError("trailing bytes after name")
        return name
    return bytes(raw)


def _decode_lookup(reader: _Reader) -> Lookup:
    name = reader.name()
    query_type = reader.record_type()
    (query_class,) = reader.unpack(">H")
    (valid_until,) = reader.unpack(">d")
    count = reader.take(1)[0]
    records = []
    for _ in range(count):
        rname = reader.name()
        rtype = reader.record_type()
        rclass, ttl, length = reader.unpack(">HIH")
        data = _decode_rdata(rtype, reader.take(length))
        records.append(Record(rname, rtype, ttl, data, rclass))
    return Lookup(Query(name, query_type, query_class), tuple(records), valid_until)


def serialize(lookups: Iterable[Lookup], stream: BinaryIO) -> None:
    """Write lookups one after another to a binary stream."""
    for lookup in lookups:
        stream.write(_encode_lookup(lookup))


def deserialize(data: bytes) -> list:
    """Read back every lookup written by serialize."""
    reader = _Reader(bytes(data))
    lookups = []
    while not reader.at_end():
        lookups.append(_decode_lookup(reader))
    return lookups