"""Name lookups against a dnsmasq DHCP lease file."""

from __future__ import annotations

import ipaddress
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from os import PathLike
from typing import Optional, Union

from smartresolve.lookup import IpAddress, Lookup, Query, Record, RecordType, normalize_name

_MAX_NAME_TEXT = 253


def _valid_host(host: str) -> bool:
    text = host[:-1] if host.endswith(".") else host
    if not text or len(text) > _MAX_NAME_TEXT:
        return False
    return all(1 <= len(label.encode("utf-8")) <= 63 for label in text.split("."))


def _join(name: str, zone: str) -> Optional[str]:
    """Append a zone to a normalized name, or None when the result is too long."""
    if not zone:
        return name
    joined = f"{name}.{zone}" if name else zone
    return joined if len(joined) <= _MAX_NAME_TEXT else None


def _zone_of(zone: str, name: str) -> bool:
    return not zone or name == zone or name.endswith("." + zone)


def _find(table: dict, name: str) -> Optional["ClientInfo"]:
    """Find a client by name, falling back to its parent domains."""
    key = normalize_name(name)
    while key:
        if key in table:
            return table[key]
        key = key.partition(".")[2]
    return None


@dataclass(frozen=True)
class ClientInfo:
    """One lease from a dnsmasq lease file."""

    id: str
    ip: IpAddress
    host: str
    mac: str
    expires_at: datetime

    @classmethod
    def parse(cls, line: str) -> "ClientInfo":
        """Parse a lease line: expiry, MAC, IP, host name and client id."""
        text = line.strip()
        if not text or text.startswith("#"):
            raise ValueError("empty or comment line")
        parts = iter([p for p in text.split(" ") if p])

        stamp = next(parts, None)
        try:
            expires_at = datetime.fromtimestamp(int(stamp), timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            expires_at = datetime.now(timezone.utc)

        mac = next(parts, None)
        if mac is None:
            raise ValueError("missing MAC address")
        ip_text = next(parts, None)
        if ip_text is None:
            raise ValueError("missing IP address")
        ip = ipaddress.ip_address(ip_text)
        host = next(parts, None)
        if host is None or not _valid_host(host):
            raise ValueError("missing or invalid host name")
        client_id = next(parts, None)
        if client_id is None:
            raise ValueError("missing client id")
        return cls(client_id, ip, host, mac, expires_at)

    def is_expired(self) -> bool:
        return self.expires_at < datetime.now(timezone.utc)


def read_lease_file(path: Union[str, PathLike], zone: Optional[str] = None) -> dict:
    """Read a lease file into a mapping from normalized host name to ClientInfo."""
    zone_key = normalize_name(zone) if zone else ""
    table = {}
    with open(path, "rb") as handle:
        for raw in handle:
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError:
                continue
            line = line.lstrip()
            if not line or line.startswith("#"):
                continue
            try:
                info = ClientInfo.parse(line)
            except ValueError:
                continue
            host = info.host[:-1] if info.host.endswith(".") else info.host
            if zone_key:
                joined = _join(host, zone.rstrip(".") if zone else "")
                if joined is not None:
                    host = joined
            info = replace(info, host=host + ".")
            table[normalize_name(info.host)] = info
    return table


class LanClientStore:
    """Answers address queries for LAN clients from a lease file, read on demand."""

    def __init__(self, file: Union[str, PathLike], zone: Optional[str] = None) -> None:
        self.file = file
        self.zone = zone

    def lookup(self, name: str, record_type: RecordType) -> Optional[IpAddress]:
        """The client's address for an A or AAAA query, or None."""
        if not record_type.is_ip_addr():
            return None
        try:
            table = read_lease_file(self.file, self.zone)
        except OSError:
            return None

        zone_key = normalize_name(self.zone) if self.zone else ""
        key = normalize_name(name)
        if not name.endswith(".") and zone_key:
            joined = _join(key, zone_key)
            if joined is not None:
                key = joined

        info = _find(table, key)
        if info is None and zone_key and not _zone_of(zone_key, key):
            joined = _join(key, zone_key)
            if joined is not None:
                info = _find(table, joined)
        if info is None:
            return None

        if isinstance(info.ip, ipaddress.IPv4Address) and record_type is RecordType.A:
            return info.ip
        if isinstance(info.ip, ipaddress.IPv6Address) and record_type is RecordType.AAAA:
            return info.ip
        return None

    def lookup_static(self, query: Query, local_ttl: int,
                      now: Optional[float] = None) -> Optional[Lookup]:
        """A local answer for the query with the given TTL, or None."""
        data = self.lookup(query.name, query.query_type)
        if data is None:
            return None
        now = time.monotonic() if now is None else now
        record = Record(query.name, query.query_type, local_ttl, data)
        return Lookup(query, (record,), now + local_ttl)