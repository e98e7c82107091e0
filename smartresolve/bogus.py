"""Turning answers that contain bogus addresses into NXDOMAIN."""

from __future__ import annotations

import ipaddress
from typing import Iterable, Union

from smartresolve.lookup import Lookup, RecordType

BogusEntry = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address,
                   ipaddress.IPv4Network, ipaddress.IPv6Network]


class NXDomainError(Exception):
    """The answer is to be reported as a non-existent domain."""


def _networks(entries: Iterable[BogusEntry]) -> list:
    return [ipaddress.ip_network(entry, strict=False) for entry in entries]


def check_bogus(query_type: RecordType, lookup: Lookup,
                bogus_nxdomain: Iterable[BogusEntry]) -> Lookup:
    """Return the lookup, or raise NXDomainError if an address answer holds a bogus IP.

    The bogus list holds addresses or networks; only A and AAAA queries are checked.
    """
    if not query_type.is_ip_addr():
        return lookup
    networks = _networks(bogus_nxdomain)
    if not networks:
        return lookup
    for record in lookup:
        data = record.data
        if record.record_type is RecordType.A and isinstance(data, ipaddress.IPv4Address):
            ip = data
        elif record.record_type is RecordType.AAAA and isinstance(data, ipaddress.IPv6Address):
            ip = data
        else:
            continue
        if any(ip in net for net in networks):
            raise NXDomainError(f"bogus address {ip} for {lookup.query.name}")
    return lookup