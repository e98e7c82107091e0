"""Local zone answers: reverse lookups of the server itself and zone authorities."""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Any, Iterable, Optional, Union

from smartresolve.lookup import IpAddress, Lookup, Query, RecordType, normalize_name

log = logging.getLogger(__name__)

IpNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_V4_SUFFIX = "in-addr.arpa"
_V6_SUFFIX = "ip6.arpa"


def _labels_before(name: str, suffix: str) -> Optional[list]:
    if name == suffix:
        return []
    if name.endswith("." + suffix):
        return name[: -len(suffix) - 1].split(".")
    return None


def parse_arpa_name(name: str) -> IpNetwork:
    """The network named by a reverse-lookup name under in-addr.arpa or ip6.arpa."""
    key = normalize_name(name)

    labels = _labels_before(key, _V4_SUFFIX)
    if labels is not None:
        if len(labels) > 4:
            raise ValueError(f"too many labels in {name!r}")
        octets = []
        for label in reversed(labels):
            if not label.isdigit() or int(label) > 255:
                raise ValueError(f"invalid octet {label!r} in {name!r}")
            octets.append(int(label))
        prefix = 8 * len(octets)
        octets += [0] * (4 - len(octets))
        return ipaddress.IPv4Network((bytes(octets), prefix))

    labels = _labels_before(key, _V6_SUFFIX)
    if labels is not None:
        if len(labels) > 32:
            raise ValueError(f"too many labels in {name!r}")
        nibbles = []
        for label in reversed(labels):
            if len(label) != 1 or label not in "0123456789abcdef":
                raise ValueError(f"invalid nibble {label!r} in {name!r}")
            nibbles.append(label)
        prefix = 4 * len(nibbles)
        value = int("".join(nibbles).ljust(32, "0"), 16)
        return ipaddress.IPv6Network((value, prefix))

    raise ValueError(f"not a reverse-lookup name: {name!r}")


class Catalog:
    """Zone authorities by zone name, searched from a name up to the root."""

    def __init__(self) -> None:
        self._authorities: dict = {}

    def upsert(self, name: str, authority: Any) -> None:
        """Add or replace the authority for a zone."""
        self._authorities[normalize_name(name)] = authority

    def remove(self, name: str) -> Optional[Any]:
        """Remove a zone, returning its authority if there was one."""
        return self._authorities.pop(normalize_name(name), None)

    def contains(self, name: str) -> bool:
        """True if a zone of exactly this name is present."""
        return normalize_name(name) in self._authorities

    def find(self, name: str) -> Optional[Any]:
        """The authority of the closest enclosing zone, or None."""
        if not self._authorities:
            return None
        log.debug("searching authorities for: %s", name)
        key = normalize_name(name)
        while True:
            if key in self._authorities:
                return self._authorities[key]
            if not key:
                return None
            key = key.partition(".")[2]


def _local_addresses() -> list:
    addresses = {ipaddress.ip_address("127.0.0.1"), ipaddress.ip_address("::1")}
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None)
    except OSError:
        infos = []
    for info in infos:
        try:
            addresses.add(ipaddress.ip_address(info[4][0].split("%")[0]))
        except ValueError:
            continue
    return sorted(addresses, key=lambda ip: (ip.version, int(ip)))


class ServerZone:
    """Answers PTR queries that name this server, by name or by local address."""

    def __init__(self, server_name: str,
                 local_ips: Optional[Iterable[Union[str, IpAddress]]] = None,
                 server_names: Iterable[str] = ("smartdns.", "whoami.")) -> None:
        self.server_name = server_name
        ips = _local_addresses() if local_ips is None else local_ips
        self.server_net = [ipaddress.ip_network(ipaddress.ip_address(ip)) for ip in ips]
        self.server_names = {normalize_name(n) for n in server_names}
        self.catalog = Catalog()

    def is_current_server(self, name: str) -> bool:
        """True if the name is a server name or reverse-names one of its addresses."""
        if normalize_name(name) in self.server_names:
            return True
        try:
            net = parse_arpa_name(name)
        except ValueError:
            return False
        return any(local.version == net.version and local.subnet_of(net)
                   for local in self.server_net)

    def resolve_ptr(self, query: Query) -> Optional[Lookup]:
        """The server name as the answer to a PTR query about this server, or None."""
        if query.query_type is not RecordType.PTR:
            return None
        if not self.is_current_server(query.name):
            return None
        return Lookup.from_rdata(query, self.server_name)