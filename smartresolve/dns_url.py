"""Upstream DNS server addresses written as URLs.

Accepted forms::

    8.8.8.8, [240e:1f:1::1], udp://8.8.8.8   plain DNS over UDP
    tcp://8.8.8.8:53                         DNS over TCP
    tls://8.8.8.8:853                        DNS over TLS
    quic://8.8.8.8:853                       DNS over QUIC
    https://1.1.1.1/dns-query                DNS over HTTPS
"""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import parse_qsl, urlsplit

from smartresolve.lookup import IpAddress

_BAD_HOST_CHARS = set('<>"^`{|}\\%')


class Protocol(Enum):
    """Transport protocols for reaching an upstream server."""

    UDP = "udp"
    TCP = "tcp"
    TLS = "tls"
    HTTPS = "https"
    QUIC = "quic"

    def is_datagram(self) -> bool:
        """True for protocols that send plain datagrams."""
        return self is Protocol.UDP


class DnsUrlParseError(ValueError):
    """Raised when text is not a usable DNS server URL.

    ``kind`` is ``"parse"``, ``"protocol"`` or ``"host"``.
    """

    def __init__(self, message: str, kind: str = "parse") -> None:
        super().__init__(message)
        self.kind = kind


_DEFAULT_PORTS = {
    Protocol.UDP: 53,
    Protocol.TCP: 53,
    Protocol.TLS: 853,
    Protocol.HTTPS: 443,
    Protocol.QUIC: 853,
}


def default_port(proto: Protocol) -> int:
    """The standard port of a protocol."""
    return _DEFAULT_PORTS[proto]


def _param_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _convert(value: str, kind: Callable[..., Any]) -> Any:
    if kind is bool:
        return value == "true"
    try:
        return kind(value)
    except (TypeError, ValueError):
        return kind()


class DnsUrl:
    """A parsed DNS server URL."""

    def __init__(self, proto: Protocol, host: Union[str, IpAddress],
                 port: Optional[int] = None, path: Optional[str] = None,
                 params: Optional[dict] = None) -> None:
        self.proto = proto
        self._host = host
        self._port = port
        self._path = path
        self._params = dict(params or {})
        if isinstance(host, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            self._addrs = [(host, self.port)]
        else:
            self._addrs = []

    @classmethod
    def parse(cls, text: str) -> "DnsUrl":
        """Parse a server URL; a missing scheme means UDP."""
        url = text.lower()
        if "://" not in url:
            url = "udp://" + url
        ends_with_slash = url.endswith("/")

        try:
            parts = urlsplit(url)
        except ValueError as exc:
            raise DnsUrlParseError(str(exc), "parse") from exc

        try:
            proto = Protocol(parts.scheme)
        except ValueError as exc:
            raise DnsUrlParseError(
                f"protocol not supported: {parts.scheme!r}", "protocol") from exc

        try:
            port = parts.port
        except ValueError as exc:
            raise DnsUrlParseError(str(exc), "parse") from exc

        hostname = parts.hostname
        if not hostname:
            raise DnsUrlParseError("host unspecified", "host")

        host: Union[str, IpAddress]
        try:
            host = ipaddress.ip_address(hostname)
        except ValueError:
            if "[" in parts.netloc:
                raise DnsUrlParseError(f"invalid IPv6 address: {hostname!r}", "parse")
            if any(c.isspace() or c in _BAD_HOST_CHARS for c in hostname):
                raise DnsUrlParseError(f"invalid host: {hostname!r}", "parse")
            host = hostname

        if proto is Protocol.HTTPS and port == default_port(proto):
            port = None

        path = parts.path
        if proto is Protocol.HTTPS and not path:
            path = "/"
        stored_path = None if path == "/" and not ends_with_slash else path

        params = dict(parse_qsl(parts.query, keep_blank_values=True))
        return cls(proto, host, port, stored_path, params)

    @classmethod
    def from_ip(cls, ip: Union[str, IpAddress]) -> "DnsUrl":
        """A plain UDP server URL for an IP address."""
        address = ipaddress.ip_address(ip)
        if isinstance(address, ipaddress.IPv6Address):
            return cls.parse(f"[{address}]")
        return cls.parse(str(address))

    @property
    def host(self) -> str:
        """The host as written in a URL; IPv6 addresses are bracketed."""
        if isinstance(self._host, ipaddress.IPv6Address):
            return f"[{self._host}]"
        return str(self._host)

    @property
    def domain(self) -> Optional[str]:
        """The host name, or None when the host is an IP address."""
        return self._host if isinstance(self._host, str) else None

    @property
    def port(self) -> int:
        """The given port, or the protocol's default."""
        return self._port if self._port is not None else default_port(self.proto)

    @property
    def path(self) -> str:
        """The request path; only HTTPS has one."""
        if self.proto is Protocol.HTTPS:
            return self._path if self._path is not None else "/dns-query"
        return ""

    @property
    def addrs(self) -> list:
        """Known socket addresses as (ip, port) pairs."""
        return list(self._addrs)

    @property
    def params(self) -> dict:
        """Query parameters, sorted by name."""
        return dict(sorted(self._params.items()))

    def is_default_port(self) -> bool:
        return self.port == default_port(self.proto)

    def set_ip_addrs(self, addrs: Iterable[Union[str, IpAddress]]) -> None:
        """Replace the known addresses, all on this URL's port."""
        self._addrs = [(ipaddress.ip_address(ip), self.port) for ip in addrs]

    def set_host_name(self, name: str) -> None:
        self._host = name

    def get_param(self, name: str, kind: Callable[..., Any] = str) -> Any:
        """A parameter converted by kind; None if absent, kind's default if unparsable."""
        value = self._params.get(name)
        if value is None:
            return None
        return _convert(value, kind)

    def set_param(self, name: str, value: Any) -> None:
        self._params[name] = _param_text(value)

    def sni_off(self) -> bool:
        """True when the URL turns SNI off via ``sni`` or ``enable_sni``."""
        for key in ("sni", "enable_sni"):
            value = self.get_param(key, bool)
            if value is not None:
                return not value
        return False

    def sni_on(self) -> bool:
        return not self.sni_off()

    def set_sni_on(self, value: bool) -> None:
        self.set_param("sni", bool(value))

    def set_sni_off(self, value: bool) -> None:
        self.set_param("sni", not value)

    def ssl_verify(self) -> bool:
        value = self.get_param("ssl_verify", bool)
        return True if value is None else value

    def set_ssl_verify(self, verify: bool) -> None:
        self.set_param("ssl_verify", bool(verify))

    def _key(self):
        return (self.proto, str(self._host), type(self._host).__name__, self._port,
                self._path, tuple(self._addrs), tuple(sorted(self._params.items())))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DnsUrl):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        out = f"{self.proto.value}://{self.host}"
        if not self.is_default_port():
            out += f":{self.port}"
        if self.proto is Protocol.HTTPS:
            out += self.path
        if self._params:
            out += "?" + "&".join(f"{n}={v}" for n, v in sorted(self._params.items()))
        return out

    def __repr__(self) -> str:
        return f"DnsUrl({str(self)!r})"