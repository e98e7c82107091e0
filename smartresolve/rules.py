"""Per-domain rules arranged as a tree that follows the domain hierarchy."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar, Union

from smartresolve.lookup import IpAddress, normalize_name

T = TypeVar("T")


class AddressKind(Enum):
    """What an address rule does with a query."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"
    SOA = "soa"
    SOA_V4 = "soa_v4"
    SOA_V6 = "soa_v6"
    IGNORE = "ignore"
    IGNORE_V4 = "ignore_v4"
    IGNORE_V6 = "ignore_v6"


@dataclass(frozen=True)
class DomainAddress:
    """A fixed answer, an SOA answer, or an instruction to ignore address rules."""

    kind: AddressKind
    ip: Optional[IpAddress] = None

    def __post_init__(self) -> None:
        if self.kind is AddressKind.IPV4:
            object.__setattr__(self, "ip", ipaddress.IPv4Address(self.ip))
        elif self.kind is AddressKind.IPV6:
            object.__setattr__(self, "ip", ipaddress.IPv6Address(self.ip))
        elif self.ip is not None:
            raise ValueError(f"{self.kind.value} address rule takes no IP")

    @classmethod
    def from_ip(cls, ip: Union[str, IpAddress]) -> "DomainAddress":
        """An address rule answering with the given IP."""
        address = ipaddress.ip_address(ip)
        kind = AddressKind.IPV4 if address.version == 4 else AddressKind.IPV6
        return cls(kind, address)


@dataclass(frozen=True)
class CNameRule:
    """Answer with an alias name, or ignore alias rules when name is None."""

    name: Optional[str] = None

    @property
    def is_ignore(self) -> bool:
        return self.name is None


class ResponseMode(Enum):
    """How answers from several servers are chosen."""

    FIRST_PING = "first-ping"
    FASTEST_IP = "fastest-ip"
    FASTEST_RESPONSE = "fastest-response"

    @classmethod
    def default(cls) -> "ResponseMode":
        return cls.FIRST_PING


@dataclass(frozen=True)
class DomainSetRef:
    """A reference to a named set of domains."""

    name: str


DomainId = Union[str, DomainSetRef]


@dataclass(frozen=True)
class ConfigItem:
    """A value attached to a domain or to a domain set."""

    name: DomainId
    value: Any


@dataclass(frozen=True)
class ForwardRule:
    """Send queries for a domain to a named server group."""

    domain: DomainId
    nameserver: str


@dataclass(frozen=True)
class DomainRule:
    """Settings that apply to one domain."""

    nameserver: Optional[str] = None
    address: Optional[DomainAddress] = None
    cname: Optional[CNameRule] = None
    speed_check_mode: tuple = field(default_factory=tuple)
    dualstack_ip_selection: Optional[bool] = None
    response_mode: Optional[ResponseMode] = None
    no_cache: Optional[bool] = None
    no_serve_expired: Optional[bool] = None
    rr_ttl: Optional[int] = None
    rr_ttl_min: Optional[int] = None
    rr_ttl_max: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "speed_check_mode", tuple(self.speed_check_mode))

    def merge(self, other: "DomainRule") -> "DomainRule":
        """This rule overridden by the settings that other sets."""
        def pick(mine, theirs):
            return theirs if theirs is not None else mine

        return replace(
            self,
            nameserver=pick(self.nameserver, other.nameserver),
            address=pick(self.address, other.address),
            speed_check_mode=other.speed_check_mode or self.speed_check_mode,
            dualstack_ip_selection=pick(self.dualstack_ip_selection,
                                        other.dualstack_ip_selection),
            no_cache=pick(self.no_cache, other.no_cache),
            no_serve_expired=pick(self.no_serve_expired, other.no_serve_expired),
            rr_ttl=pick(self.rr_ttl, other.rr_ttl),
            rr_ttl_min=pick(self.rr_ttl_min, other.rr_ttl_min),
            rr_ttl_max=pick(self.rr_ttl_max, other.rr_ttl_min),
        )


class DomainRuleTreeNode:
    """A domain's rule, linked to the node of its closest parent domain with a rule.

    Rule settings are readable directly as attributes of the node.
    """

    def __init__(self, name: str, rule: DomainRule,
                 zone: Optional["DomainRuleTreeNode"] = None) -> None:
        self.name = name
        self.rule = rule
        self.zone = zone

    def __getattr__(self, attr: str) -> Any:
        if attr.startswith("_") or attr in ("name", "rule", "zone"):
            raise AttributeError(attr)
        return getattr(self.rule, attr)

    def get(self, func: Callable[["DomainRuleTreeNode"], Optional[T]]) -> Optional[T]:
        """func of this node, or else func of the parent node."""
        value = func(self)
        if value is None and self.zone is not None:
            value = func(self.zone)
        return value

    def __repr__(self) -> str:
        return f"DomainRuleTreeNode({self.name!r})"


def _expand(domain: DomainId, domain_sets: Mapping[str, Iterable[str]]) -> list:
    if isinstance(domain, DomainSetRef):
        return list(domain_sets.get(domain.name, ()))
    return [domain]


def _sort_key(name: str) -> tuple:
    return tuple(reversed(normalize_name(name).split(".")))


class DomainRuleMap:
    """Domain rules found by name, matching the closest enclosing domain."""

    def __init__(self) -> None:
        self._rules: dict = {}

    @classmethod
    def create(cls, domain_rules: Iterable[ConfigItem] = (),
               address_rules: Iterable[ConfigItem] = (),
               forward_rules: Iterable[ForwardRule] = (),
               domain_sets: Optional[Mapping[str, Iterable[str]]] = None,
               cnames: Iterable[ConfigItem] = ()) -> "DomainRuleMap":
        """Combine every kind of rule into one map."""
        domain_sets = domain_sets or {}
        by_name: dict = {}

        def update(name: str, change: Callable[[DomainRule], DomainRule]) -> None:
            key = normalize_name(name)
            spelled, rule = by_name.get(key, (name, DomainRule()))
            by_name[key] = (spelled, change(rule))

        for item in domain_rules:
            for name in _expand(item.name, domain_sets):
                update(name, lambda r, v=item.value: r.merge(v))

        for item in address_rules:
            for name in _expand(item.name, domain_sets):
                update(name, lambda r, v=item.value: replace(r, address=v))

        for rule in forward_rules:
            for name in _expand(rule.domain, domain_sets):
                update(name, lambda r, v=rule.nameserver: replace(r, nameserver=v))

        for item in cnames:
            for name in _expand(item.name, domain_sets):
                update(name, lambda r, v=item.value: replace(r, cname=v))

        result = cls()
        pool: dict = {}
        for key, (name, rule) in sorted(by_name.items(), key=lambda kv: _sort_key(kv[0])):
            shared = pool.setdefault(rule, rule)
            zone = result.find(key.partition(".")[2]) if key else None
            result._rules[key] = DomainRuleTreeNode(name, shared, zone)
        return result

    def find(self, name: str) -> Optional[DomainRuleTreeNode]:
        """The node of the name itself or of its closest parent domain."""
        key = normalize_name(name)
        while True:
            if key in self._rules:
                return self._rules[key]
            if not key:
                return None
            key = key.partition(".")[2]

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._rules