import ipaddress

from smartresolve.rules import (
    AddressKind,
    CNameRule,
    ConfigItem,
    DomainAddress,
    DomainRule,
    DomainRuleMap,
    DomainSetRef,
    ForwardRule,
    ResponseMode,
)

LOCALHOST = DomainAddress.from_ip("127.0.0.1")


def test_zone_rule():
    rules = DomainRuleMap.create(
        address_rules=[
            ConfigItem("a.b.c.www.example.com", LOCALHOST),
            ConfigItem("www.example.com", LOCALHOST),
            ConfigItem("example.com", LOCALHOST),
        ]
    )
    rule1 = rules.find("z.a.b.c.www.example.com")
    assert rule1 is not None
    assert rule1.name == "a.b.c.www.example.com"

    rule2 = rules.find("www.example.com")
    assert rule2.name == "www.example.com"
    assert rule1.zone is rule2
    assert rule2.zone.name == "example.com"
    assert rule2.zone.zone is None


def test_find_missing():
    rules = DomainRuleMap.create(address_rules=[ConfigItem("example.com", LOCALHOST)])
    assert rules.find("example.org") is None
    assert rules.find("EXAMPLE.com.").name == "example.com"


def test_address_attribute_delegation():
    rules = DomainRuleMap.create(address_rules=[ConfigItem("example.com", LOCALHOST)])
    node = rules.find("example.com")
    assert node.address.kind is AddressKind.IPV4
    assert node.address.ip == ipaddress.IPv4Address("127.0.0.1")


def test_domain_set_expansion_and_forward():
    rules = DomainRuleMap.create(
        forward_rules=[ForwardRule(DomainSetRef("office"), "bootstrap")],
        domain_sets={"office": ["a.example.com", "b.example.com"]},
    )
    assert rules.find("a.example.com").nameserver == "bootstrap"
    assert rules.find("x.b.example.com").nameserver == "bootstrap"
    assert len(rules) == 2


def test_missing_domain_set_is_empty():
    rules = DomainRuleMap.create(
        forward_rules=[ForwardRule(DomainSetRef("absent"), "bootstrap")]
    )
    assert len(rules) == 0


def test_cname_rule():
    rules = DomainRuleMap.create(
        cnames=[ConfigItem("www.example.com", CNameRule("cdn.example.net"))]
    )
    assert rules.find("www.example.com").cname == CNameRule("cdn.example.net")
    assert CNameRule().is_ignore


def test_identical_rules_are_shared():
    rules = DomainRuleMap.create(
        address_rules=[ConfigItem("a.com", LOCALHOST), ConfigItem("b.com", LOCALHOST)]
    )
    assert rules.find("a.com").rule is rules.find("b.com").rule


def test_domain_rules_merge_in_order():
    rules = DomainRuleMap.create(
        domain_rules=[
            ConfigItem("example.com", DomainRule(nameserver="g1", no_cache=True)),
            ConfigItem("example.com", DomainRule(nameserver="g2")),
        ]
    )
    node = rules.find("example.com")
    assert node.nameserver == "g2"
    assert node.no_cache is True


def test_merge_keeps_unset_values():
    base = DomainRule(nameserver="g1", speed_check_mode=("ping",), rr_ttl=10)
    merged = base.merge(DomainRule(rr_ttl_min=5))
    assert merged.nameserver == "g1"
    assert merged.speed_check_mode == ("ping",)
    assert merged.rr_ttl == 10
    assert merged.rr_ttl_min == 5


def test_response_mode_default():
    assert ResponseMode.default() is ResponseMode.FIRST_PING


def test_domain_address_rejects_ip_for_soa():
    try:
        DomainAddress(AddressKind.SOA, ipaddress.ip_address("1.2.3.4"))
    except ValueError as exc:
        assert "soa" in str(exc)
    else:
        raise AssertionError("expected ValueError")