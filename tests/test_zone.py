import ipaddress

import pytest

from smartresolve.lookup import Query, RecordType
from smartresolve.zone import Catalog, ServerZone, parse_arpa_name

V6_LOOPBACK_ARPA = (
    "1.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.0.ip6.arpa."
)


def test_arpa():
    local_net = [ipaddress.ip_network("::1/128"), ipaddress.ip_network("192.168.1.1/32")]

    net1 = parse_arpa_name(V6_LOOPBACK_ARPA)
    assert net1 == ipaddress.ip_network("::1/128")
    assert net1 in local_net

    net2 = parse_arpa_name("1.168.192.in-addr.arpa.")
    assert net2 == ipaddress.ip_network("192.168.1.0/24")
    assert any(n.version == 4 and n.subnet_of(net2) for n in local_net)


def test_arpa_full_v4():
    assert parse_arpa_name("4.3.2.1.in-addr.arpa") == ipaddress.ip_network("1.2.3.4/32")


def test_arpa_partial_v6():
    net = parse_arpa_name("8.b.d.0.1.0.0.2.ip6.arpa.")
    assert net == ipaddress.ip_network("2001:db8::/32")


@pytest.mark.parametrize("name", [
    "www.example.com.",
    "300.1.168.192.in-addr.arpa.",
    "1.2.3.4.5.in-addr.arpa.",
    "zz.ip6.arpa.",
])
def test_arpa_invalid(name):
    with pytest.raises(ValueError):
        parse_arpa_name(name)


def test_catalog_find_walks_to_parent():
    catalog = Catalog()
    catalog.upsert("example.com.", "zone-a")
    assert catalog.find("www.a.example.com") == "zone-a"
    assert catalog.find("EXAMPLE.com.") == "zone-a"
    assert catalog.find("example.org.") is None


def test_catalog_root_zone():
    catalog = Catalog()
    catalog.upsert(".", "root")
    assert catalog.find("anything.example.") == "root"


def test_catalog_contains_and_remove():
    catalog = Catalog()
    catalog.upsert("example.com", "zone-a")
    assert catalog.contains("example.com.")
    assert not catalog.contains("www.example.com")
    assert catalog.remove("example.com.") == "zone-a"
    assert catalog.remove("example.com.") is None
    assert catalog.find("example.com") is None


def test_server_zone_names_and_addresses():
    zone = ServerZone("smartdns", local_ips=["::1", "192.168.1.1"])
    assert zone.is_current_server("smartdns.")
    assert zone.is_current_server("WHOAMI")
    assert zone.is_current_server(V6_LOOPBACK_ARPA)
    assert zone.is_current_server("1.168.192.in-addr.arpa.")
    assert not zone.is_current_server("2.168.192.in-addr.arpa.")
    assert not zone.is_current_server("www.example.com.")


def test_resolve_ptr():
    zone = ServerZone("smartdns", local_ips=["192.168.1.1"])
    query = Query("1.1.168.192.in-addr.arpa.", RecordType.PTR)
    lookup = zone.resolve_ptr(query)
    assert lookup.query == query
    assert [r.data for r in lookup] == ["smartdns"]
    assert lookup.records[0].record_type is RecordType.PTR


def test_resolve_ptr_other_cases():
    zone = ServerZone("smartdns", local_ips=["192.168.1.1"])
    assert zone.resolve_ptr(Query("smartdns.", RecordType.A)) is None
    assert zone.resolve_ptr(Query("9.9.9.9.in-addr.arpa.", RecordType.PTR)) is None