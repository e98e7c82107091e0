"""Building blocks for a rule-driven DNS forwarder: lookups, caching, server URLs, domain rules, leases, zones and auditing."""

__version__ = "0.1.0"