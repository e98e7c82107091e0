[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "smartresolve"
version = "0.1.0"
description = "Building blocks for a rule-driven DNS forwarder: server URLs, domain rules, lookup caching, lease lookups and audit logs"
requires-python = ">=3.10"
dependencies = []
keywords = ["dns", "resolver", "cache", "dnsmasq", "domain-rules", "audit"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["smartresolve"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
