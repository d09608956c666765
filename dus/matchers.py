"""Request matchers built from container labels.

A container opts into request matching by carrying labels such as::

    com.caddyserver.http.matchers.host=api.example.com
    com.caddyserver.http.matchers.path=/v1/*

Each label name is looked up in the producer registry; the producer turns
the label value into a predicate with a ``match(request)`` method. Predicates
that also expose ``provision()`` are validated once, at build time.
"""
from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Callable, Mapping, Protocol, runtime_checkable
from urllib.parse import parse_qs, parse_qsl


class ProvisionError(ValueError):
    pass


@dataclass(frozen=True)
class Request:
    """The parts of an inbound HTTP request that matchers look at."""

    method: str = "GET"
    host: str = ""
    path: str = "/"
    query: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    scheme: str = "http"
    remote_ip: str = ""

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for k, v in self.headers.items():
            if k.lower() == wanted:
                return v
        return None


@runtime_checkable
class MatchPredicate(Protocol):
    def match(self, request: Request) -> bool: ...


@runtime_checkable
class Provisioner(Protocol):
    def provision(self) -> None: ...


Producer = Callable[[str], MatchPredicate]

_SPLIT_RE = re.compile(r"[\s,]+")


def _split_values(raw: str) -> list[str]:
    return [v for v in _SPLIT_RE.split(raw.strip()) if v]


def _strip_port(host: str) -> str:
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    # Only '*' is special; it may span '/'.
    return re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("*")) + "$")


class ProtocolMatcher:
    SUPPORTED = {"http", "https", "grpc"}

    def __init__(self, value: str):
        self.value = value.strip().lower()

    def provision(self) -> None:
        if self.value not in self.SUPPORTED:
            raise ProvisionError(f"unsupported protocol '{self.value}' (expected one of {sorted(self.SUPPORTED)})")

    def match(self, request: Request) -> bool:
        if self.value == "grpc":
            return (request.header("content-type") or "").startswith("application/grpc")
        return request.scheme.lower() == self.value

    def __repr__(self) -> str:
        return f"protocol {self.value}"


class HostMatcher:
    """Case-insensitive host match; ``*`` stands for exactly one DNS label."""

    def __init__(self, value: str):
        self.raw = value
        self.hosts: tuple[str, ...] = ()

    def provision(self) -> None:
        hosts = _split_values(self.raw)
        if not hosts:
            raise ProvisionError("host matcher requires at least one host")
        self.hosts = tuple(h.lower() for h in hosts)

    def match(self, request: Request) -> bool:
        host = _strip_port(request.host).lower()
        for pattern in self.hosts:
            if pattern == host:
                return True
            if "*" in pattern and self._wildcard_match(pattern, host):
                return True
        return False

    @staticmethod
    def _wildcard_match(pattern: str, host: str) -> bool:
        want = pattern.split(".")
        got = host.split(".")
        if len(want) != len(got):
            return False
        return all(w == "*" or w == g for w, g in zip(want, got))

    def __repr__(self) -> str:
        return f"host {' '.join(self.hosts) or self.raw}"


class MethodMatcher:
    def __init__(self, value: str):
        self.raw = value
        self.methods: frozenset[str] = frozenset()

    def provision(self) -> None:
        methods = _split_values(self.raw)
        if not methods:
            raise ProvisionError("method matcher requires at least one method")
        self.methods = frozenset(m.upper() for m in methods)

    def match(self, request: Request) -> bool:
        return request.method.upper() in self.methods

    def __repr__(self) -> str:
        return f"method {' '.join(sorted(self.methods)) or self.raw}"


class PathMatcher:
    """Case-insensitive path globs, e.g. ``/api/*``, ``*.php``, ``/exact``."""

    def __init__(self, value: str):
        self.raw = value
        self.patterns: tuple[str, ...] = ()
        self._compiled: tuple[re.Pattern[str], ...] = ()

    def provision(self) -> None:
        patterns = _split_values(self.raw)
        if not patterns:
            raise ProvisionError("path matcher requires at least one pattern")
        for p in patterns:
            if not (p.startswith("/") or p.startswith("*")):
                raise ProvisionError(f"path pattern '{p}' must start with '/' or '*'")
        self.patterns = tuple(p.lower() for p in patterns)
        self._compiled = tuple(_glob_to_regex(p) for p in self.patterns)

    def match(self, request: Request) -> bool:
        path = (request.path or "/").lower()
        return any(rx.match(path) for rx in self._compiled)

    def __repr__(self) -> str:
        return f"path {' '.join(self.patterns) or self.raw}"


class QueryMatcher:
    """``key=value&key2=value2``; every key must be present, ``*`` accepts any value."""

    def __init__(self, value: str):
        self.raw = value
        self.expected: dict[str, set[str]] = {}

    def provision(self) -> None:
        pairs = parse_qsl(self.raw.strip(), keep_blank_values=True)
        if not pairs:
            raise ProvisionError(f"query matcher '{self.raw}' has no key=value pairs")
        expected: dict[str, set[str]] = {}
        for key, value in pairs:
            if not key:
                raise ProvisionError(f"query matcher '{self.raw}' has an empty key")
            expected.setdefault(key, set()).add(value)
        self.expected = expected

    def match(self, request: Request) -> bool:
        got = parse_qs(request.query, keep_blank_values=True)
        for key, values in self.expected.items():
            if key not in got:
                return False
            if "*" in values:
                continue
            if not values.intersection(got[key]):
                return False
        return True

    def __repr__(self) -> str:
        return f"query {self.raw.strip()}"


class HeaderMatcher:
    """``Name: value``; value may start or end with ``*``, empty value means presence."""

    def __init__(self, value: str):
        self.raw = value
        self.name = ""
        self.value = ""

    def provision(self) -> None:
        name, sep, value = self.raw.partition(":")
        if not sep or not name.strip():
            raise ProvisionError(f"header matcher '{self.raw}' must look like 'Name: value'")
        self.name = name.strip()
        self.value = value.strip()

    def match(self, request: Request) -> bool:
        got = request.header(self.name)
        if got is None:
            return False
        want = self.value
        if not want or want == "*":
            return True
        if want.startswith("*") and want.endswith("*"):
            return want[1:-1] in got
        if want.startswith("*"):
            return got.endswith(want[1:])
        if want.endswith("*"):
            return got.startswith(want[:-1])
        return got == want

    def __repr__(self) -> str:
        return f"header {self.name or self.raw}: {self.value}"


class RemoteIPMatcher:
    def __init__(self, value: str):
        self.raw = value
        self.networks: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...] = ()

    def provision(self) -> None:
        ranges = _split_values(self.raw)
        if not ranges:
            raise ProvisionError("remote_ip matcher requires at least one range")
        try:
            self.networks = tuple(ipaddress.ip_network(r, strict=False) for r in ranges)
        except ValueError as e:
            raise ProvisionError(f"invalid remote_ip range: {e}") from e

    def match(self, request: Request) -> bool:
        try:
            addr = ipaddress.ip_address(_strip_port(request.remote_ip))
        except ValueError:
            return False
        return any(addr in net for net in self.networks)

    def __repr__(self) -> str:
        return f"remote_ip {' '.join(str(n) for n in self.networks) or self.raw}"


# label suffix (below the namespace) -> producer, in registration order
_PRODUCERS: dict[str, Producer] = {}


def register_producer(suffix: str, producer: Producer) -> None:
    """Register a producer for ``<namespace>.<suffix>`` labels.

    Call at process start, before the first build. Predicates accumulate on a
    candidate in registration order.
    """
    _PRODUCERS[suffix] = producer


def registered_suffixes() -> list[str]:
    return list(_PRODUCERS)


def default_producers(namespace: str) -> dict[str, Producer]:
    return {f"{namespace}.{suffix}": producer for suffix, producer in _PRODUCERS.items()}


register_producer("matchers.protocol", ProtocolMatcher)
register_producer("matchers.host", HostMatcher)
register_producer("matchers.method", MethodMatcher)
register_producer("matchers.path", PathMatcher)
register_producer("matchers.query", QueryMatcher)
register_producer("matchers.header", HeaderMatcher)
register_producer("matchers.remote_ip", RemoteIPMatcher)
