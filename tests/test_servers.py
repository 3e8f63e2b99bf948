import socket

import pytest

from timeline_sink.exceptions import ConfigurationError
from timeline_sink.servers import parse_servers, resolve_first


def test_parse_servers_mixed_entries():
    servers = parse_servers("c1.example.com:6189, c2.example.com  [::1]:7000 [fe80::2]", 6188)
    assert servers == [
        ("c1.example.com", 6189),
        ("c2.example.com", 6188),
        ("::1", 7000),
        ("fe80::2", 6188),
    ]


@pytest.mark.parametrize("specs", [None, "", "  ,  "])
def test_parse_servers_empty(specs):
    assert parse_servers(specs, 6188) == []


@pytest.mark.parametrize("specs", ["host:abc", "host:70000", ":6188", "[::1", "[::1]x"])
def test_parse_servers_rejects_bad_entries(specs):
    with pytest.raises(ConfigurationError):
        parse_servers(specs, 6188)


def test_resolve_first_skips_unresolvable_candidates():
    calls = []

    def resolver(host, port, *args):
        calls.append(host)
        if host == "bad":
            raise socket.gaierror("nope")
        return []

    chosen = resolve_first([("bad", 1), ("good", 2), ("later", 3)], resolver=resolver, attempts=2, delay=0)

    assert chosen == ("good", 2)
    assert calls == ["bad", "bad", "good"]


def test_resolve_first_raises_when_nothing_resolves():
    def resolver(host, port, *args):
        raise socket.gaierror("nope")

    with pytest.raises(ConfigurationError):
        resolve_first([("a", 1), ("b", 2)], resolver=resolver, attempts=1, delay=0)


def test_resolve_first_requires_candidates():
    with pytest.raises(ConfigurationError):
        resolve_first([], resolver=lambda *args: [], attempts=1, delay=0)


def test_non_lookup_errors_are_not_retried():
    calls = []

    def resolver(host, port, *args):
        calls.append(host)
        raise TypeError("bad call")

    with pytest.raises(TypeError):
        resolve_first([("a", 1)], resolver=resolver, attempts=3, delay=0)
    assert calls == ["a"]
