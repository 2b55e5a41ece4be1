"""Tests for BackendRegistry."""

from __future__ import annotations

import logging

import pytest

from rover.fs.local import LocalBackend, LocalConnection
from rover.fs.protocol import Backend
from rover.fs.registry import BackendRegistry


class SchemeBackend:
    """Minimal backend matching a URL scheme."""

    def __init__(self, name: str, scheme: str) -> None:
        self.name = name
        self.scheme = scheme
        self.connections: list[object] = []

    def can_read(self, location: str) -> bool:
        return location.startswith(self.scheme)

    def serverpart(self, location: str) -> str:
        return self.scheme

    def credentials(self, location: str) -> None:
        return None

    def connect(self, location: str) -> object:
        connection = object()
        self.connections.append(connection)
        return connection


class BrokenBackend(SchemeBackend):
    def can_read(self, location: str) -> bool:
        raise RuntimeError("broken")


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------


class TestRegistryManagement:
    def test_register_and_list(self):
        reg = BackendRegistry()
        reg.register(SchemeBackend("ftp", "ftp://"))
        reg.register(LocalBackend())
        assert [b.name for b in reg.list_backends()] == ["ftp", "local"]

    def test_constructor_registers(self):
        reg = BackendRegistry([LocalBackend()])
        assert reg.has_backend("local") is True
        assert reg.has_backend("ftp") is False

    def test_replace_same_name(self):
        first = SchemeBackend("ftp", "ftp://")
        second = SchemeBackend("ftp", "sftp://")
        reg = BackendRegistry([first, second])
        assert reg.get_backend("ftp") is second
        assert len(reg.list_backends()) == 1

    def test_unregister(self):
        reg = BackendRegistry([LocalBackend()])
        reg.unregister("local")
        reg.unregister("missing")
        assert reg.list_backends() == []

    def test_backends_satisfy_protocol(self):
        assert isinstance(LocalBackend(), Backend)
        assert isinstance(SchemeBackend("ftp", "ftp://"), Backend)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_resolve_by_scheme(self):
        ftp = SchemeBackend("ftp", "ftp://")
        reg = BackendRegistry([ftp, LocalBackend()])
        assert reg.resolve("ftp://host/dir") is ftp
        assert reg.resolve("/home/me").name == "local"

    def test_unknown_location_returns_none(self):
        reg = BackendRegistry([LocalBackend()])
        assert reg.resolve("gopher://host") is None
        assert reg.resolve("") is None

    def test_first_match_wins(self):
        a = SchemeBackend("a", "x://")
        b = SchemeBackend("b", "x://")
        reg = BackendRegistry([a, b])
        assert reg.resolve("x://y") is a

    def test_resolve_is_side_effect_free(self):
        ftp = SchemeBackend("ftp", "ftp://")
        reg = BackendRegistry([ftp])
        reg.resolve("ftp://host")
        assert ftp.connections == []

    def test_broken_backend_skipped(self, caplog: pytest.LogCaptureFixture):
        reg = BackendRegistry([BrokenBackend("bad", "x://"), LocalBackend()])
        with caplog.at_level(logging.WARNING, logger="rover.fs.registry"):
            assert reg.resolve("/tmp").name == "local"
        assert "bad" in caplog.text


# ---------------------------------------------------------------------------
# Instantiation
# ---------------------------------------------------------------------------


class TestInstantiate:
    def test_fresh_connection_every_time(self):
        ftp = SchemeBackend("ftp", "ftp://")
        reg = BackendRegistry([ftp])
        first = reg.instantiate(ftp, "ftp://host")
        second = reg.instantiate("ftp", "ftp://host")
        assert first is not second
        assert ftp.connections == [first, second]

    def test_local_connection(self):
        reg = BackendRegistry([LocalBackend()])
        assert isinstance(reg.instantiate("local", "/"), LocalConnection)

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            BackendRegistry().instantiate("nope", "/")
