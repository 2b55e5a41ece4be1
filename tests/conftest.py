"""Shared fixtures for Rover tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from rover.fs.database import DatabaseBackend
from rover.fs.local import LocalBackend
from rover.fs.registry import BackendRegistry
from rover.fs.types import Credentials, Entry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine; tables are created on login."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    yield eng
    await eng.dispose()


@pytest.fixture
def db_backend(async_engine: AsyncEngine) -> DatabaseBackend:
    """Database backend serving ``db://default``."""
    return DatabaseBackend(async_engine)


@pytest.fixture
def registry(db_backend: DatabaseBackend) -> BackendRegistry:
    """Registry with the database backend ahead of the local one."""
    return BackendRegistry([db_backend, LocalBackend(platform="linux")])


# =========================================================================
# In-memory fakes for session tests
# =========================================================================


class FakeConnection:
    """Connection whose behaviour is driven by its :class:`FakeBackend`."""

    def __init__(self, backend: FakeBackend) -> None:
        self.backend = backend
        self.login_options = backend.stored
        self.connected = backend.connected
        self.closed = False
        self.login_calls = 0
        self.calls: list[tuple] = []
        self._handlers: list = []

    def is_connected(self) -> bool:
        return self.connected

    async def login(self, server=None, credentials=None) -> None:
        self.login_calls += 1
        if self.backend.login_gate is not None:
            await self.backend.login_gate.wait()
        error = self.backend.fail.get("login")
        if error is not None:
            raise error
        self.connected = True

    async def close(self) -> None:
        self.closed = True
        self.connected = False
        for handler in list(self._handlers):
            handler()

    def on_closed(self, handler) -> None:
        self._handlers.append(handler)

    def off(self) -> None:
        self._handlers.clear()

    def _call(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        if op in self.backend.disconnect_on:
            self.connected = False
        error = self.backend.fail.get(op)
        if error is not None:
            raise error

    async def cd(self, path):
        self._call("cd", path)
        return path

    async def list_dir(self, path, append_parent=False):
        self._call("list_dir", path)
        return [
            Entry(dir=path, fullname=name, is_directory=not name.endswith(".txt"))
            for name in self.backend.listing.get(path, ["docs", "a.txt", "b.txt"])
        ]

    async def is_dir(self, path):
        self._call("is_dir", path)
        return not path.endswith(".txt")

    async def exists(self, path):
        self._call("exists", path)
        return not path.endswith("missing")

    async def size(self, source, names):
        self._call("size", source, list(names))
        return 10 * len(names)

    async def get(self, path, name):
        self._call("get", path, name)
        return f"/tmp/fetched/{name}"

    async def rename(self, source, entry, new_name):
        self._call("rename", source, entry.fullname, new_name)
        return new_name

    async def mkdir(self, parent, name):
        self._call("mkdir", parent, name)
        return self.join(parent, name)

    async def delete(self, source, entries):
        self._call("delete", source, [e.fullname for e in entries])
        return len(entries)

    def join(self, path, *parts):
        return "/".join([path.rstrip("/"), *parts])

    def sanitize(self, path):
        return path.rstrip("/") if path.rstrip("/") else "/"

    def is_root(self, path):
        return path == "/" or path == self.backend.prefix

    def is_directory_name_valid(self, name):
        return bool(name) and "/" not in name


class FakeBackend:
    """Backend reading every location that starts with *prefix*.

    ``fail`` maps an operation name to the exception it raises,
    ``disconnect_on`` lists operations that drop the connection first.
    """

    def __init__(
        self,
        name: str,
        prefix: str,
        *,
        connected: bool = True,
        stored: Credentials | None = None,
    ) -> None:
        self.name = name
        self.prefix = prefix
        self.connected = connected
        self.stored = stored
        self.fail: dict[str, BaseException] = {}
        self.disconnect_on: set[str] = set()
        self.listing: dict[str, list[str]] = {}
        self.login_gate: asyncio.Event | None = None
        self.connections: list[FakeConnection] = []

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]

    def can_read(self, location: str) -> bool:
        return location.startswith(self.prefix)

    def serverpart(self, location: str) -> str:
        if "://" not in location:
            return ""
        scheme, _, rest = location.partition("://")
        return f"{scheme}://{rest.split('/', 1)[0]}"

    def credentials(self, location: str) -> Credentials | None:
        return self.stored

    def connect(self, location: str) -> FakeConnection:
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection


class FakeShell:
    def __init__(self) -> None:
        self.opened: list[str] = []
        self.terminals: list[str] = []

    def open_path(self, path: str) -> None:
        self.opened.append(path)

    def open_terminal(self, path: str) -> None:
        self.terminals.append(path)


@pytest.fixture
def local() -> FakeBackend:
    """Always-connected backend named ``local`` for absolute paths."""
    return FakeBackend("local", "/")


@pytest.fixture
def remote() -> FakeBackend:
    """Backend for ``mem://host`` locations."""
    return FakeBackend("mem", "mem://host")


@pytest.fixture
def ftp() -> FakeBackend:
    """Backend for ``ftp://`` locations on any host."""
    return FakeBackend("ftp", "ftp://")


@pytest.fixture
def fake_registry(local: FakeBackend, remote: FakeBackend) -> BackendRegistry:
    return BackendRegistry([remote, local])


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()
