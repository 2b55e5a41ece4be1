"""Backend and Connection protocols — runtime-checkable interfaces.

A :class:`Backend` describes one kind of filesystem (local disk, FTP, a SQL
store, ...) and knows which locations it understands.  A :class:`Connection`
is a live session against one such backend, created fresh by
:meth:`Backend.connect` every time a :class:`~rover.FileSession` switches to
it.  Connections are never shared between sessions or pooled.

Failures are reported by raising :class:`~rover.fs.exceptions.BackendError`
(or a plain ``OSError``); the session normalizes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .types import Credentials, Entry


@runtime_checkable
class Connection(Protocol):
    """Capabilities a session consumes from a backend connection."""

    login_options: Credentials | None
    """Stored credentials usable for an automatic (re)login, if any."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_connected(self) -> bool: ...

    async def login(
        self,
        server: str | None = None,
        credentials: Credentials | None = None,
    ) -> None: ...

    async def close(self) -> None:
        """Release the connection.  Fires the closed notification."""
        ...

    def on_closed(self, handler: Callable[[], None]) -> None:
        """Subscribe *handler* to the "connection closed" notification."""
        ...

    def off(self) -> None:
        """Drop every subscription made through :meth:`on_closed`."""
        ...

    # ------------------------------------------------------------------
    # Navigation / listing
    # ------------------------------------------------------------------

    async def cd(self, path: str) -> str: ...

    async def list_dir(self, path: str, append_parent: bool = False) -> list[Entry]: ...

    async def is_dir(self, path: str) -> bool: ...

    async def exists(self, path: str) -> bool: ...

    async def size(self, source: str, names: Sequence[str]) -> int: ...

    async def get(self, path: str, name: str) -> str:
        """Make *name* available on local disk and return its local path."""
        ...

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def rename(self, source: str, entry: Entry, new_name: str) -> str: ...

    async def mkdir(self, parent: str, name: str) -> str: ...

    async def delete(self, source: str, entries: Sequence[Entry]) -> int: ...

    # ------------------------------------------------------------------
    # Path utilities
    # ------------------------------------------------------------------

    def join(self, path: str, *parts: str) -> str: ...

    def sanitize(self, path: str) -> str: ...

    def is_root(self, path: str) -> bool: ...

    def is_directory_name_valid(self, name: str) -> bool: ...


@runtime_checkable
class Backend(Protocol):
    """A kind of filesystem that can be resolved from a location."""

    name: str
    """Backend kind, e.g. ``"local"`` or ``"db"``."""

    def can_read(self, location: str) -> bool: ...

    def serverpart(self, location: str) -> str:
        """Server identity for *location* (empty for local backends)."""
        ...

    def credentials(self, location: str) -> Credentials | None:
        """Credentials embedded in *location*, if any."""
        ...

    def connect(self, location: str) -> Connection:
        """Instantiate a fresh connection.  It may still need a login."""
        ...
