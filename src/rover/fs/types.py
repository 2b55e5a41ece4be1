"""Value types shared by the session and its backends."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .protocol import Backend, Connection


class ConnectionStatus(str, Enum):
    """Connection lifecycle state of a session."""

    BLANK = "blank"
    BUSY = "busy"
    OK = "ok"
    LOGIN = "login"
    OFFLINE = "offline"


@dataclass
class Entry:
    """A single element of a directory listing.

    The session only ever reads ``dir``/``fullname``/``is_directory`` and
    rewrites ``fullname`` after a rename; the remaining fields are filled in
    by backends for display purposes.
    """

    dir: str
    fullname: str
    is_directory: bool = False
    size: int | None = None
    modified_at: datetime | None = None
    created_at: datetime | None = None
    is_symlink: bool = False
    is_parent: bool = False

    @property
    def name(self) -> str:
        """Filename without its extension (dotfiles keep their name)."""
        stem, dot, _ = self.fullname.rpartition(".")
        return stem if dot and stem else self.fullname

    @property
    def extension(self) -> str:
        stem, dot, ext = self.fullname.rpartition(".")
        return f".{ext.lower()}" if dot and stem else ""


@dataclass(frozen=True, slots=True)
class Credentials:
    """Login credentials for a backend server."""

    user: str = ""
    password: str = ""
    port: int | None = None

    def __repr__(self) -> str:
        return f"Credentials(user={self.user!r}, port={self.port!r})"


@dataclass(frozen=True, slots=True)
class SavedContext:
    """Snapshot of the backend a session used before switching away from it."""

    backend: Backend
    connection: Connection
    server: str
