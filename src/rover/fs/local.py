"""LocalBackend — direct access to the host filesystem."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import shutil
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .exceptions import BackendError
from .types import Entry
from .utils import is_valid_filename

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .types import Credentials

logger = logging.getLogger(__name__)


class LocalBackend:
    """Backend kind for absolute paths on the local machine.

    Understands absolute paths (``/home/me``, ``C:\\Users``) and
    ``~``-prefixed paths.  Anything containing a URL scheme is left to
    other backends.
    """

    name = "local"

    def __init__(self, *, platform: str = sys.platform) -> None:
        self.platform = platform

    def can_read(self, location: str) -> bool:
        if not location or "://" in location:
            return False
        return location.startswith("~") or os.path.isabs(location)

    def serverpart(self, location: str) -> str:
        return ""

    def credentials(self, location: str) -> Credentials | None:
        return None

    def connect(self, location: str) -> LocalConnection:
        return LocalConnection(platform=self.platform)


class LocalConnection:
    """Connection to the local disk.  Always connected, never needs a login.

    Blocking filesystem calls run in a worker thread via
    :func:`asyncio.to_thread`; ``OSError``s propagate untouched and are
    normalized by the session from their errno.
    """

    login_options: Credentials | None = None

    def __init__(self, *, platform: str = sys.platform) -> None:
        self.platform = platform
        self._closed_handlers: list[Callable[[], None]] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def is_connected(self) -> bool:
        return True

    async def login(
        self,
        server: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        pass

    async def close(self) -> None:
        for handler in list(self._closed_handlers):
            handler()

    def on_closed(self, handler: Callable[[], None]) -> None:
        self._closed_handlers.append(handler)

    def off(self) -> None:
        self._closed_handlers.clear()

    # =========================================================================
    # Path Utilities
    # =========================================================================

    def sanitize(self, path: str) -> str:
        return os.path.normpath(os.path.expanduser(path))

    def join(self, path: str, *parts: str) -> str:
        return self.sanitize(os.path.join(path, *parts))

    def is_root(self, path: str) -> bool:
        path = self.sanitize(path)
        return os.path.dirname(path) == path

    def is_directory_name_valid(self, name: str) -> bool:
        return is_valid_filename(name, platform=self.platform)

    # =========================================================================
    # Navigation / Listing
    # =========================================================================

    async def cd(self, path: str) -> str:
        resolved = self.sanitize(path)

        def _check() -> None:
            if not os.path.exists(resolved):
                raise FileNotFoundError(errno.ENOENT, "No such directory", resolved)
            if not os.path.isdir(resolved):
                raise NotADirectoryError(errno.ENOTDIR, "Not a directory", resolved)
            if not os.access(resolved, os.R_OK | os.X_OK):
                raise PermissionError(errno.EACCES, "Permission denied", resolved)

        await asyncio.to_thread(_check)
        return resolved

    async def list_dir(self, path: str, append_parent: bool = False) -> list[Entry]:
        resolved = self.sanitize(path)

        def _scan() -> list[Entry]:
            entries: list[Entry] = []
            with os.scandir(resolved) as it:
                for item in it:
                    try:
                        st = item.stat()
                        is_dir = item.is_dir()
                        entries.append(
                            Entry(
                                dir=resolved,
                                fullname=item.name,
                                is_directory=is_dir,
                                size=None if is_dir else st.st_size,
                                modified_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
                                created_at=datetime.fromtimestamp(st.st_ctime, tz=UTC),
                                is_symlink=item.is_symlink(),
                            )
                        )
                    except OSError:
                        # Broken symlinks and entries removed mid-scan
                        logger.debug("Skipping unreadable entry %s", item.path)
                        continue
            entries.sort(key=lambda e: (not e.is_directory, e.fullname.lower()))
            return entries

        entries = await asyncio.to_thread(_scan)
        if append_parent and not self.is_root(resolved):
            entries.insert(
                0, Entry(dir=resolved, fullname="..", is_directory=True, is_parent=True)
            )
        return entries

    async def is_dir(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isdir, self.sanitize(path))

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.lexists, self.sanitize(path))

    async def size(self, source: str, names: Sequence[str]) -> int:
        def _measure(path: str) -> int:
            if os.path.islink(path) or not os.path.isdir(path):
                return os.lstat(path).st_size
            total = 0
            for root, _dirs, files in os.walk(path):
                for name in files:
                    try:
                        total += os.lstat(os.path.join(root, name)).st_size
                    except OSError:
                        continue
            return total

        total = 0
        for name in names:
            total += await asyncio.to_thread(_measure, self.join(source, name))
        return total

    async def get(self, path: str, name: str) -> str:
        """Local files are already on disk: return their own path."""
        target = self.join(path, name)
        if not await asyncio.to_thread(os.path.exists, target):
            raise FileNotFoundError(errno.ENOENT, "No such file", target)
        return target

    # =========================================================================
    # Mutation
    # =========================================================================

    async def rename(self, source: str, entry: Entry, new_name: str) -> str:
        if not self.is_directory_name_valid(new_name):
            raise BackendError(
                f"Invalid filename: {new_name}",
                code="BAD_FILENAME",
                path=source,
                new_name=new_name,
            )
        old = self.join(source, entry.fullname)
        new = self.join(source, new_name)
        await asyncio.to_thread(os.rename, old, new)
        return new_name

    async def mkdir(self, parent: str, name: str) -> str:
        if not self.is_directory_name_valid(name):
            raise BackendError(
                f"Invalid directory name: {name}",
                code="BAD_FILENAME",
                path=parent,
                new_name=name,
            )
        target = self.join(parent, name)
        await asyncio.to_thread(os.makedirs, target, exist_ok=True)
        return target

    async def delete(self, source: str, entries: Sequence[Entry]) -> int:
        def _delete(path: str) -> None:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.unlink(path)

        removed = 0
        for entry in entries:
            await asyncio.to_thread(_delete, self.join(source, entry.fullname))
            removed += 1
        return removed
