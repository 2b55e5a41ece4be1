"""DatabaseBackend — files stored in a SQL table, addressed as ``db://<label>/...``."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from .exceptions import BackendError
from .types import Entry
from .utils import is_valid_filename, normalize_path, split_path

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from rover.models.files import StoredFileBase

    from .types import Credentials

logger = logging.getLogger(__name__)

SCHEME = "db://"


class DatabaseBackend:
    """Backend kind for a SQL-backed file store.

    One backend serves one *label*: locations look like
    ``db://<label>/some/dir``.  Connections start disconnected; ``login()``
    creates the table if needed and opens a session factory on *engine*.

    When *credentials* is given, logins must present the same user and
    password (reply code ``530`` otherwise).  *stored_credentials* are
    handed to every connection as ``login_options`` so the session can log
    in without asking.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        label: str = "default",
        name: str = "db",
        credentials: Credentials | None = None,
        stored_credentials: Credentials | None = None,
        file_model: type[StoredFileBase] | None = None,
    ) -> None:
        from rover.models.files import StoredFile

        self.engine = engine
        self.label = label
        self.name = name
        self.prefix = f"{SCHEME}{label}"
        self._required = credentials
        self._stored = stored_credentials
        self._file_model: type[StoredFileBase] = file_model or StoredFile

    @property
    def file_model(self) -> type[StoredFileBase]:
        return self._file_model

    def can_read(self, location: str) -> bool:
        return location == self.prefix or location.startswith(self.prefix + "/")

    def serverpart(self, location: str) -> str:
        return self.prefix

    def credentials(self, location: str) -> Credentials | None:
        return self._stored

    def connect(self, location: str) -> DatabaseConnection:
        return DatabaseConnection(
            self.engine,
            prefix=self.prefix,
            file_model=self._file_model,
            required=self._required,
            login_options=self._stored,
        )


class DatabaseConnection:
    """A logged-in (or not yet logged-in) session against a :class:`DatabaseBackend`.

    Paths may be given either as full locations (``db://label/a/b``) or as
    paths inside the store (``/a/b``).  Results are always full locations.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        prefix: str,
        file_model: type[StoredFileBase],
        required: Credentials | None = None,
        login_options: Credentials | None = None,
    ) -> None:
        self.engine = engine
        self.prefix = prefix
        self.login_options = login_options
        self._file_model = file_model
        self._required = required
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._closed_handlers: list[Callable[[], None]] = []
        self._temp_dir: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return self._session_factory is not None

    async def login(
        self,
        server: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        given = credentials or self.login_options
        if self._required is not None and (
            given is None
            or given.user != self._required.user
            or given.password != self._required.password
        ):
            raise BackendError("Login incorrect", code=530)

        model = self._file_model
        async with self.engine.begin() as conn:
            await conn.run_sync(
                lambda c: model.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        logger.debug("Logged in to %s", self.prefix)

    async def close(self) -> None:
        """Drop the session factory, remove fetched files and notify subscribers.

        The engine belongs to the backend and is left open.
        """
        self._session_factory = None
        temp_dir, self._temp_dir = self._temp_dir, None
        if temp_dir is not None:
            await asyncio.to_thread(shutil.rmtree, temp_dir, ignore_errors=True)
        for handler in list(self._closed_handlers):
            handler()

    def on_closed(self, handler: Callable[[], None]) -> None:
        self._closed_handlers.append(handler)

    def off(self) -> None:
        self._closed_handlers.clear()

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise BackendError(f"Not connected to {self.prefix}", code="ENOTCONN")
        return self._session_factory

    # ------------------------------------------------------------------
    # Path utilities
    # ------------------------------------------------------------------

    def _inner(self, location: str) -> str:
        if location == self.prefix or location.startswith(self.prefix + "/"):
            location = location[len(self.prefix) :]
        return normalize_path(location)

    def _location(self, inner: str) -> str:
        return self.prefix + normalize_path(inner)

    def sanitize(self, path: str) -> str:
        return self._location(self._inner(path))

    def join(self, path: str, *parts: str) -> str:
        return self._location("/".join([self._inner(path), *parts]))

    def is_root(self, path: str) -> bool:
        return self._inner(path) == "/"

    def is_directory_name_valid(self, name: str) -> bool:
        return is_valid_filename(name, platform="linux")

    def _check_name(self, parent: str, name: str) -> None:
        if not self.is_directory_name_valid(name):
            raise BackendError(
                f"Invalid filename: {name}",
                code="BAD_FILENAME",
                path=self._location(parent),
                new_name=name,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _get(self, session: AsyncSession, inner: str) -> StoredFileBase | None:
        model = self._file_model
        result = await session.execute(select(model).where(col(model.path) == inner))
        return result.scalar_one_or_none()

    async def _require_dir(self, session: AsyncSession, inner: str) -> None:
        if inner == "/":
            return
        row = await self._get(session, inner)
        if row is None:
            raise BackendError(
                f"No such directory: {inner}", code="ENOENT", path=self._location(inner)
            )
        if not row.is_directory:
            raise BackendError(
                f"Not a directory: {inner}", code="ENOTDIR", path=self._location(inner)
            )

    async def _descendants(self, session: AsyncSession, inner: str) -> list[StoredFileBase]:
        model = self._file_model
        result = await session.execute(
            select(model).where(col(model.path).startswith(inner + "/", autoescape=True))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Navigation / listing
    # ------------------------------------------------------------------

    async def cd(self, path: str) -> str:
        inner = self._inner(path)
        async with self._sessions()() as session:
            await self._require_dir(session, inner)
        return self._location(inner)

    async def list_dir(self, path: str, append_parent: bool = False) -> list[Entry]:
        inner = self._inner(path)
        model = self._file_model
        async with self._sessions()() as session:
            await self._require_dir(session, inner)
            result = await session.execute(
                select(model).where(col(model.parent_path) == inner)
            )
            rows = list(result.scalars().all())

        location = self._location(inner)
        entries = [
            Entry(
                dir=location,
                fullname=row.name,
                is_directory=row.is_directory,
                size=None if row.is_directory else row.size_bytes,
                modified_at=row.updated_at,
                created_at=row.created_at,
            )
            for row in rows
        ]
        entries.sort(key=lambda e: (not e.is_directory, e.fullname.lower()))
        if append_parent and inner != "/":
            entries.insert(0, Entry(dir=location, fullname="..", is_directory=True, is_parent=True))
        return entries

    async def is_dir(self, path: str) -> bool:
        inner = self._inner(path)
        if inner == "/":
            return True
        async with self._sessions()() as session:
            row = await self._get(session, inner)
        return row is not None and row.is_directory

    async def exists(self, path: str) -> bool:
        inner = self._inner(path)
        if inner == "/":
            return True
        async with self._sessions()() as session:
            return await self._get(session, inner) is not None

    async def size(self, source: str, names: Sequence[str]) -> int:
        base = self._inner(source)
        total = 0
        async with self._sessions()() as session:
            for name in names:
                inner = normalize_path(f"{base}/{name}")
                row = await self._get(session, inner)
                if row is None:
                    raise BackendError(
                        f"No such file: {inner}", code="ENOENT", path=self._location(inner)
                    )
                if not row.is_directory:
                    total += row.size_bytes
                    continue
                total += sum(
                    d.size_bytes for d in await self._descendants(session, inner)
                    if not d.is_directory
                )
        return total

    async def get(self, path: str, name: str) -> str:
        """Copy a stored file into a private temp directory and return its path."""
        inner = normalize_path(f"{self._inner(path)}/{name}")
        async with self._sessions()() as session:
            row = await self._get(session, inner)
        if row is None or row.is_directory:
            raise BackendError(
                f"No such file: {inner}", code="ENOENT", path=self._location(inner)
            )

        if self._temp_dir is None:
            self._temp_dir = await asyncio.to_thread(tempfile.mkdtemp, prefix="rover-")
        target = os.path.join(self._temp_dir, row.name)
        content = row.content or b""

        def _write() -> None:
            with open(target, "wb") as fh:
                fh.write(content)

        await asyncio.to_thread(_write)
        return target

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def write(self, path: str, content: bytes | str) -> str:
        """Store *content* at *path*, creating parent directories as needed."""
        inner = self._inner(path)
        parent, name = split_path(inner)
        self._check_name(parent, name)
        data = content.encode("utf-8") if isinstance(content, str) else content

        async with self._sessions()() as session:
            await self._ensure_dirs(session, parent)
            row = await self._get(session, inner)
            if row is not None and row.is_directory:
                raise BackendError(
                    f"Is a directory: {inner}", code="EISDIR", path=self._location(inner)
                )
            if row is None:
                row = self._file_model(path=inner, parent_path=parent, name=name)
            row.content = data
            row.size_bytes = len(data)
            row.updated_at = datetime.now(UTC)
            session.add(row)
            await session.commit()
        return self._location(inner)

    async def _ensure_dirs(self, session: AsyncSession, inner: str) -> None:
        if inner == "/":
            return
        row = await self._get(session, inner)
        if row is not None:
            if not row.is_directory:
                raise BackendError(
                    f"Not a directory: {inner}", code="ENOTDIR", path=self._location(inner)
                )
            return
        parent, name = split_path(inner)
        await self._ensure_dirs(session, parent)
        session.add(
            self._file_model(path=inner, parent_path=parent, name=name, is_directory=True)
        )
        await session.flush()

    async def mkdir(self, parent: str, name: str) -> str:
        base = self._inner(parent)
        self._check_name(base, name)
        inner = normalize_path(f"{base}/{name}")
        async with self._sessions()() as session:
            await self._require_dir(session, base)
            await self._ensure_dirs(session, inner)
            await session.commit()
        return self._location(inner)

    async def rename(self, source: str, entry: Entry, new_name: str) -> str:
        base = self._inner(source)
        self._check_name(base, new_name)
        old = normalize_path(f"{base}/{entry.fullname}")
        new = normalize_path(f"{base}/{new_name}")

        async with self._sessions()() as session:
            row = await self._get(session, old)
            if row is None:
                raise BackendError(
                    f"No such file: {old}", code="ENOENT", path=self._location(old)
                )
            if old == new:
                return new_name
            if await self._get(session, new) is not None:
                raise BackendError(
                    f"Already exists: {new}", code="EEXIST", path=self._location(new)
                )

            for child in await self._descendants(session, old):
                child.path = new + child.path[len(old) :]
                child.parent_path = new + child.parent_path[len(old) :]
                session.add(child)
            row.path = new
            row.name = new_name
            row.updated_at = datetime.now(UTC)
            session.add(row)
            await session.commit()
        return new_name

    async def delete(self, source: str, entries: Sequence[Entry]) -> int:
        base = self._inner(source)
        removed = 0
        async with self._sessions()() as session:
            for entry in entries:
                inner = normalize_path(f"{base}/{entry.fullname}")
                row = await self._get(session, inner)
                if row is None:
                    raise BackendError(
                        f"No such file: {inner}", code="ENOENT", path=self._location(inner)
                    )
                for child in await self._descendants(session, inner):
                    await session.delete(child)
                await session.delete(row)
                removed += 1
            await session.commit()
        return removed
