"""FileSession — navigation controller over pluggable filesystem backends."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, Any, TypeVar

from rover.events import EventBus, EventType, SessionEvent
from rover.fs.errors import (
    CANNOT_READ_FOLDER_CODE,
    NO_FILESYSTEM_CODE,
    ErrorKind,
    normalize_error,
)
from rover.fs.exceptions import BackendError, SessionError
from rover.fs.types import ConnectionStatus, SavedContext
from rover.history import NavigationHistory
from rover.shell import SystemShell

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from rover.fs.protocol import Backend, Connection
    from rover.fs.registry import BackendRegistry
    from rover.fs.types import Credentials, Entry
    from rover.shell import Shell

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FileSession:
    """One browsing session: current location, history and active backend.

    Every backend call goes through :meth:`_guarded`, which waits for the
    connection (logging in when needed), runs the call, normalizes failures
    into :class:`SessionError` and never leaves the status at ``BUSY``.

    Moving to a location handled by another backend swaps the connection;
    the previous one is kept in :attr:`saved_context` until the move either
    succeeds (previous connection released) or fails (previous connection
    restored by :meth:`rollback_to_previous_context`).

    Usage::

        registry = BackendRegistry([LocalBackend(), DatabaseBackend(engine)])
        async with await FileSession.create("/home/me", registry) as session:
            await session.navigate("db://default/reports")
            await session.back()
    """

    def __init__(
        self,
        path: str,
        registry: BackendRegistry,
        *,
        shell: Shell | None = None,
        platform: str = sys.platform,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._platform = platform
        self._shell: Shell = shell if shell is not None else SystemShell(platform=platform)
        self._events = event_bus if event_bus is not None else EventBus()
        self._history = NavigationHistory()

        self._path = path
        self._previous_path: str | None = None
        self._entries: list[Entry] = []
        self._selected: list[Entry] = []
        self._status = ConnectionStatus.BLANK

        self._backend: Backend | None = None
        self._connection: Connection | None = None
        self._server = ""
        self._credentials: Credentials | None = None
        self._saved_context: SavedContext | None = None

        # Single-flight login: one pending signal, one handshake in flight,
        # each bound to the connection it was created for
        self._pending_login: asyncio.Future[None] | None = None
        self._pending_owner: Connection | None = None
        self._login_task: asyncio.Task[SessionError | None] | None = None
        self._login_owner: Connection | None = None
        self._closed = False

        # Unresolved here means the first navigate() retries and reports it
        backend = registry.resolve(path)
        if backend is None:
            logger.debug("No backend for initial location %s", path)
        else:
            try:
                self._attach(backend, path, save_context=False)
            except Exception:
                logger.warning("Could not connect to %s", path, exc_info=True)

    @classmethod
    async def create(
        cls,
        path: str,
        registry: BackendRegistry,
        **kwargs: Any,
    ) -> FileSession:
        """Create a session and perform the first navigation to *path*."""
        session = cls(path, registry, **kwargs)
        await session.navigate(path)
        return session

    async def __aenter__(self) -> FileSession:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def previous_path(self) -> str | None:
        return self._previous_path

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries)

    @property
    def selected(self) -> list[Entry]:
        return list(self._selected)

    @property
    def history(self) -> NavigationHistory:
        return self._history

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def backend(self) -> Backend | None:
        return self._backend

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def server(self) -> str:
        return self._server

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def saved_context(self) -> SavedContext | None:
        return self._saved_context

    @property
    def login_pending(self) -> bool:
        return self._pending_login is not None

    def is_current(self, path: str) -> bool:
        """True if *path* is still the location shown by this session.

        Overlapping navigations complete last-wins; callers holding the
        result of an older one compare it here before acting on it.
        """
        return path == self._path

    def _emit(self, event_type: EventType, **kwargs: Any) -> None:
        self._events.emit(SessionEvent(event_type=event_type, **kwargs))

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        self._emit(EventType.STATUS_CHANGED, path=self._path, value=status)

    def _recover_status(self) -> None:
        """Leave ``BUSY`` after a failure: ``OK``, or ``OFFLINE`` on a disconnect."""
        if self._connection is None:
            self._set_status(ConnectionStatus.BLANK)
        elif not self._connection.is_connected():
            self._set_status(ConnectionStatus.OFFLINE)
        else:
            self._set_status(ConnectionStatus.OK)

    def _fail(self, error: BaseException) -> SessionError:
        normalized = normalize_error(error, platform=self._platform)
        logger.debug(
            "Operation failed on %s: %s (%s)", self._path, normalized.kind.value, error
        )
        self._recover_status()
        return normalized

    def _fail_connect(self, error: BaseException, path: str) -> SessionError:
        """Normalize a failure to instantiate a connection for *path*."""
        normalized = normalize_error(error, platform=self._platform)
        if normalized.kind is ErrorKind.UNKNOWN:
            normalized = normalize_error(
                BackendError(str(error), code=CANNOT_READ_FOLDER_CODE, path=path),
                platform=self._platform,
            )
        return self._fail(normalized)

    def _no_filesystem(self, path: str) -> BackendError:
        return BackendError(f"No backend can read {path}", code=NO_FILESYSTEM_CODE, path=path)

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise normalize_error(self._no_filesystem(self._path), platform=self._platform)
        return self._connection

    # ------------------------------------------------------------------
    # Backend context
    # ------------------------------------------------------------------

    def _subscribe(self, connection: Connection) -> None:
        connection.on_closed(lambda: self._on_connection_closed(connection))

    def _on_connection_closed(self, connection: Connection) -> None:
        if connection is not self._connection:
            return
        logger.info("Connection to %s closed", self._server or self._path)
        self._set_status(ConnectionStatus.OFFLINE)

    def _attach(self, backend: Backend, path: str, *, save_context: bool) -> list[Connection]:
        """Make a fresh connection to *backend* the active one.

        Returns the connections that are no longer referenced and must be
        released by the caller.
        """
        connection = self._registry.instantiate(backend, path)
        released: list[Connection] = []

        old = self._connection
        if old is not None:
            old.off()
            if save_context and self._backend is not None:
                if self._saved_context is not None:
                    released.append(self._saved_context.connection)
                self._saved_context = SavedContext(self._backend, old, self._server)
            else:
                released.append(old)

        self._backend = backend
        self._connection = connection
        self._subscribe(connection)
        self._server = backend.serverpart(path)
        self._credentials = backend.credentials(path)
        logger.info("Switched to %s backend for %s", backend.name, path)
        self._emit(EventType.BACKEND_CHANGED, path=path, value=backend.name)
        return released

    async def _release(self, connections: Sequence[Connection]) -> None:
        if self._pending_owner is not None and self._pending_owner in connections:
            logger.debug("Rejecting login pending on a released connection")
            self._reject_pending_login()
        for connection in connections:
            connection.off()
            try:
                await connection.close()
            except Exception:
                logger.warning("Failed to close connection %r", connection, exc_info=True)

    async def _discard_saved_context(self) -> None:
        saved, self._saved_context = self._saved_context, None
        if saved is not None:
            await self._release([saved.connection])

    async def rollback_to_previous_context(self) -> None:
        """Restore the backend that was active before the last switch.

        The connection that replaced it is released and any login waiting
        on it is rejected.  When the restored connection is still up, the
        current history entry is re-issued and the status returns to ``OK``.
        """
        saved = self._saved_context
        if saved is None:
            logger.debug("No saved backend context to restore")
            return
        self._saved_context = None

        failed = self._connection
        if failed is not None:
            failed.off()
        self._backend = saved.backend
        self._connection = saved.connection
        self._server = saved.server
        self._credentials = saved.backend.credentials(self._path)
        self._subscribe(saved.connection)
        logger.info("Restored %s backend for %s", saved.backend.name, self._path)
        self._emit(EventType.BACKEND_CHANGED, path=self._path, value=saved.backend.name)

        self._reject_pending_login()
        if failed is not None:
            await self._release([failed])

        if saved.connection.is_connected():
            await self.navigate_history(0)
            self._set_status(ConnectionStatus.OK)
        else:
            self._set_status(ConnectionStatus.OFFLINE)

    # ------------------------------------------------------------------
    # Connectivity / login
    # ------------------------------------------------------------------

    async def wait_for_connection(self) -> Connection:
        """Return the active connection once it is usable.

        A disconnected connection suspends the caller on the single pending
        login: logging in automatically when the connection has stored
        credentials, otherwise waiting in ``LOGIN`` for :meth:`login`.
        """
        connection = self._require_connection()
        if connection.is_connected():
            self._set_status(ConnectionStatus.BUSY)
            return connection

        pending = self._pending_login
        if pending is None:
            pending = asyncio.get_running_loop().create_future()
            self._pending_login = pending
            self._pending_owner = connection
            if connection.login_options is not None:
                self._set_status(ConnectionStatus.BUSY)
                if not self._login_in_flight():
                    self._start_login(None, None)
            else:
                self._set_status(ConnectionStatus.LOGIN)

        await asyncio.shield(pending)
        self._set_status(ConnectionStatus.BUSY)
        return connection

    def _settle_login(self, error: SessionError | None) -> None:
        pending, self._pending_login = self._pending_login, None
        self._pending_owner = None
        if pending is None or pending.done():
            return
        if error is None:
            pending.set_result(None)
        else:
            pending.set_exception(error)

    def _reject_pending_login(self) -> None:
        """Fail callers waiting on a login that can no longer happen."""
        self._settle_login(SessionError(ErrorKind.AUTH_REQUIRED, "ERRORS.550", code=550))

    def _login_in_flight(self) -> bool:
        """True if a handshake is running on the active connection."""
        task = self._login_task
        return task is not None and not task.done() and self._login_owner is self._connection

    def _start_login(
        self, server: str | None, credentials: Credentials | None
    ) -> asyncio.Task[SessionError | None]:
        self._login_owner = self._connection
        self._login_task = asyncio.ensure_future(self._do_login(server, credentials))
        return self._login_task

    async def _do_login(
        self, server: str | None, credentials: Credentials | None
    ) -> SessionError | None:
        connection = self._connection
        if connection is None:
            error = normalize_error(self._no_filesystem(self._path), platform=self._platform)
            self._settle_login(error)
            return error

        if server and self._backend is not None:
            self._server = self._backend.serverpart(server)
        logger.debug("Logging in to %s", self._server or self._path)

        try:
            await connection.login(server, credentials)
        except Exception as exc:
            error = normalize_error(exc, platform=self._platform)
            logger.debug("Login to %s failed: %s", self._server, error.kind.value)
            if connection is self._connection:
                self._set_status(ConnectionStatus.LOGIN)
                self._settle_login(error)
            return error

        if connection is self._connection:
            self._set_status(ConnectionStatus.OK)
            self._settle_login(None)
        return None

    async def login(
        self,
        server: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Log in on the active connection and resume operations waiting for it.

        Calls made while a login is already in flight share its outcome
        instead of starting a second handshake.
        """
        if self._login_in_flight():
            task = self._login_task
        else:
            task = self._start_login(server, credentials)
        error = await asyncio.shield(task)
        if error is not None:
            raise error

    async def _guarded(self, operation: Callable[[Connection], Awaitable[T]]) -> T:
        """Run *operation* on a usable connection, normalizing any failure."""
        connection = await self.wait_for_connection()
        try:
            result = await operation(connection)
        except Exception as exc:
            raise self._fail(exc) from exc
        self._recover_status()
        return result

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _update_path(self, path: str, skip_history: bool) -> None:
        self._previous_path = self._path
        self._path = path
        self._emit(EventType.LOCATION_CHANGED, path=path, old_path=self._previous_path)
        if not skip_history:
            self._history.push(path)
            self._emit(EventType.HISTORY_CHANGED, path=path, value=self._history.cursor)

    async def navigate(
        self,
        path: str,
        join: str | None = None,
        *,
        skip_history: bool = False,
        skip_context: bool = False,
    ) -> str:
        """Change the current location and refresh the listing.

        *join* is appended to *path* with the backend's own path rules.
        Returns the location as resolved by the backend.
        """
        return await self._navigate(path, join, skip_history, skip_context, None)

    async def _navigate(
        self,
        path: str,
        join: str | None,
        skip_history: bool,
        skip_context: bool,
        restore_cursor: int | None,
    ) -> str:
        logger.debug("navigate %s (from %s)", path, self._path)
        switched = False
        try:
            if path != self._path or self._connection is None:
                backend = self._registry.resolve(path)
                if backend is None:
                    raise self._fail(self._no_filesystem(path))
                if (
                    backend is not self._backend
                    or self._connection is None
                    or backend.serverpart(path) != self._server
                ):
                    try:
                        released = self._attach(backend, path, save_context=not skip_context)
                    except Exception as exc:
                        raise self._fail_connect(exc, path) from exc
                    switched = True
                    await self._release(released)

            resolved = await self._guarded(
                lambda c: c.cd(c.join(path, join) if join else c.sanitize(path))
            )
        except SessionError:
            if restore_cursor is not None:
                self._history.cursor = restore_cursor
                self._emit(EventType.HISTORY_CHANGED, path=self._path, value=restore_cursor)
            if switched and self._saved_context is not None:
                try:
                    await self.rollback_to_previous_context()
                except SessionError:
                    logger.warning("Could not restore previous backend", exc_info=True)
            raise

        if switched:
            await self._discard_saved_context()
        self._update_path(resolved, skip_history)
        await self.list_dir(resolved)
        return resolved

    async def navigate_history(self, delta: int = -1, *, force: bool = False) -> str | None:
        """Move through history by *delta* steps and open the entry found there.

        Returns ``None`` when nothing had to be opened (empty history, or
        the entry is already the current location and *force* is false).
        If opening fails the cursor goes back to where it was.
        """
        previous = self._history.cursor
        target = self._history.move(delta, current=self._path, force=force)
        if previous != self._history.cursor:
            self._emit(EventType.HISTORY_CHANGED, path=target, value=self._history.cursor)
        if target is None:
            return None
        logger.debug("Opening path from history: %s", target)
        return await self._navigate(target, None, True, False, previous)

    async def back(self) -> str | None:
        return await self.navigate_history(-1)

    async def forward(self) -> str | None:
        return await self.navigate_history(1)

    async def reload(self) -> str | None:
        """Re-open the current history entry without adding to history."""
        return await self.navigate_history(0, force=True)

    # ------------------------------------------------------------------
    # Listing and selection
    # ------------------------------------------------------------------

    async def list_dir(self, path: str, append_parent: bool = False) -> list[Entry]:
        """List *path*, replacing the session's entries and clearing the selection."""
        entries = await self._guarded(lambda c: c.list_dir(path, append_parent))
        self._entries = list(entries)
        self._selected = []
        self._emit(EventType.ENTRIES_REPLACED, path=path, value=len(self._entries))
        self._emit(EventType.SELECTION_CHANGED, path=path, value=0)
        return entries

    def select(self, entries: Sequence[Entry]) -> list[Entry]:
        """Replace the selection.  Entries not in the current listing are ignored."""
        self._selected = [e for e in entries if e in self._entries]
        self._emit(EventType.SELECTION_CHANGED, path=self._path, value=len(self._selected))
        return list(self._selected)

    def clear_selection(self) -> None:
        self._selected = []
        self._emit(EventType.SELECTION_CHANGED, path=self._path, value=0)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def rename(self, source: str, entry: Entry, new_name: str) -> str:
        """Rename *entry* in *source*; the entry object is updated in place."""
        old_name = entry.fullname
        name = await self._guarded(lambda c: c.rename(source, entry, new_name))
        entry.fullname = name
        self._emit(EventType.ENTRY_RENAMED, path=source, old_path=old_name, value=name)
        return name

    async def mkdir(self, parent: str, name: str) -> str:
        return await self._guarded(lambda c: c.mkdir(parent, name))

    async def delete(self, source: str, entries: Sequence[Entry]) -> int:
        return await self._guarded(lambda c: c.delete(source, entries))

    async def exists(self, path: str) -> bool:
        return await self._guarded(lambda c: c.exists(path))

    async def is_dir(self, path: str) -> bool:
        return await self._guarded(lambda c: c.is_dir(path))

    async def size(self, source: str, names: Sequence[str]) -> int:
        """Total size in bytes of *names* in *source*, directories included."""
        return await self._guarded(lambda c: c.size(source, names))

    async def fetch(self, path: str, name: str) -> str:
        """Make a file available on local disk and return the local path."""
        return await self._guarded(lambda c: c.get(path, name))

    async def open_entry(self, entry: Entry) -> str:
        """Enter a directory entry, or fetch a file and open it with the OS."""
        if entry.is_directory:
            return await self.navigate(entry.dir, entry.fullname)
        local_path = await self.fetch(entry.dir, entry.fullname)
        logger.debug("Opening file %s", local_path)
        self._shell.open_path(local_path)
        return local_path

    def open_terminal(self, path: str) -> bool:
        """Open a terminal at *path*.  Only local locations can be opened."""
        if self._backend is None or self._backend.name != "local":
            return False
        self._shell.open_terminal(path)
        return True

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def join(self, path: str, *parts: str) -> str:
        return self._require_connection().join(path, *parts)

    def is_root(self, path: str) -> bool:
        return self._require_connection().is_root(path)

    def is_directory_name_valid(self, name: str) -> bool:
        return self._require_connection().is_directory_name_valid(name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release every connection and cancel a pending login."""
        if self._closed:
            return
        self._closed = True

        pending, self._pending_login = self._pending_login, None
        self._pending_owner = None
        if pending is not None and not pending.done():
            pending.cancel()
        if self._login_task is not None and not self._login_task.done():
            self._login_task.cancel()

        released: list[Connection] = []
        if self._saved_context is not None:
            released.append(self._saved_context.connection)
            self._saved_context = None
        if self._connection is not None:
            released.append(self._connection)
            self._connection = None
        self._backend = None
        await self._release(released)
        self._set_status(ConnectionStatus.BLANK)
