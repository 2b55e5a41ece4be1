"""BackendRegistry — resolves locations to backends."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol import Backend, Connection

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Registry of available backends.

    Resolution is first-match in registration order, so more specific
    backends (``ftp://``) should be registered before catch-alls.
    The registry holds no connections: every :meth:`instantiate` call
    returns a fresh one.
    """

    def __init__(self, backends: list[Backend] | None = None) -> None:
        self._backends: dict[str, Backend] = {}
        for backend in backends or []:
            self.register(backend)

    def register(self, backend: Backend) -> None:
        """Add or replace a backend (keyed by ``backend.name``)."""
        self._backends[backend.name] = backend

    def unregister(self, name: str) -> None:
        """Remove a backend.  Unknown names are ignored."""
        self._backends.pop(name, None)

    def has_backend(self, name: str) -> bool:
        return name in self._backends

    def get_backend(self, name: str) -> Backend | None:
        return self._backends.get(name)

    def list_backends(self) -> list[Backend]:
        """List registered backends in resolution order."""
        return list(self._backends.values())

    def resolve(self, location: str) -> Backend | None:
        """Return the first backend that can read *location*, or ``None``."""
        for backend in self._backends.values():
            try:
                if backend.can_read(location):
                    return backend
            except Exception:
                logger.warning(
                    "Backend %r failed to check %s", backend.name, location, exc_info=True
                )
        return None

    def instantiate(self, backend: Backend | str, location: str) -> Connection:
        """Create a new connection to *location* through *backend*."""
        if isinstance(backend, str):
            found = self._backends.get(backend)
            if found is None:
                raise KeyError(f"No backend registered as {backend!r}")
            backend = found
        return backend.connect(location)
