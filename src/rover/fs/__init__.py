"""Filesystem layer — backend contracts, registry, error taxonomy, bundled backends."""

from rover.fs.database import DatabaseBackend, DatabaseConnection
from rover.fs.errors import ErrorKind, normalize_error
from rover.fs.exceptions import BackendError, RoverError, SessionError
from rover.fs.local import LocalBackend, LocalConnection
from rover.fs.protocol import Backend, Connection
from rover.fs.registry import BackendRegistry
from rover.fs.types import ConnectionStatus, Credentials, Entry, SavedContext

__all__ = [
    "Backend",
    "BackendError",
    "BackendRegistry",
    "Connection",
    "ConnectionStatus",
    "Credentials",
    "DatabaseBackend",
    "DatabaseConnection",
    "Entry",
    "ErrorKind",
    "LocalBackend",
    "LocalConnection",
    "RoverError",
    "SavedContext",
    "SessionError",
    "normalize_error",
]
