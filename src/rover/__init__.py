"""Rover: a navigation session over pluggable filesystem backends.

History, backend switching, login and error normalization for file browsers.
"""

__version__ = "0.1.0"

from rover._session import FileSession
from rover.events import EventBus, EventType, SessionEvent
from rover.fs.errors import ErrorKind, normalize_error
from rover.fs.exceptions import BackendError, RoverError, SessionError
from rover.fs.local import LocalBackend
from rover.fs.protocol import Backend, Connection
from rover.fs.registry import BackendRegistry
from rover.fs.types import ConnectionStatus, Credentials, Entry
from rover.history import NavigationHistory
from rover.shell import Shell, SystemShell

__all__ = [
    "Backend",
    "BackendError",
    "BackendRegistry",
    "Connection",
    "ConnectionStatus",
    "Credentials",
    "Entry",
    "ErrorKind",
    "EventBus",
    "EventType",
    "FileSession",
    "LocalBackend",
    "NavigationHistory",
    "RoverError",
    "SessionError",
    "SessionEvent",
    "Shell",
    "SystemShell",
    "__version__",
    "normalize_error",
]
