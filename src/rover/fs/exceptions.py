"""Custom exception hierarchy for the Rover session layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .errors import ErrorKind


class RoverError(Exception):
    """Base exception for all Rover errors."""


class BackendError(RoverError):
    """Raised by a backend connection when an operation fails.

    ``code`` is the backend's own error code (an errno name such as
    ``"ENOENT"``, a protocol reply code such as ``530``, or ``None``).
    Contextual fields (``path``, ``new_name``) feed the message parameters
    produced by the normalizer.
    """

    def __init__(
        self,
        message: str = "",
        *,
        code: str | int | None = None,
        path: str | None = None,
        new_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.new_name = new_name


class SessionError(RoverError):
    """A normalized failure surfaced by :class:`~rover.FileSession`.

    Every failing session operation raises exactly one of these.  The
    ``message_key``/``params`` pair is resolved to display text by the
    caller; nothing in Rover translates it.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message_key: str,
        params: dict[str, Any] | None = None,
        *,
        code: str | int | None = None,
    ) -> None:
        super().__init__(message_key)
        self.kind = kind
        self.message_key = message_key
        self.params: dict[str, Any] = params or {}
        self.code = code

    def __repr__(self) -> str:
        return (
            f"SessionError(kind={self.kind.name}, code={self.code!r}, "
            f"message_key={self.message_key!r})"
        )
