"""Error normalization — maps raw backend failures to a closed taxonomy.

Backends report failures in their own vocabulary: errno names from the local
disk, numeric reply codes from FTP-like servers, resolver errors from the
network stack.  :func:`normalize_error` turns any of them into a
:class:`~rover.fs.exceptions.SessionError` with a stable :class:`ErrorKind`
and a ``(message_key, params)`` pair for the localization layer.
"""

from __future__ import annotations

import errno
import logging
import socket
import sys
from enum import Enum
from typing import Any

from .exceptions import BackendError, SessionError

logger = logging.getLogger(__name__)

NO_FILESYSTEM_CODE = "NO_FS"
"""Code used when no registered backend understands a location."""

CANNOT_READ_FOLDER_CODE = "CANNOT_READ_FOLDER"
"""Code used when a backend was found but could not open a location."""

UNKNOWN_CODE = "UNKNOWN"
"""Code substituted for errors that carry no code at all."""


class ErrorKind(str, Enum):
    """Stable error categories exposed to callers."""

    HOST_NOT_FOUND = "host_not_found"
    CONNECTION_REFUSED = "connection_refused"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_FILENAME = "invalid_filename"
    AUTH_EXPIRED = "auth_expired"
    AUTH_REQUIRED = "auth_required"
    CANNOT_READ_FOLDER = "cannot_read_folder"
    NO_FILESYSTEM = "no_filesystem"
    UNKNOWN = "unknown"


_CODE_TO_KIND: dict[str | int, tuple[ErrorKind, str]] = {
    "ENOTFOUND": (ErrorKind.HOST_NOT_FOUND, "ERRORS.ENOTFOUND"),
    "ECONNREFUSED": (ErrorKind.CONNECTION_REFUSED, "ERRORS.ECONNREFUSED"),
    "ENOENT": (ErrorKind.NOT_FOUND, "ERRORS.ENOENT"),
    "EPERM": (ErrorKind.PERMISSION_DENIED, "ERRORS.EPERM"),
    "EACCES": (ErrorKind.PERMISSION_DENIED, "ERRORS.EPERM"),
    "BAD_FILENAME": (ErrorKind.INVALID_FILENAME, "ERRORS.BAD_FILENAME"),
    530: (ErrorKind.AUTH_EXPIRED, "ERRORS.530"),
    550: (ErrorKind.AUTH_REQUIRED, "ERRORS.550"),
    "ENOTDIR": (ErrorKind.CANNOT_READ_FOLDER, "ERRORS.CANNOT_READ_FOLDER"),
    CANNOT_READ_FOLDER_CODE: (ErrorKind.CANNOT_READ_FOLDER, "ERRORS.CANNOT_READ_FOLDER"),
    NO_FILESYSTEM_CODE: (ErrorKind.NO_FILESYSTEM, "ERRORS.CANNOT_READ_FOLDER"),
}


def error_code(error: BaseException) -> str | int:
    """Extract the backend code carried by *error*.

    Numeric strings (``"530"``) are folded into ints so that protocol reply
    codes compare equal whichever way the backend reported them.
    """
    code: str | int | None = None
    if isinstance(error, BackendError):
        code = error.code
    elif isinstance(error, socket.gaierror):
        code = "ENOTFOUND"
    elif isinstance(error, OSError) and error.errno is not None:
        code = errno.errorcode.get(error.errno)

    if code is None or code == "":
        return UNKNOWN_CODE
    if isinstance(code, str) and code.isdigit():
        return int(code)
    return code


def filename_hint_key(platform: str) -> str:
    """Message key describing the characters allowed in a filename."""
    if platform == "win32":
        return "ERRORS.WIN_VALID_FILENAME"
    return "ERRORS.UNIX_VALID_FILENAME"


def normalize_error(error: BaseException, *, platform: str = sys.platform) -> SessionError:
    """Map a raw backend failure to a :class:`SessionError`.

    Already-normalized errors are returned unchanged so that an error is
    never normalized twice on its way to the caller.
    """
    if isinstance(error, SessionError):
        return error

    code = error_code(error)
    kind, message_key = _CODE_TO_KIND.get(code, (ErrorKind.UNKNOWN, "ERRORS.UNKNOWN"))
    if kind is ErrorKind.UNKNOWN:
        logger.debug("Unrecognized backend error %r", error, exc_info=error)

    params: dict[str, Any] = {}
    if kind is ErrorKind.INVALID_FILENAME:
        params["entry"] = getattr(error, "new_name", None)
        params["accepted_chars"] = filename_hint_key(platform)
    elif kind in (ErrorKind.CANNOT_READ_FOLDER, ErrorKind.NO_FILESYSTEM):
        params["folder"] = getattr(error, "path", None) or getattr(error, "filename", None)

    return SessionError(kind, message_key, params, code=code)
