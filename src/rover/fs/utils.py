"""Path and filename utilities shared by the bundled backends."""

from __future__ import annotations

import posixpath
import re

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

_WIN_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_UNIX_INVALID_CHARS = re.compile(r"[/\x00]")

MAX_NAME_LENGTH = 255


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a virtual file system path.

    - Ensures leading /
    - Resolves .. and . references
    - Removes double slashes
    - Removes trailing slash (except for root)

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("/foo//bar.txt") -> "/foo/bar.txt"
        normalize_path("/foo/../bar.txt") -> "/bar.txt"
        normalize_path("/foo/") -> "/foo"
        normalize_path("") -> "/"
    """
    if not path:
        return "/"

    path = path.strip()

    if not path.startswith("/"):
        path = "/" + path

    path = posixpath.normpath(path)

    # posixpath keeps a leading "//" as-is
    if path.startswith("//"):
        path = "/" + path.lstrip("/")

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, filename).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/foo.txt") -> ("/", "foo.txt")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    if path == "/":
        return "/", ""
    return posixpath.split(path)


def is_valid_filename(name: str, *, platform: str) -> bool:
    """Check that *name* can be used as a single file or directory name.

    Windows rules (reserved device names, ``<>:"/\\|?*``, no trailing dot
    or space) apply when *platform* is ``"win32"``; elsewhere only ``/``
    and NUL are rejected.
    """
    if not name or name in (".", "..") or len(name) > MAX_NAME_LENGTH:
        return False

    if platform == "win32":
        if _WIN_INVALID_CHARS.search(name) or name[-1] in (" ", "."):
            return False
        base_name = name.upper().split(".")[0]
        return base_name not in RESERVED_NAMES

    return _UNIX_INVALID_CHARS.search(name) is None
