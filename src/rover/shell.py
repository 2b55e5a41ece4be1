"""Shell integration — hand paths to the desktop environment.

Both actions are fire-and-forget: the launched process is not awaited and a
missing launcher is logged, never raised into navigation code.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Shell(Protocol):
    """OS-level actions a session can trigger."""

    def open_path(self, path: str) -> None: ...

    def open_terminal(self, path: str) -> None: ...


class SystemShell:
    """Shell backed by the platform's default launchers."""

    def __init__(self, *, platform: str = sys.platform, terminal: str | None = None) -> None:
        self.platform = platform
        self.terminal = terminal

    def _spawn(self, args: list[str], cwd: str | None = None) -> None:
        try:
            subprocess.Popen(  # noqa: S603
                args,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=self.platform != "win32",
            )
        except OSError:
            logger.warning("Failed to launch %s", args[0], exc_info=True)

    def open_path(self, path: str) -> None:
        """Open *path* with the default application."""
        logger.debug("Opening %s", path)
        if self.platform == "win32":
            try:
                os.startfile(path)  # type: ignore[attr-defined]
            except OSError:
                logger.warning("Failed to open %s", path, exc_info=True)
        elif self.platform == "darwin":
            self._spawn(["open", path])
        else:
            self._spawn(["xdg-open", path])

    def open_terminal(self, path: str) -> None:
        """Open a terminal window whose working directory is *path*."""
        logger.debug("Opening terminal in %s", path)
        if self.terminal:
            self._spawn([self.terminal], cwd=path)
        elif self.platform == "win32":
            self._spawn(["cmd.exe", "/c", "start", "cmd.exe"], cwd=path)
        elif self.platform == "darwin":
            self._spawn(["open", "-a", "Terminal", path])
        else:
            self._spawn(["x-terminal-emulator"], cwd=path)
