"""NavigationHistory — browser-style back/forward log of visited locations."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class NavigationHistory:
    """Ordered log of locations with a cursor.

    Pushing from the middle of the log discards the abandoned forward
    branch.  Moves saturate at both ends instead of raising.
    """

    def __init__(self) -> None:
        self._entries: list[str] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"NavigationHistory(entries={self._entries!r}, cursor={self._cursor})"

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def cursor(self) -> int:
        """Index of the current entry, ``-1`` when the history is empty."""
        return self._cursor

    @cursor.setter
    def cursor(self, value: int) -> None:
        if not -1 <= value < len(self._entries) or (value == -1 and self._entries):
            raise IndexError(f"History cursor out of range: {value}")
        self._cursor = value

    @property
    def current(self) -> str | None:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    @property
    def can_go_back(self) -> bool:
        return self._cursor > 0

    @property
    def can_go_forward(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    def push(self, location: str) -> None:
        """Append *location* after the cursor, dropping forward entries."""
        del self._entries[self._cursor + 1 :]
        self._entries.append(location)
        self._cursor = len(self._entries) - 1

    def move(self, delta: int, *, current: str | None = None, force: bool = False) -> str | None:
        """Move the cursor by *delta* and return the location it lands on.

        Returns ``None`` on an empty history, or when the target equals
        *current* and *force* is false (re-opening the location already
        shown would only trigger another reload).
        """
        if not self._entries:
            logger.warning("Attempting to navigate in empty history")
            return None

        self._cursor = min(max(self._cursor + delta, 0), len(self._entries) - 1)
        target = self._entries[self._cursor]

        if not force and target == current:
            logger.warning("Preventing reload loop on %s", target)
            return None
        return target

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
