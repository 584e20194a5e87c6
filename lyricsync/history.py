"""Linear undo/redo history over full editor snapshots."""

import logging
from typing import List, Optional

from .models import EditorSnapshot

logger = logging.getLogger(__name__)


class EditHistory:
    """
    A list of immutable snapshots plus a cursor pointing at the current one.

    Pushing truncates any redo tail. A snapshot equal to the current one is
    not recorded. Undo and redo only move the cursor.
    """

    def __init__(self, initial: EditorSnapshot = EditorSnapshot(), max_snapshots: Optional[int] = None):
        """
        Args:
            initial: The first snapshot (may hold an empty collection).
            max_snapshots: Optional cap on stored snapshots; the oldest are
                           dropped once it is exceeded. None keeps everything.
        """
        if max_snapshots is not None and max_snapshots < 1:
            raise ValueError(f"max_snapshots must be at least 1, got {max_snapshots}")
        self._max_snapshots = max_snapshots
        self._snapshots: List[EditorSnapshot] = [initial]
        self._cursor = 0

    @property
    def current(self) -> EditorSnapshot:
        return self._snapshots[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, snapshot: EditorSnapshot) -> bool:
        """
        Records a new snapshot after the current one.

        Returns:
            True if the snapshot was recorded, False if it equals the current one.
        """
        if snapshot == self.current:
            return False
        del self._snapshots[self._cursor + 1:]
        self._snapshots.append(snapshot)

        if self._max_snapshots is not None:
            overflow = len(self._snapshots) - self._max_snapshots
            if overflow > 0:
                del self._snapshots[:overflow]
                logger.debug(f"History limit reached, dropped {overflow} oldest snapshot(s)")

        self._cursor = len(self._snapshots) - 1
        return True

    def replace_current(self, snapshot: EditorSnapshot) -> None:
        """Overwrites the current snapshot in place, without adding an undo step."""
        self._snapshots[self._cursor] = snapshot

    def undo(self) -> bool:
        """Moves back one snapshot. Returns False if already at the oldest."""
        if not self.can_undo:
            return False
        self._cursor -= 1
        return True

    def redo(self) -> bool:
        """Moves forward one snapshot. Returns False if there is nothing to redo."""
        if not self.can_redo:
            return False
        self._cursor += 1
        return True

    def reset(self, snapshot: EditorSnapshot = EditorSnapshot()) -> None:
        """Starts a new document: discards every snapshot and keeps only `snapshot`."""
        self._snapshots = [snapshot]
        self._cursor = 0
