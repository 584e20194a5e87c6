"""Editing session: one document, its undo history and its global timing controls."""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from . import editor
from .history import EditHistory
from .models import Draft, EditorSnapshot, EntryCollection, GlobalTimingAdjustment, TimeCodedEntry, reindex
from .subtitle_formats import serialize_lrc, serialize_srt, serialize_vtt
from .sync_service import SyncCollaborator, generate_entries, refine_entries
from .exceptions import LyricSyncError, RequestInFlightError

logger = logging.getLogger(__name__)


class EditingSession:
    """
    Owns the entry collection of one document and every change made to it.

    Each edit runs the matching pure operation from `editor` on the current
    snapshot and pushes the result to the history; edits that change
    nothing are not recorded. All mutations are serialized by a lock, so a
    session may be shared between threads.

    The global offset and end padding are cumulative values stored with each
    snapshot: moving a control from +200 to +500 shifts entries by a further
    +300, and returning it to 0 removes what it added. Undo and redo restore
    the control values together with the entries they belong to.
    """

    def __init__(self, entries: Iterable[TimeCodedEntry] = (), source_file_name: Optional[str] = None,
                 history_limit: Optional[int] = None):
        """
        Args:
            entries: Initial entries; re-numbered from 1.
            source_file_name: Name of the media or subtitle file the entries belong to.
            history_limit: Optional maximum number of snapshots kept for undo.
        """
        self._lock = threading.RLock()
        self._history = EditHistory(EditorSnapshot(reindex(entries)), max_snapshots=history_limit)
        self._pending: Dict[Tuple[int, str], str] = {}
        self._revision = 0
        self._request_active = False
        self.source_file_name = source_file_name

    # --- State -------------------------------------------------------------

    @property
    def entries(self) -> EntryCollection:
        return self._history.current.entries

    @property
    def adjustment(self) -> GlobalTimingAdjustment:
        return self._history.current.adjustment

    @property
    def offset_ms(self) -> int:
        return self.adjustment.offset_ms

    @property
    def end_padding_ms(self) -> int:
        return self.adjustment.end_padding_ms

    @property
    def revision(self) -> int:
        """Counter bumped by every change of the current snapshot."""
        return self._revision

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def is_busy(self) -> bool:
        """True while a collaborator request is running."""
        return self._request_active

    # --- Internals ---------------------------------------------------------

    def _commit(self, new_entries: EntryCollection, keep_pending: bool = False,
                adjustment: Optional[GlobalTimingAdjustment] = None) -> bool:
        with self._lock:
            current = self._history.current
            if adjustment is None:
                adjustment = current.adjustment
            if new_entries is current.entries or new_entries == current.entries:
                # A control moved without touching any entry: no undo step, just remember the value.
                if adjustment != current.adjustment:
                    self._history.replace_current(EditorSnapshot(current.entries, adjustment))
                return False
            self._history.push(EditorSnapshot(new_entries, adjustment))
            self._revision += 1
            if not keep_pending:
                self._pending.clear()
            return True

    def _apply(self, operation, *args, keep_pending: bool = False) -> bool:
        with self._lock:
            return self._commit(operation(self.entries, *args), keep_pending=keep_pending)

    # --- Document lifecycle ------------------------------------------------

    def load(self, entries: Iterable[TimeCodedEntry], source_file_name: Optional[str] = None,
             adjustment: Optional[GlobalTimingAdjustment] = None) -> None:
        """
        Adopts a new document, discarding the previous history.

        Args:
            entries: The new entries; re-numbered from 1.
            source_file_name: Name of the file the entries came from.
            adjustment: Offset/padding already applied to `entries`
                        (used when restoring a draft). Defaults to zero.
        """
        with self._lock:
            self._history.reset(EditorSnapshot(reindex(entries), adjustment or GlobalTimingAdjustment()))
            self._pending.clear()
            self._revision += 1
            if source_file_name is not None:
                self.source_file_name = source_file_name
            logger.info(f"Loaded {len(self.entries)} entries"
                        + (f" for {self.source_file_name}" if self.source_file_name else ""))

    def undo(self) -> bool:
        with self._lock:
            if not self._history.undo():
                return False
            self._revision += 1
            self._pending.clear()
            return True

    def redo(self) -> bool:
        with self._lock:
            if not self._history.redo():
                return False
            self._revision += 1
            self._pending.clear()
            return True

    # --- Structural edits --------------------------------------------------

    def insert_after(self, after_seq: int, text: str = editor.PLACEHOLDER_TEXT) -> bool:
        return self._apply(editor.insert_after, after_seq, text)

    def append_entry(self, text: str = editor.PLACEHOLDER_TEXT) -> bool:
        return self._apply(editor.append_entry, text)

    def delete_entry(self, seq: int) -> bool:
        return self._apply(editor.delete_entry, seq)

    def move_entry(self, seq: int, direction: str) -> bool:
        return self._apply(editor.move_entry, seq, direction)

    def reorder(self, from_index: int, to_index: int) -> bool:
        return self._apply(editor.reorder, from_index, to_index)

    def merge_with_next(self, seq: int) -> bool:
        return self._apply(editor.merge_with_next, seq)

    def split_at(self, seq: int, char_offset: int) -> bool:
        return self._apply(editor.split_at, seq, char_offset)

    def update_field(self, seq: int, field: str, value: str) -> bool:
        """Replaces a field immediately; time values are normalized."""
        with self._lock:
            self._pending.pop((seq, field), None)
            return self._apply(editor.update_field, seq, field, value, keep_pending=True)

    def set_field_to_playback_time(self, seq: int, field: str, playback_ms: int) -> bool:
        with self._lock:
            self._pending.pop((seq, field), None)
            return self._apply(editor.set_field_to_playback_time, seq, field, playback_ms, keep_pending=True)

    # --- Two-phase field editing ------------------------------------------

    def edit_field(self, seq: int, field: str, raw_value: str) -> bool:
        """
        Records what the user is typing into a field.

        Time fields keep the raw text, unvalidated and outside the history,
        until `commit_field` is called (focus lost or edit confirmed). Text
        edits are applied straight away.

        Returns:
            True if the collection changed (text edits only).
        """
        if field == editor.TEXT:
            return self.update_field(seq, field, raw_value)
        if field not in editor.TIME_FIELDS:
            raise ValueError(f"Invalid field '{field}'. Choose one of: {', '.join(editor.EDITABLE_FIELDS)}.")
        with self._lock:
            if editor.find_position(self.entries, seq) is None:
                return False
            self._pending[(seq, field)] = raw_value
            return False

    def pending_value(self, seq: int, field: str) -> Optional[str]:
        """The uncommitted text of a time field, or None if it is not being edited."""
        return self._pending.get((seq, field))

    def commit_field(self, seq: int, field: str) -> bool:
        """Normalizes and applies the pending text of a time field."""
        with self._lock:
            raw_value = self._pending.pop((seq, field), None)
            if raw_value is None:
                return False
            return self._apply(editor.update_field, seq, field, raw_value, keep_pending=True)

    def cancel_edit(self, seq: int, field: str) -> None:
        with self._lock:
            self._pending.pop((seq, field), None)

    # --- Global timing controls -------------------------------------------

    def apply_global_offset(self, new_offset_ms: int) -> bool:
        """
        Moves the global offset control to `new_offset_ms`.

        Returns:
            True if any entry changed.
        """
        with self._lock:
            new_entries = editor.apply_global_offset(self.entries, self.offset_ms, new_offset_ms)
            return self._commit(new_entries, keep_pending=True,
                                adjustment=replace(self.adjustment, offset_ms=new_offset_ms))

    def apply_end_padding(self, new_padding_ms: int) -> bool:
        """
        Moves the end padding control to `new_padding_ms`.

        Returns:
            True if any entry changed.
        """
        with self._lock:
            new_entries = editor.apply_end_padding(self.entries, self.end_padding_ms, new_padding_ms)
            return self._commit(new_entries, keep_pending=True,
                                adjustment=replace(self.adjustment, end_padding_ms=new_padding_ms))

    # --- Export ------------------------------------------------------------

    def to_srt(self) -> str:
        return serialize_srt(self.entries)

    def to_vtt(self) -> str:
        return serialize_vtt(self.entries)

    def to_lrc(self) -> str:
        return serialize_lrc(self.entries)

    # --- Drafts ------------------------------------------------------------

    def to_draft(self, saved_at: Optional[str] = None) -> Draft:
        return Draft(
            entries=self.entries,
            source_file_name=self.source_file_name,
            saved_at=saved_at or datetime.now(timezone.utc).isoformat(),
            offset_ms=self.offset_ms,
            end_padding_ms=self.end_padding_ms,
        )

    @classmethod
    def from_draft(cls, draft: Draft, history_limit: Optional[int] = None) -> "EditingSession":
        session = cls(history_limit=history_limit)
        session.load(
            draft.entries,
            source_file_name=draft.source_file_name,
            adjustment=GlobalTimingAdjustment(offset_ms=draft.offset_ms, end_padding_ms=draft.end_padding_ms),
        )
        return session

    # --- Collaborator requests --------------------------------------------

    def _begin_request(self) -> int:
        with self._lock:
            if self._request_active:
                raise RequestInFlightError("Another generate or refine request is still running.")
            self._request_active = True
            return self._revision

    def _end_request(self) -> None:
        with self._lock:
            self._request_active = False

    def generate(self, collaborator: SyncCollaborator, media_bytes: bytes, mime_type: str,
                 source_text: str = "", source_file_name: Optional[str] = None) -> bool:
        """
        Replaces the document with entries generated by the collaborator.

        On success the history restarts from the generated entries and both
        timing controls return to zero. On failure the exception propagates
        and the session is left as it was.

        Returns:
            True if the result was adopted, False if the session changed
            while the request was running and the result was discarded.

        Raises:
            RequestInFlightError: If another request is running.
            CollaboratorError: If the collaborator fails or breaks its contract.
        """
        revision = self._begin_request()
        try:
            entries = generate_entries(collaborator, media_bytes, mime_type, source_text)
        finally:
            self._end_request()

        with self._lock:
            if self._revision != revision:
                logger.warning("Discarding generated subtitles: the document changed while the request was running.")
                return False
            self.load(entries, source_file_name=source_file_name)
            return True

    def refine(self, collaborator: SyncCollaborator, media_bytes: bytes, mime_type: str) -> bool:
        """
        Replaces the timings of the current entries with refined ones from the collaborator.

        The refined collection is pushed like any other edit, so it can be
        undone. Texts are always kept from the current entries.

        Returns:
            True if the refined timings were applied, False if they were
            discarded as stale or changed nothing.

        Raises:
            LyricSyncError: If there are no entries to refine.
            RequestInFlightError: If another request is running.
            EntryCountMismatchError: If the collaborator returned a different number of entries.
            CollaboratorError: If the collaborator fails otherwise.
        """
        with self._lock:
            if not self.entries:
                raise LyricSyncError("There are no subtitles to refine.")
            revision = self._begin_request()
            entries = self.entries
        try:
            refined = refine_entries(collaborator, media_bytes, mime_type, entries)
        finally:
            self._end_request()

        with self._lock:
            if self._revision != revision:
                logger.warning("Discarding refined timings: the document changed while the request was running.")
                return False
            return self._commit(refined)
