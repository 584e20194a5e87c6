"""Tests for session.py: edits through history, global controls, drafts and collaborator requests."""

from typing import Callable, List, Optional, Sequence

import pytest

from lyricsync import editor
from lyricsync.exceptions import (
    CollaboratorError,
    EntryCountMismatchError,
    LyricSyncError,
    RequestInFlightError,
)
from lyricsync.models import Draft, TimeCodedEntry
from lyricsync.session import EditingSession
from lyricsync.sync_service import SyncCollaborator


class FakeCollaborator(SyncCollaborator):
    """Returns canned records and can run a hook while the request is in flight."""

    def __init__(self, records: List[dict], during: Optional[Callable[[], None]] = None):
        self.records = records
        self.during = during
        self.calls = []

    def _respond(self, name: str, *args) -> List[dict]:
        self.calls.append((name, args))
        if self.during:
            self.during()
        return self.records

    def generate_from_media(self, media_bytes: bytes, mime_type: str, source_text: str) -> List[dict]:
        return self._respond("generate", media_bytes, mime_type, source_text)

    def refine_timings(self, media_bytes: bytes, mime_type: str, entries: Sequence[dict]) -> List[dict]:
        return self._respond("refine", media_bytes, mime_type, entries)


def _entries(*spans) -> tuple:
    return tuple(
        TimeCodedEntry(index=i, start_ms=start, end_ms=end, text=text)
        for i, (start, end, text) in enumerate(spans, 1)
    )


def _record(index, start, end, text):
    return {"index": index, "startTime": start, "endTime": end, "text": text}


@pytest.fixture
def session() -> EditingSession:
    return EditingSession(_entries((1000, 2000, "one"), (2000, 3000, "two"), (3000, 4000, "three")),
                          source_file_name="song.mp3")


class TestStructuralEdits:

    def test_initial_entries_reindexed(self) -> None:
        entries = (TimeCodedEntry(index=7, start_ms=0, end_ms=1, text="x"),)
        assert EditingSession(entries).entries[0].index == 1

    def test_insert_after_scenario(self) -> None:
        session = EditingSession(_entries((1000, 2000, "A"), (3000, 4000, "B")))
        assert session.insert_after(1)
        assert [(e.index, e.start_time, e.end_time, e.text) for e in session.entries] == [
            (1, "00:00:01,000", "00:00:02,000", "A"),
            (2, "00:00:02,000", "00:00:02,000", editor.PLACEHOLDER_TEXT),
            (3, "00:00:03,000", "00:00:04,000", "B"),
        ]
        assert session.undo()
        assert [e.text for e in session.entries] == ["A", "B"]

    def test_noop_edit_not_recorded(self, session) -> None:
        revision = session.revision
        assert not session.merge_with_next(3)
        assert not session.split_at(1, 0)
        assert not session.delete_entry(42)
        assert not session.can_undo
        assert session.revision == revision

    def test_each_edit_is_one_undo_step(self, session) -> None:
        original = session.entries
        session.merge_with_next(1)
        session.split_at(1, 3)
        session.move_entry(1, editor.DOWN)
        session.reorder(0, 1)
        session.append_entry("tail")
        session.delete_entry(1)
        for _ in range(6):
            assert session.undo()
        assert not session.can_undo
        assert session.entries == original

    def test_undo_redo_exact(self, session) -> None:
        session.delete_entry(2)
        after_delete = session.entries
        session.undo()
        session.redo()
        assert session.entries is after_delete

    def test_new_edit_clears_redo(self, session) -> None:
        session.delete_entry(2)
        session.undo()
        assert session.can_redo
        session.append_entry()
        assert not session.can_redo

    def test_history_limit(self) -> None:
        session = EditingSession(_entries((0, 1000, "a")), history_limit=2)
        session.append_entry("b")
        session.append_entry("c")
        assert session.undo()
        assert not session.undo()

    def test_update_field(self, session) -> None:
        assert session.update_field(2, editor.START_TIME, "2.25")
        assert session.entries[1].start_ms == 2250
        assert not session.update_field(2, editor.START_TIME, "00:00:02,250")

    def test_set_field_to_playback_time(self, session) -> None:
        assert session.set_field_to_playback_time(3, editor.END_TIME, 4500)
        assert session.entries[2].end_ms == 4500


class TestTwoPhaseEditing:

    def test_time_edit_held_until_commit(self, session) -> None:
        assert not session.edit_field(1, editor.START_TIME, "0:0")
        assert session.pending_value(1, editor.START_TIME) == "0:0"
        assert session.entries[0].start_ms == 1000
        assert not session.can_undo

        assert session.commit_field(1, editor.START_TIME)
        assert session.entries[0].start_ms == 0
        assert session.pending_value(1, editor.START_TIME) is None
        assert session.can_undo

    def test_partial_input_is_not_validated_while_typing(self, session) -> None:
        session.edit_field(2, editor.END_TIME, "00:0")
        session.edit_field(2, editor.END_TIME, "00:00:03,5")
        assert session.pending_value(2, editor.END_TIME) == "00:00:03,5"
        session.commit_field(2, editor.END_TIME)
        assert session.entries[1].end_time == "00:00:03,500"

    def test_malformed_commit_becomes_zero(self, session) -> None:
        session.edit_field(3, editor.START_TIME, "abc")
        session.commit_field(3, editor.START_TIME)
        assert session.entries[2].start_time == "00:00:00,000"

    def test_text_edit_applied_immediately(self, session) -> None:
        assert session.edit_field(1, editor.TEXT, "uno")
        assert session.entries[0].text == "uno"
        assert session.pending_value(1, editor.TEXT) is None

    def test_commit_without_pending(self, session) -> None:
        assert not session.commit_field(1, editor.START_TIME)

    def test_cancel_edit(self, session) -> None:
        session.edit_field(1, editor.END_TIME, "9")
        session.cancel_edit(1, editor.END_TIME)
        assert session.pending_value(1, editor.END_TIME) is None
        assert not session.commit_field(1, editor.END_TIME)

    def test_unknown_entry_ignored(self, session) -> None:
        assert not session.edit_field(99, editor.START_TIME, "1")
        assert session.pending_value(99, editor.START_TIME) is None

    def test_invalid_field(self, session) -> None:
        with pytest.raises(ValueError):
            session.edit_field(1, "index", "2")

    def test_structural_edit_drops_pending(self, session) -> None:
        session.edit_field(1, editor.START_TIME, "5")
        session.delete_entry(3)
        assert session.pending_value(1, editor.START_TIME) is None

    def test_text_edit_keeps_other_pending(self, session) -> None:
        session.edit_field(1, editor.START_TIME, "5")
        session.edit_field(1, editor.TEXT, "uno")
        assert session.pending_value(1, editor.START_TIME) == "5"


class TestGlobalControls:

    def test_offset_is_cumulative(self, session) -> None:
        original = session.entries
        session.apply_global_offset(200)
        session.apply_global_offset(500)
        assert session.entries[0].start_ms == 1500
        assert session.offset_ms == 500
        session.apply_global_offset(0)
        assert session.entries == original

    def test_same_offset_twice_is_idempotent(self, session) -> None:
        session.apply_global_offset(300)
        after = session.entries
        assert not session.apply_global_offset(300)
        assert session.entries is after

    def test_undo_restores_offset_with_entries(self, session) -> None:
        original = session.entries
        session.apply_global_offset(250)
        assert session.undo()
        assert session.entries == original
        assert session.offset_ms == 0
        assert not session.apply_global_offset(0)
        assert session.entries == original
        assert session.entries[0].start_ms == 1000

    def test_redo_restores_offset_with_entries(self, session) -> None:
        session.apply_global_offset(250)
        session.undo()
        assert session.redo()
        assert session.offset_ms == 250
        assert session.entries[0].start_ms == 1250
        session.apply_global_offset(0)
        assert session.entries[0].start_ms == 1000

    def test_undo_restores_end_padding(self, session) -> None:
        original = session.entries
        session.apply_end_padding(400)
        session.undo()
        assert session.end_padding_ms == 0
        session.apply_end_padding(0)
        assert session.entries == original

    def test_offset_on_empty_session_is_remembered_without_undo_step(self) -> None:
        session = EditingSession()
        assert not session.apply_global_offset(300)
        assert session.offset_ms == 300
        assert not session.can_undo
        assert session.revision == 0

    def test_end_padding_never_ends_before_start(self, session) -> None:
        session.apply_end_padding(-10000)
        assert all(e.end_ms >= e.start_ms for e in session.entries)
        assert session.end_padding_ms == -10000

    def test_end_padding_respects_next_start(self, session) -> None:
        session.apply_end_padding(400)
        assert [e.end_ms for e in session.entries] == [2000, 3000, 4400]

    def test_load_resets_controls_and_history(self, session) -> None:
        session.apply_global_offset(100)
        session.load(_entries((0, 10, "new")), source_file_name="other.mp4")
        assert session.offset_ms == 0
        assert not session.can_undo
        assert session.source_file_name == "other.mp4"


class TestExportAndDrafts:

    def test_exports(self, session) -> None:
        assert session.to_srt().startswith("1\r\n00:00:01,000 --> 00:00:02,000\r\none")
        assert session.to_vtt().startswith("WEBVTT\n\n00:00:01.000 --> 00:00:02.000 align:center size:80%\none")
        assert session.to_lrc().splitlines()[0] == "[00:01.00]one"

    def test_draft_round_trip(self, session) -> None:
        session.apply_global_offset(100)
        draft = session.to_draft(saved_at="2024-01-01T00:00:00+00:00")
        assert draft.offset_ms == 100
        assert draft.source_file_name == "song.mp3"

        restored = EditingSession.from_draft(draft)
        assert restored.entries == session.entries
        assert restored.offset_ms == 100
        assert not restored.can_undo

        restored.apply_global_offset(0)
        assert restored.entries[0].start_ms == 1000

    def test_draft_gets_timestamp(self, session) -> None:
        assert session.to_draft().saved_at

    def test_from_draft_reindexes(self) -> None:
        draft = Draft(entries=(TimeCodedEntry(index=4, start_ms=0, end_ms=1, text="x"),))
        assert EditingSession.from_draft(draft).entries[0].index == 1


class TestGenerate:

    def test_generate_replaces_document(self, session) -> None:
        session.apply_global_offset(100)
        collaborator = FakeCollaborator([_record(1, "0.5", "1.5", "la"), _record(2, "1.5", "2", "li")])
        assert session.generate(collaborator, b"media", "audio/mpeg", "la\nli", source_file_name="new.mp3")
        assert [(e.index, e.start_ms, e.end_ms, e.text) for e in session.entries] == [
            (1, 500, 1500, "la"),
            (2, 1500, 2000, "li"),
        ]
        assert session.offset_ms == 0
        assert not session.can_undo
        assert session.source_file_name == "new.mp3"
        assert collaborator.calls == [("generate", (b"media", "audio/mpeg", "la\nli"))]

    def test_failure_keeps_document(self, session) -> None:
        original = session.entries
        with pytest.raises(CollaboratorError):
            session.generate(FakeCollaborator([]), b"media", "audio/mpeg")
        assert session.entries is original
        assert not session.is_busy

    def test_stale_result_discarded(self, session) -> None:
        collaborator = FakeCollaborator([_record(1, "0", "1", "late")],
                                        during=lambda: session.append_entry("typed meanwhile"))
        assert not session.generate(collaborator, b"media", "audio/mpeg")
        assert session.entries[-1].text == "typed meanwhile"
        assert not session.is_busy

    def test_second_request_rejected_while_busy(self, session) -> None:
        nested = []

        def start_another() -> None:
            assert session.is_busy
            with pytest.raises(RequestInFlightError):
                session.generate(FakeCollaborator([]), b"media", "audio/mpeg")
            nested.append(True)

        collaborator = FakeCollaborator([_record(1, "0", "1", "x")], during=start_another)
        assert session.generate(collaborator, b"media", "audio/mpeg")
        assert nested == [True]
        assert not session.is_busy


class TestRefine:

    def test_refine_keeps_text_and_is_undoable(self, session) -> None:
        original = session.entries
        collaborator = FakeCollaborator([
            _record(1, "0.9", "1.8", "ignored"),
            _record(2, "2.1", "2.9", "ignored"),
            _record(3, "3.3", "4.1", "ignored"),
        ])
        assert session.refine(collaborator, b"media", "video/mp4")
        assert [(e.start_ms, e.end_ms, e.text) for e in session.entries] == [
            (900, 1800, "one"), (2100, 2900, "two"), (3300, 4100, "three"),
        ]
        assert session.undo()
        assert session.entries == original

    def test_refine_count_mismatch_keeps_entries(self, session) -> None:
        original = session.entries
        collaborator = FakeCollaborator([_record(1, "0", "1", "a"), _record(2, "1", "2", "b")])
        with pytest.raises(EntryCountMismatchError) as excinfo:
            session.refine(collaborator, b"media", "video/mp4")
        assert (excinfo.value.expected, excinfo.value.received) == (3, 2)
        assert session.entries is original
        assert not session.can_undo

    def test_refine_empty_document(self) -> None:
        with pytest.raises(LyricSyncError, match="no subtitles to refine"):
            EditingSession().refine(FakeCollaborator([]), b"media", "video/mp4")

    def test_refine_stale_result_discarded(self, session) -> None:
        collaborator = FakeCollaborator(
            [_record(i, "0", "1", "x") for i in (1, 2, 3)],
            during=lambda: session.update_field(1, editor.TEXT, "edited"),
        )
        assert not session.refine(collaborator, b"media", "video/mp4")
        assert session.entries[0].text == "edited"
        assert session.entries[0].start_ms == 1000
