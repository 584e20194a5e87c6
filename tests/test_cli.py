"""Tests for cli.py: argument handling and the convert/generate/refine commands."""

import json
import logging
from typing import List, Sequence
from unittest.mock import patch

import pytest

from lyricsync.cli import CLIHandler
from lyricsync.sync_service import SyncCollaborator

SRT = (
    "1\n00:00:01,000 --> 00:00:02,000\nFirst\n\n"
    "2\n00:00:03,000 --> 00:00:04,000\nSecond\n"
)


class CannedCollaborator(SyncCollaborator):

    def __init__(self, records: List[dict]):
        self.records = records

    def generate_from_media(self, media_bytes: bytes, mime_type: str, source_text: str) -> List[dict]:
        return self.records

    def refine_timings(self, media_bytes: bytes, mime_type: str, entries: Sequence[dict]) -> List[dict]:
        return self.records


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Runs each test in a scratch directory and restores the root logging handlers afterwards."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield tmp_path
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def _run(*argv) -> int:
    with pytest.raises(SystemExit) as excinfo:
        CLIHandler().run(list(argv) + ["-c", "missing-config.yaml"])
    return excinfo.value.code


class TestConvert:

    def test_srt_to_vtt(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        assert _run("convert", "in.srt", "-o", "out.vtt") == 0
        content = (workdir / "out.vtt").read_text(encoding="utf-8-sig")
        assert content.startswith("WEBVTT\n\n00:00:01.000 --> 00:00:02.000 align:center size:80%\nFirst")

    def test_offset_and_padding(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        assert _run("convert", "in.srt", "-o", "out.srt", "--offset", "500", "--end-padding", "200") == 0
        content = (workdir / "out.srt").read_text(encoding="utf-8-sig")
        assert "00:00:01,500 --> 00:00:02,700" in content
        assert "00:00:03,500 --> 00:00:04,700" in content

    def test_to_overrides_extension(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        assert _run("convert", "in.srt", "-o", "lyrics.txt", "--to", "lrc") == 0
        assert (workdir / "lyrics.txt").read_text(encoding="utf-8-sig") == "[00:01.00]First\n[00:03.00]Second"

    def test_log_file_written(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        _run("convert", "in.srt", "-o", "out.srt")
        assert (workdir / "logs" / "lyricsync.log").exists()

    def test_missing_input(self, workdir) -> None:
        assert _run("convert", "nope.srt", "-o", "out.srt") == 1

    def test_unsupported_input_format(self, workdir) -> None:
        (workdir / "in.ass").write_text("[Script Info]", encoding="utf-8")
        assert _run("convert", "in.ass", "-o", "out.srt") == 1

    def test_save_draft(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        assert _run("convert", "in.srt", "-o", "out.srt", "--offset", "100", "--save-draft") == 0
        draft = json.loads((workdir / "lyricsync_draft.json").read_text(encoding="utf-8"))
        assert draft["videoFileName"] == "in.srt"
        assert draft["offset"] == 100
        assert len(draft["entries"]) == 2

    def test_invalid_config(self, workdir) -> None:
        (workdir / "in.srt").write_text(SRT, encoding="utf-8")
        (workdir / "bad.yaml").write_text("history_limit: 0\n", encoding="utf-8")
        with pytest.raises(SystemExit) as excinfo:
            CLIHandler().run(["convert", "in.srt", "-o", "out.srt", "-c", "bad.yaml"])
        assert excinfo.value.code == 1


class TestGenerateAndRefine:

    def test_generate_writes_named_after_media(self, workdir) -> None:
        (workdir / "song.mp3").write_bytes(b"ID3")
        (workdir / "lyrics.txt").write_text("la la\nli li\n", encoding="utf-8")
        records = [
            {"index": 1, "startTime": "0.5", "endTime": "1.5", "text": "la la"},
            {"index": 2, "startTime": "1.5", "endTime": "2.5", "text": "li li"},
        ]
        with patch.object(CLIHandler, "_build_collaborator", return_value=CannedCollaborator(records)):
            code = _run("generate", "-m", "song.mp3", "-l", "lyrics.txt", "-o", "subs", "--to", "lrc")
        assert code == 0
        assert (workdir / "subs" / "song.lrc").read_text(encoding="utf-8-sig") == "[00:00.50]la la\n[00:01.50]li li"

    def test_generate_missing_media(self, workdir) -> None:
        with patch.object(CLIHandler, "_build_collaborator") as build:
            assert _run("generate", "-m", "missing.mp4") == 1
        build.assert_not_called()

    def test_generate_empty_result(self, workdir) -> None:
        (workdir / "song.mp3").write_bytes(b"ID3")
        with patch.object(CLIHandler, "_build_collaborator", return_value=CannedCollaborator([])):
            assert _run("generate", "-m", "song.mp3") == 1
        assert not (workdir / "song.srt").exists()

    def test_refine(self, workdir) -> None:
        (workdir / "clip.mp4").write_bytes(b"\x00")
        (workdir / "clip.srt").write_text(SRT, encoding="utf-8")
        records = [
            {"index": 1, "startTime": "0.9", "endTime": "1.9", "text": "ignored"},
            {"index": 2, "startTime": "3.1", "endTime": "3.9", "text": "ignored"},
        ]
        with patch.object(CLIHandler, "_build_collaborator", return_value=CannedCollaborator(records)):
            assert _run("refine", "-m", "clip.mp4", "-s", "clip.srt", "-o", "refined") == 0
        content = (workdir / "refined" / "clip.srt").read_text(encoding="utf-8-sig")
        assert "00:00:00,900 --> 00:00:01,900\r\nFirst" in content
        assert "00:00:03,100 --> 00:00:03,900\r\nSecond" in content

    def test_refine_count_mismatch(self, workdir) -> None:
        (workdir / "clip.mp4").write_bytes(b"\x00")
        (workdir / "clip.srt").write_text(SRT, encoding="utf-8")
        records = [{"index": 1, "startTime": "0.9", "endTime": "1.9", "text": "only one"}]
        with patch.object(CLIHandler, "_build_collaborator", return_value=CannedCollaborator(records)):
            assert _run("refine", "-m", "clip.mp4", "-s", "clip.srt", "-o", "refined") == 1
        assert not (workdir / "refined").exists()

    def test_unexpected_error_exit_code(self, workdir) -> None:
        (workdir / "song.mp3").write_bytes(b"ID3")
        with patch.object(CLIHandler, "_build_collaborator", side_effect=RuntimeError("boom")):
            assert _run("generate", "-m", "song.mp3") == 2


class TestArguments:

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            CLIHandler().run([])
        assert excinfo.value.code == 2

    def test_refine_requires_subtitles(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            CLIHandler().run(["refine", "-m", "clip.mp4"])
        assert excinfo.value.code == 2
