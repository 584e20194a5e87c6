"""Local sync collaborator: ffmpeg audio extraction plus Whisper word timings."""

import logging
import os
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .audio_extractor import AudioExtractor
from .sync_service import SyncCollaborator
from .models import TranscriptionResult, Word
from .exceptions import TranscriptionError

if TYPE_CHECKING:
    # whisper and torch are only imported where the model is actually loaded.
    from .transcriber import Transcriber

logger = logging.getLogger(__name__)


def align_lines_to_words(lines: Sequence[str], words: Sequence[Word]) -> List[Tuple[float, float]]:
    """
    Spreads recognised words over text lines and returns one (start, end) span per line.

    Each line takes a run of consecutive words proportional to its own word
    count, so the spans follow the recognised speech in order. When there are
    fewer words than lines, a line may share a single word with its
    neighbour.

    Args:
        lines: The text lines to time, in order.
        words: Recognised words with timings, in order.

    Returns:
        (start_seconds, end_seconds) for every line.

    Raises:
        TranscriptionError: If there are no words to align against.
    """
    if not lines:
        return []
    if not words:
        raise TranscriptionError("No speech was detected in the media.")

    counts = [max(1, len(line.split())) for line in lines]
    total = sum(counts)
    word_count = len(words)

    spans = []
    consumed = 0
    for count in counts:
        first = consumed * word_count // total
        consumed += count
        last = consumed * word_count // total - 1
        if last < first:
            first = last = min(first, word_count - 1)
        spans.append((words[first].start_time, words[last].end_time))
    return spans


def _seconds(value: float) -> str:
    # Bare seconds; the session normalizes every collaborator timestamp.
    return f"{value:.3f}"


class WhisperSyncCollaborator(SyncCollaborator):
    """Times lyrics or transcribes speech locally with Whisper."""

    def __init__(self, transcriber: "Transcriber", audio_extractor: AudioExtractor, temp_dir: str):
        """
        Args:
            transcriber: Speech recognizer that reports word timings.
            audio_extractor: Converts uploaded media to WAV.
            temp_dir: Directory for the temporary media and audio files.
        """
        self.transcriber = transcriber
        self.audio_extractor = audio_extractor
        self.temp_dir = temp_dir

    def _transcribe_media(self, media_bytes: bytes, mime_type: str, prompt: Optional[str]) -> TranscriptionResult:
        audio_path = None
        try:
            audio_path = self.audio_extractor.extract_audio_from_bytes(media_bytes, mime_type, self.temp_dir)
            return self.transcriber.transcribe(audio_path, prompt=prompt)
        finally:
            if audio_path and os.path.exists(audio_path):
                try:
                    os.remove(audio_path)
                    logger.info(f"Cleaned up temporary file: {audio_path}")
                except OSError as e:
                    logger.warning(f"Could not remove temporary file {audio_path}: {e}")

    def _time_lines(self, media_bytes: bytes, mime_type: str, lines: List[str]) -> List[dict]:
        result = self._transcribe_media(media_bytes, mime_type, prompt=" ".join(lines))
        spans = align_lines_to_words(lines, result.words)
        return [
            {"index": i, "startTime": _seconds(start), "endTime": _seconds(end), "text": line}
            for i, (line, (start, end)) in enumerate(zip(lines, spans), 1)
        ]

    def generate_from_media(self, media_bytes: bytes, mime_type: str, source_text: str) -> List[dict]:
        lines = [line.strip() for line in (source_text or "").splitlines() if line.strip()]
        if lines:
            logger.info(f"Aligning {len(lines)} lines of source text against the media")
            return self._time_lines(media_bytes, mime_type, lines)

        logger.info("No source text given, transcribing the media")
        result = self._transcribe_media(media_bytes, mime_type, prompt=None)
        segments = [segment for segment in result.segments if segment.text]
        if not segments:
            raise TranscriptionError("No speech was detected in the media.")
        return [
            {
                "index": i,
                "startTime": _seconds(segment.start_time),
                "endTime": _seconds(segment.end_time),
                "text": segment.text,
            }
            for i, segment in enumerate(segments, 1)
        ]

    def refine_timings(self, media_bytes: bytes, mime_type: str, entries: Sequence[dict]) -> List[dict]:
        # Multi-line cues are matched as one line of words.
        lines = [" ".join(str(entry.get("text", "")).split()) for entry in entries]
        logger.info(f"Re-aligning {len(lines)} entries against the media")
        return self._time_lines(media_bytes, mime_type, lines)
