"""Parsing and serialization of SRT, WebVTT and LRC subtitle text."""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .models import EntryCollection, TimeCodedEntry, reindex
from .timecode import ms_to_lrc_tag, timestamp_to_ms
from .exceptions import FormattingError
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

# LRC has no end times; the last line is shown for this long.
LRC_DEFAULT_DURATION_MS = 3000

VTT_CUE_SETTINGS = "align:center size:80%"

_BLOCK_SPLIT_RE = re.compile(r'\r?\n\s*\r?\n')
_LINE_SPLIT_RE = re.compile(r'\r?\n')
_TIMING_RE = re.compile(r'^\s*([\d:.,]+)\s*-->\s*([\d:.,]+)')
_SRT_COMMA_TIME_RE = re.compile(r'(\d{2}:\d{2}:\d{2}),(\d{3})')
_INDEX_LINE_RE = re.compile(r'^\d+$')
_LRC_LINE_RE = re.compile(r'^\[(\d{1,3}):(\d{1,2})(?:[.:](\d{1,3}))?\](.*)$')


def _split_blocks(content: str) -> List[List[str]]:
    """Splits subtitle text into blocks of lines separated by blank lines."""
    content = _strip_bom(content)
    if not content.strip():
        return []
    return [_LINE_SPLIT_RE.split(block.strip()) for block in _BLOCK_SPLIT_RE.split(content.strip())]


def _strip_bom(content: str) -> str:
    return (content or '').lstrip('\ufeff')


def parse_srt(content: str) -> EntryCollection:
    """
    Parses SRT text into entries.

    Blocks without a numeric first line or a "start --> end" second line are
    skipped. The numbers in the file only delimit blocks; entries are
    re-numbered from 1 in file order.

    Args:
        content: The SRT file content (LF or CRLF line endings).

    Returns:
        The parsed entries.
    """
    entries = []
    for lines in _split_blocks(content):
        if len(lines) < 2:
            logger.debug(f"Skipping SRT block with fewer than two lines: {lines!r}")
            continue
        if not _INDEX_LINE_RE.match(lines[0].strip()):
            logger.debug(f"Skipping SRT block without an index line: {lines[0]!r}")
            continue
        timing = _TIMING_RE.match(lines[1])
        if not timing:
            logger.debug(f"Skipping SRT block without a timing line: {lines[1]!r}")
            continue
        entries.append(TimeCodedEntry(
            index=0,
            start_ms=timestamp_to_ms(timing.group(1)),
            end_ms=timestamp_to_ms(timing.group(2)),
            text='\n'.join(lines[2:]),
        ))
    return reindex(entries)


def parse_vtt(content: str) -> EntryCollection:
    """
    Parses WebVTT text into entries.

    The WEBVTT header is dropped, cue identifiers and cue settings are
    ignored, and blocks without a timing line (NOTE, STYLE, REGION) are
    skipped. Sequence numbers are assigned 1..N in cue order.
    """
    blocks = _split_blocks(content)
    if blocks and blocks[0][0].startswith('WEBVTT'):
        # Header text may share the first block with a cue if no blank line follows it.
        blocks[0] = blocks[0][1:]

    entries = []
    for lines in blocks:
        timing_at = next((i for i, line in enumerate(lines[:2]) if '-->' in line), None)
        timing = _TIMING_RE.match(lines[timing_at]) if timing_at is not None else None
        if not timing:
            logger.debug(f"Skipping VTT block without a cue timing line: {lines[:1]!r}")
            continue
        entries.append(TimeCodedEntry(
            index=0,
            start_ms=timestamp_to_ms(timing.group(1)),
            end_ms=timestamp_to_ms(timing.group(2)),
            text='\n'.join(lines[timing_at + 1:]),
        ))
    return reindex(entries)


def parse_lrc(content: str) -> EntryCollection:
    """
    Parses LRC lyrics into entries.

    Each "[MM:SS.xx]text" line becomes one entry, in file order. Lines with
    no time tag (including metadata such as [ar:...]) or no text are
    dropped. An entry ends where the next one starts; the last one lasts
    LRC_DEFAULT_DURATION_MS.
    """
    starts_and_texts = []
    for line in _LINE_SPLIT_RE.split(_strip_bom(content)):
        match = _LRC_LINE_RE.match(line.strip())
        if not match:
            continue
        minutes, seconds, fraction, text = match.groups()
        text = text.strip()
        if not text:
            continue
        start_ms = timestamp_to_ms(f"{minutes}:{seconds}.{fraction or '0'}")
        starts_and_texts.append((start_ms, text))

    entries = []
    for i, (start_ms, text) in enumerate(starts_and_texts):
        if i + 1 < len(starts_and_texts):
            end_ms = starts_and_texts[i + 1][0]
        else:
            end_ms = start_ms + LRC_DEFAULT_DURATION_MS
        entries.append(TimeCodedEntry(index=i + 1, start_ms=start_ms, end_ms=end_ms, text=text))
    return tuple(entries)


def serialize_srt(entries: Iterable[TimeCodedEntry]) -> str:
    """
    Renders entries as SRT with CRLF line endings.

    Sequence numbers come from position, not from the stored index.
    """
    blocks = []
    for i, entry in enumerate(entries, 1):
        text = _LINE_SPLIT_RE.sub('\r\n', entry.text)
        blocks.append(f"{i}\r\n{entry.start_time} --> {entry.end_time}\r\n{text}")
    return '\r\n\r\n'.join(blocks)


def srt_to_vtt(srt_content: str) -> str:
    """
    Converts SRT text to WebVTT.

    Millisecond commas become periods, timing lines get centred cue settings
    and index lines are removed. Blocks that do not start with an index are
    passed through unchanged.
    """
    if not srt_content:
        return 'WEBVTT'

    vtt_content = _SRT_COMMA_TIME_RE.sub(r'\1.\2', srt_content)
    processed_blocks = []
    for block in _BLOCK_SPLIT_RE.split(vtt_content.strip()):
        lines = _LINE_SPLIT_RE.split(block)
        if len(lines) > 1 and _INDEX_LINE_RE.match(lines[0].strip()):
            lines = lines[1:]
            if '-->' in lines[0]:
                lines[0] = f"{lines[0].rstrip()} {VTT_CUE_SETTINGS}"
            processed_blocks.append('\n'.join(lines))
        else:
            processed_blocks.append(block)
    return 'WEBVTT\n\n' + '\n\n'.join(processed_blocks)


def serialize_vtt(entries: Iterable[TimeCodedEntry]) -> str:
    return srt_to_vtt(serialize_srt(entries))


def serialize_lrc(entries: Iterable[TimeCodedEntry]) -> str:
    """Renders entries as LRC, one line per entry with line breaks flattened to spaces."""
    lines = []
    for entry in entries:
        text = ' '.join(part.strip() for part in _LINE_SPLIT_RE.split(entry.text) if part.strip())
        lines.append(f"{ms_to_lrc_tag(entry.start_ms)}{text}")
    return '\n'.join(lines)


class SubtitleFormat(ABC):
    """Abstract base class for a subtitle text format."""

    name: str = ""
    extension: str = ""
    mime_type: str = "text/plain"

    @abstractmethod
    def parse(self, content: str) -> EntryCollection:
        """
        Parses file content into entries. Malformed records are skipped, never raised.

        Args:
            content: The full text of the subtitle file.

        Returns:
            The parsed entries, numbered from 1.
        """
        pass

    @abstractmethod
    def serialize(self, entries: Iterable[TimeCodedEntry]) -> str:
        """Renders entries as file content."""
        pass


class SRTFormat(SubtitleFormat):
    """SubRip text, the authoritative export format."""
    name = "srt"
    extension = ".srt"

    def parse(self, content: str) -> EntryCollection:
        return parse_srt(content)

    def serialize(self, entries: Iterable[TimeCodedEntry]) -> str:
        return serialize_srt(entries)


class VTTFormat(SubtitleFormat):
    """Web Video Text Tracks, derived from the SRT rendering."""
    name = "vtt"
    extension = ".vtt"
    mime_type = "text/vtt"

    def parse(self, content: str) -> EntryCollection:
        return parse_vtt(content)

    def serialize(self, entries: Iterable[TimeCodedEntry]) -> str:
        return serialize_vtt(entries)


class LRCFormat(SubtitleFormat):
    """Line-synchronised lyrics; start times only."""
    name = "lrc"
    extension = ".lrc"

    def parse(self, content: str) -> EntryCollection:
        return parse_lrc(content)

    def serialize(self, entries: Iterable[TimeCodedEntry]) -> str:
        return serialize_lrc(entries)


FORMATS: Dict[str, SubtitleFormat] = {fmt.name: fmt for fmt in (SRTFormat(), VTTFormat(), LRCFormat())}


def get_format(name: str) -> SubtitleFormat:
    """
    Looks up a subtitle format by name ("srt", "vtt" or "lrc", case-insensitive).

    Raises:
        FormattingError: If the format is not supported.
    """
    fmt = FORMATS.get((name or '').lower().lstrip('.'))
    if fmt is None:
        raise FormattingError(f"Unsupported subtitle format '{name}'. Choose one of: {', '.join(FORMATS)}.")
    return fmt


def detect_format(path: str) -> SubtitleFormat:
    """Picks the subtitle format from a file's extension."""
    return get_format(os.path.splitext(path)[1])


def read_subtitles(path: str, fmt: Optional[SubtitleFormat] = None) -> EntryCollection:
    """
    Reads and parses a subtitle file. A UTF-8 byte order mark is tolerated.

    Args:
        path: Path to the subtitle file.
        fmt: Format to parse with; detected from the extension if None.

    Returns:
        The parsed entries.

    Raises:
        FileNotFoundError: If the file does not exist.
        FormattingError: If the format is unknown or the file cannot be read.
    """
    fmt = fmt or detect_format(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Subtitle file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8-sig', newline='') as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read subtitle file {path}: {e}", exc_info=True)
        raise FormattingError(f"Could not read subtitle file {path}: {e}") from e

    entries = fmt.parse(content)
    logger.info(f"Read {len(entries)} {fmt.name.upper()} entries from {path}")
    return entries


def write_subtitles(entries: Iterable[TimeCodedEntry], output_path: str, fmt: Optional[SubtitleFormat] = None) -> str:
    """
    Serializes entries and writes them with a UTF-8 byte order mark.

    The BOM keeps older players and Windows editors from guessing the wrong
    encoding.

    Args:
        entries: Entries to export.
        output_path: Destination file path.
        fmt: Output format; detected from the extension if None.

    Returns:
        The path written.

    Raises:
        FormattingError: If writing fails or the format is unknown.
        FileSystemError: If the output directory cannot be created.
    """
    fmt = fmt or detect_format(output_path)
    output_dir = os.path.dirname(os.path.abspath(output_path))
    ensure_dir_exists(output_dir)

    content = fmt.serialize(entries)
    try:
        # newline='' keeps the CRLF endings of SRT output exactly as rendered.
        with open(output_path, 'w', encoding='utf-8-sig', newline='') as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to write {fmt.name.upper()} file to {output_path}: {e}", exc_info=True)
        raise FormattingError(f"Could not write {fmt.name.upper()} file: {e}") from e

    logger.info(f"Wrote {fmt.name.upper()} file: {output_path}")
    return output_path
