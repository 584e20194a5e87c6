"""Timestamp normalization and millisecond conversion.

Every function here is total: malformed input degrades to the zero timestamp
instead of raising, so it is safe to call on user or collaborator text.
"""

import logging
import re

logger = logging.getLogger(__name__)

ZERO_TIMESTAMP = "00:00:00,000"

# "." or "," before a fraction of any length (only the first 3 digits count),
# or ":" before exactly three digits, which is how "00:00:12:345" style typos read.
_FRACTION_RE = re.compile(r'^(?P<clock>.*?)(?:[.,](?P<frac>\d+)|:(?P<colon_frac>\d{3}))$')
# Segments are bounded so absurdly long digit runs read as malformed instead of
# overflowing int() conversion.
_CLOCK_RE = re.compile(r'^\d{1,9}(?::\d{1,9}){0,2}$')


def _timestamp_parts(raw: str):
    """Splits raw time text into (hours, minutes, seconds, milliseconds), or None if malformed."""
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text:
        return None

    fraction = "000"
    match = _FRACTION_RE.match(text)
    if match:
        text = match.group('clock')
        fraction = (match.group('frac') or match.group('colon_frac')).ljust(3, '0')[:3]

    if text == "":
        return 0, 0, 0, int(fraction)
    if not _CLOCK_RE.match(text):
        return None

    segments = [int(part) for part in text.split(':')]
    # Missing leading segments default to zero: SS, MM:SS or HH:MM:SS.
    hours, minutes, seconds = ([0, 0] + segments)[-3:]
    return hours, minutes, seconds, int(fraction)


def normalize_timestamp(raw: str) -> str:
    """
    Normalizes arbitrary time text to the canonical HH:MM:SS,mmm form.

    Accepts bare seconds, MM:SS or HH:MM:SS, with an optional fraction after
    ',' '.' or ':'. Short fractions are right-padded ("1,5" is 1.5 seconds)
    and out-of-range seconds or minutes carry into the next unit.

    Args:
        raw: Timestamp-like text from any source.

    Returns:
        The canonical timestamp, or "00:00:00,000" if the text is malformed.
    """
    parts = _timestamp_parts(raw)
    if parts is None:
        logger.debug(f"Unreadable timestamp {raw!r}, using {ZERO_TIMESTAMP}")
        return ZERO_TIMESTAMP
    hours, minutes, seconds, milliseconds = parts
    return ms_to_timestamp(((hours * 60 + minutes) * 60 + seconds) * 1000 + milliseconds)


def timestamp_to_ms(timestamp: str) -> int:
    """Converts any timestamp text to total milliseconds (0 if malformed)."""
    canonical = normalize_timestamp(timestamp)
    clock, milliseconds = canonical.split(',')
    hours, minutes, seconds = (int(part) for part in clock.split(':'))
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + int(milliseconds)


def ms_to_timestamp(total_ms: int) -> str:
    """
    Formats milliseconds as HH:MM:SS,mmm.

    Negative values are clamped to zero. Hours grow past two digits rather
    than wrapping.
    """
    total_ms = max(0, int(total_ms))
    total_seconds, milliseconds = divmod(total_ms, 1000)
    total_minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{milliseconds:03d}"


def ms_to_lrc_tag(total_ms: int) -> str:
    """Formats milliseconds as an LRC time tag [MM:SS.xx], flooring to centiseconds."""
    centiseconds = max(0, int(total_ms)) // 10
    total_seconds, hundredths = divmod(centiseconds, 100)
    minutes, seconds = divmod(total_seconds, 60)
    return f"[{minutes:02d}:{seconds:02d}.{hundredths:02d}]"
