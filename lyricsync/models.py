"""Data models for LyricSync."""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from .timecode import ms_to_timestamp, timestamp_to_ms

@dataclass(frozen=True)
class TimeCodedEntry:
    """One cue: a piece of text shown between two offsets from media start."""
    index: int
    start_ms: int
    end_ms: int
    text: str = ""

    @property
    def start_time(self) -> str:
        return ms_to_timestamp(self.start_ms)

    @property
    def end_time(self) -> str:
        return ms_to_timestamp(self.end_ms)

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_record(self) -> dict:
        """Convert to the plain record shape shared with the collaborator and drafts."""
        return {
            "index": self.index,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "text": self.text,
        }

    @classmethod
    def from_record(cls, record: dict) -> "TimeCodedEntry":
        """Build an entry from a record, normalizing its timestamp strings."""
        return cls(
            index=int(record.get("index", 0)),
            start_ms=timestamp_to_ms(record.get("startTime", "")),
            end_ms=timestamp_to_ms(record.get("endTime", "")),
            text=record.get("text") or "",
        )


# Ordered, immutable; position i always carries index i + 1.
EntryCollection = Tuple[TimeCodedEntry, ...]


def reindex(entries) -> EntryCollection:
    """Returns the entries as a tuple with sequence numbers re-derived from position."""
    return tuple(
        entry if entry.index == i else replace(entry, index=i)
        for i, entry in enumerate(entries, 1)
    )


@dataclass(frozen=True)
class GlobalTimingAdjustment:
    """Cumulative shifts already applied by the two global timing controls."""
    offset_ms: int = 0
    end_padding_ms: int = 0


@dataclass(frozen=True)
class EditorSnapshot:
    """One undo step: the entries together with the timing controls they were produced under."""
    entries: EntryCollection = ()
    adjustment: GlobalTimingAdjustment = field(default_factory=GlobalTimingAdjustment)


@dataclass(frozen=True)
class Draft:
    """A saved editing session that can be restored later."""
    entries: EntryCollection
    source_file_name: Optional[str] = None
    saved_at: Optional[str] = None
    offset_ms: int = 0
    end_padding_ms: int = 0


@dataclass
class Word:
    """A single recognised word with timing, in seconds."""
    start_time: float
    end_time: float
    text: str

@dataclass
class Segment:
    """Represents a single timed chunk of text."""
    start_time: float
    end_time: float
    text: str
    words: List[Word] = field(default_factory=list)

@dataclass
class TranscriptionResult:
    """Holds the structured output from the ASR process."""
    language: Optional[str]
    segments: List[Segment] = field(default_factory=list)
    original_audio_path: Optional[str] = None # Keep track of source if needed

    @property
    def words(self) -> List[Word]:
        return [word for segment in self.segments for word in segment.words]
