"""Contract for the transcription/sync collaborator and enforcement of its results."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

from .models import EntryCollection, TimeCodedEntry, reindex
from .timecode import timestamp_to_ms
from .exceptions import (
    CollaboratorError,
    EmptyResultError,
    EntryCountMismatchError,
    LyricSyncError,
)

logger = logging.getLogger(__name__)

_RECORD_FIELDS = (("index", int), ("startTime", str), ("endTime", str), ("text", str))


class SyncCollaborator(ABC):
    """
    Abstract base class for services that time text against media.

    Implementations return plain records of the form
    {"index": int, "startTime": str, "endTime": str, "text": str}. The
    timestamps only need to look like timestamps; they are normalized by
    the caller.
    """

    @abstractmethod
    def generate_from_media(self, media_bytes: bytes, mime_type: str, source_text: str) -> List[dict]:
        """
        Produces timed entries for a media file.

        Args:
            media_bytes: The encoded media (audio or video).
            mime_type: MIME type of the media, e.g. "video/mp4".
            source_text: Lyrics or script to time, one entry per line. Empty
                         to transcribe the speech instead.

        Returns:
            Records numbered from 1.

        Raises:
            LyricSyncError: If the media cannot be processed.
        """
        pass

    @abstractmethod
    def refine_timings(self, media_bytes: bytes, mime_type: str, entries: Sequence[dict]) -> List[dict]:
        """
        Re-times existing entries against the media.

        Args:
            media_bytes: The encoded media.
            mime_type: MIME type of the media.
            entries: The current entries as records.

        Returns:
            One record per input entry, in the same order.

        Raises:
            LyricSyncError: If the media cannot be processed.
        """
        pass


def _is_valid_record(record) -> bool:
    if not isinstance(record, dict):
        return False
    for name, expected_type in _RECORD_FIELDS:
        value = record.get(name)
        # bool is an int subclass but never a valid index.
        if not isinstance(value, expected_type) or isinstance(value, bool):
            return False
    return True


def entries_from_records(records: Iterable[dict]) -> EntryCollection:
    """
    Validates collaborator records and converts them to normalized entries.

    Raises:
        CollaboratorError: If the result is not a list of well-formed records.
        EmptyResultError: If the result holds no records.
    """
    if not isinstance(records, (list, tuple)):
        logger.error(f"Collaborator returned {type(records).__name__} instead of a list of records")
        raise CollaboratorError("The response was not in the expected format.")
    if not records:
        raise EmptyResultError("The collaborator returned an empty list of subtitles.")
    invalid = [record for record in records if not _is_valid_record(record)]
    if invalid:
        logger.error(f"Collaborator response did not match the expected schema: {invalid[:3]!r}")
        raise CollaboratorError("The response was not in the expected format.")
    return reindex(TimeCodedEntry.from_record(record) for record in records)


def generate_entries(collaborator: SyncCollaborator, media_bytes: bytes, mime_type: str, source_text: str) -> EntryCollection:
    """
    Asks the collaborator for a fresh set of entries and normalizes them.

    Raises:
        CollaboratorError: If the collaborator fails or returns nothing usable.
    """
    logger.info(f"Requesting subtitles for {len(media_bytes)} bytes of {mime_type} "
                f"({'with' if source_text and source_text.strip() else 'without'} source text)")
    try:
        records = collaborator.generate_from_media(media_bytes, mime_type, source_text or "")
        entries = entries_from_records(records)
    except EmptyResultError as e:
        raise EmptyResultError(f"Failed to generate subtitles. Details: {e}") from e
    except LyricSyncError as e:
        raise CollaboratorError(f"Failed to generate subtitles. Details: {e}") from e
    except Exception as e:
        logger.error(f"Unexpected error from the sync collaborator: {e}", exc_info=True)
        raise CollaboratorError(f"Failed to generate subtitles. Details: {e}") from e
    logger.info(f"Collaborator produced {len(entries)} entries")
    return entries


def refine_entries(collaborator: SyncCollaborator, media_bytes: bytes, mime_type: str, entries: EntryCollection) -> EntryCollection:
    """
    Asks the collaborator for better timings of the given entries.

    Only the timings are taken from the response: they are paired by
    position with the original entries, whose text is kept. A response
    with a different number of entries is rejected.

    Raises:
        EntryCountMismatchError: If the response count differs from the input count.
        CollaboratorError: If the collaborator fails or returns malformed records.
    """
    logger.info(f"Requesting refined timings for {len(entries)} entries")
    try:
        records = collaborator.refine_timings(media_bytes, mime_type, [entry.to_record() for entry in entries])
    except LyricSyncError as e:
        raise CollaboratorError(f"Failed to refine timings. Details: {e}") from e
    except Exception as e:
        logger.error(f"Unexpected error from the sync collaborator: {e}", exc_info=True)
        raise CollaboratorError(f"Failed to refine timings. Details: {e}") from e

    if not isinstance(records, (list, tuple)):
        raise CollaboratorError("Failed to refine timings. Details: The response was not in the expected format.")
    if len(records) != len(entries):
        logger.error(f"Refine returned {len(records)} entries for {len(entries)} sent")
        raise EntryCountMismatchError(len(entries), len(records))

    refined = []
    for entry, record in zip(entries, records):
        if not isinstance(record, dict):
            raise CollaboratorError("Failed to refine timings. Details: The response was not in the expected format.")
        refined.append(TimeCodedEntry(
            index=entry.index,
            start_ms=timestamp_to_ms(record.get("startTime", "")),
            end_ms=timestamp_to_ms(record.get("endTime", "")),
            text=entry.text,
        ))
    return reindex(refined)
