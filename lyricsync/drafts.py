"""Saving and restoring editing drafts as JSON."""

import json
import logging
import os
from typing import Optional

from .models import Draft, TimeCodedEntry, reindex
from .exceptions import FileSystemError
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)


def draft_to_dict(draft: Draft) -> dict:
    return {
        "entries": [entry.to_record() for entry in draft.entries],
        "videoFileName": draft.source_file_name,
        "timestamp": draft.saved_at,
        "offset": draft.offset_ms,
        "endPadding": draft.end_padding_ms,
    }


def draft_from_dict(data: dict) -> Draft:
    """
    Builds a Draft from its JSON form. Drafts written before end padding
    existed (or before the offset was saved) default those values to 0.

    Raises:
        ValueError: If the data is not a draft object.
    """
    if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
        raise ValueError("Draft must be an object with an 'entries' list.")
    entries = reindex(TimeCodedEntry.from_record(record) for record in data["entries"] if isinstance(record, dict))
    return Draft(
        entries=entries,
        source_file_name=data.get("videoFileName"),
        saved_at=data.get("timestamp"),
        offset_ms=int(data.get("offset") or 0),
        end_padding_ms=int(data.get("endPadding") or 0),
    )


def save_draft(path: str, draft: Draft) -> None:
    """
    Writes a draft to disk. A draft without entries removes any saved draft instead.

    Raises:
        FileSystemError: If the draft cannot be written.
    """
    if not draft.entries:
        discard_draft(path)
        return
    ensure_dir_exists(os.path.dirname(os.path.abspath(path)))
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(draft_to_dict(draft), f, ensure_ascii=False, indent=2)
        logger.info(f"Saved draft with {len(draft.entries)} entries to {path}")
    except OSError as e:
        logger.error(f"Failed to save draft to {path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not save draft to {path}: {e}") from e


def load_draft(path: str) -> Optional[Draft]:
    """
    Reads a saved draft.

    Returns:
        The draft, or None if there is no draft file or it holds no entries.
        A corrupted draft file is removed and None is returned.
    """
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            draft = draft_from_dict(json.load(f))
    except (ValueError, TypeError, OSError) as e:
        logger.error(f"Failed to load or parse draft from {path}: {e}", exc_info=True)
        discard_draft(path)
        return None
    if not draft.entries:
        return None
    logger.info(f"Found draft with {len(draft.entries)} entries"
                + (f" for '{draft.source_file_name}'" if draft.source_file_name else ""))
    return draft


def discard_draft(path: str) -> None:
    if os.path.exists(path):
        try:
            os.remove(path)
            logger.info(f"Removed draft: {path}")
        except OSError as e:
            logger.warning(f"Could not remove draft {path}: {e}")
