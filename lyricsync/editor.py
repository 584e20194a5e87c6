"""Structural edit operations over an entry collection.

Each operation is a pure function from a collection to a new collection.
A rejected edit (unknown sequence number, split at a text boundary, merge
past the last entry, ...) returns the very same tuple it was given, so
callers can detect a no-op with an identity check.
"""

import logging
from dataclasses import replace
from typing import Optional

from .models import EntryCollection, TimeCodedEntry, reindex
from .timecode import timestamp_to_ms

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "New subtitle"

START_TIME = "start_time"
END_TIME = "end_time"
TEXT = "text"
TIME_FIELDS = (START_TIME, END_TIME)
EDITABLE_FIELDS = (START_TIME, END_TIME, TEXT)

UP = "up"
DOWN = "down"


def find_position(entries: EntryCollection, seq: int) -> Optional[int]:
    """Returns the array position of the entry with sequence number `seq`, or None."""
    for position, entry in enumerate(entries):
        if entry.index == seq:
            return position
    return None


def _check_field(field: str, allowed=EDITABLE_FIELDS) -> None:
    if field not in allowed:
        raise ValueError(f"Invalid field '{field}'. Choose one of: {', '.join(allowed)}.")


def insert_after(entries: EntryCollection, after_seq: int, text: str = PLACEHOLDER_TEXT) -> EntryCollection:
    """
    Inserts a zero-length entry right after `after_seq`, at the predecessor's end time.
    """
    position = find_position(entries, after_seq)
    if position is None:
        return entries
    anchor_ms = entries[position].end_ms
    new_entry = TimeCodedEntry(index=0, start_ms=anchor_ms, end_ms=anchor_ms, text=text)
    return reindex(entries[:position + 1] + (new_entry,) + entries[position + 1:])


def append_entry(entries: EntryCollection, text: str = PLACEHOLDER_TEXT) -> EntryCollection:
    """Adds a zero-length entry at the end, starting where the last one ends."""
    anchor_ms = entries[-1].end_ms if entries else 0
    return reindex(entries + (TimeCodedEntry(index=0, start_ms=anchor_ms, end_ms=anchor_ms, text=text),))


def delete_entry(entries: EntryCollection, seq: int) -> EntryCollection:
    position = find_position(entries, seq)
    if position is None:
        return entries
    return reindex(entries[:position] + entries[position + 1:])


def move_entry(entries: EntryCollection, seq: int, direction: str) -> EntryCollection:
    """
    Swaps an entry with its neighbour above ("up") or below ("down").

    Moving past either end of the collection is a no-op.

    Raises:
        ValueError: If `direction` is neither "up" nor "down".
    """
    if direction not in (UP, DOWN):
        raise ValueError(f"Invalid direction '{direction}'. Choose '{UP}' or '{DOWN}'.")
    position = find_position(entries, seq)
    if position is None:
        return entries
    target = position - 1 if direction == UP else position + 1
    if not 0 <= target < len(entries):
        return entries
    swapped = list(entries)
    swapped[position], swapped[target] = swapped[target], swapped[position]
    return reindex(swapped)


def reorder(entries: EntryCollection, from_index: int, to_index: int) -> EntryCollection:
    """
    Moves the entry at array position `from_index` to position `to_index`.

    Both positions are 0-based. Out-of-range positions are a no-op.
    """
    count = len(entries)
    if from_index == to_index or not 0 <= from_index < count or not 0 <= to_index < count:
        return entries
    moved = list(entries)
    moved.insert(to_index, moved.pop(from_index))
    return reindex(moved)


def merge_with_next(entries: EntryCollection, seq: int) -> EntryCollection:
    """
    Merges an entry with the one after it.

    The result spans from the first entry's start to the second entry's end,
    with both trimmed texts on separate lines.
    """
    position = find_position(entries, seq)
    if position is None or position == len(entries) - 1:
        return entries
    current, following = entries[position], entries[position + 1]
    merged = replace(
        current,
        end_ms=following.end_ms,
        text=f"{current.text.strip()}\n{following.text.strip()}",
    )
    return reindex(entries[:position] + (merged,) + entries[position + 2:])


def split_at(entries: EntryCollection, seq: int, char_offset: int) -> EntryCollection:
    """
    Splits an entry in two at a character offset into its text.

    The split time is interpolated linearly from the offset's share of the
    text length. A split at either end of the text, or one that would leave
    a blank half, is a no-op.

    Args:
        entries: The collection.
        seq: Sequence number of the entry to split.
        char_offset: Index into the entry's text where the second half begins.

    Returns:
        The collection with the entry replaced by its two halves.
    """
    position = find_position(entries, seq)
    if position is None:
        return entries
    entry = entries[position]
    text_length = len(entry.text)
    if char_offset <= 0 or char_offset >= text_length:
        return entries
    first_text = entry.text[:char_offset].strip()
    second_text = entry.text[char_offset:].strip()
    if not first_text or not second_text:
        return entries

    duration = entry.end_ms - entry.start_ms
    if duration > 0:
        # Half-up rounding, not Python's round-half-to-even.
        split_ms = entry.start_ms + int(duration * char_offset / text_length + 0.5)
    else:
        split_ms = entry.start_ms
    first = replace(entry, end_ms=split_ms, text=first_text)
    second = TimeCodedEntry(index=0, start_ms=split_ms, end_ms=entry.end_ms, text=second_text)
    return reindex(entries[:position] + (first, second) + entries[position + 1:])


def update_field(entries: EntryCollection, seq: int, field: str, value: str) -> EntryCollection:
    """
    Replaces one field of one entry.

    Time values may be any timestamp-like text; they are normalized here,
    which is the commit step of an edit. Text is stored as given.

    Raises:
        ValueError: If `field` is not start_time, end_time or text.
    """
    _check_field(field)
    position = find_position(entries, seq)
    if position is None:
        return entries
    entry = entries[position]
    if field == START_TIME:
        updated = replace(entry, start_ms=timestamp_to_ms(value))
    elif field == END_TIME:
        updated = replace(entry, end_ms=timestamp_to_ms(value))
    else:
        updated = replace(entry, text=value if value is not None else "")
    if updated == entry:
        return entries
    return entries[:position] + (updated,) + entries[position + 1:]


def apply_global_offset(entries: EntryCollection, current_offset_ms: int, new_offset_ms: int) -> EntryCollection:
    """
    Shifts every entry by the difference between the new and current global offset.

    Times that would go below zero are clamped at zero. A clamped entry loses
    the part of the shift that was cut off, so returning the control to an
    earlier value only restores the earlier times if nothing was clamped in
    between.
    """
    delta = new_offset_ms - current_offset_ms
    if delta == 0 or not entries:
        return entries
    return tuple(
        replace(entry, start_ms=max(0, entry.start_ms + delta), end_ms=max(0, entry.end_ms + delta))
        for entry in entries
    )


def apply_end_padding(entries: EntryCollection, current_padding_ms: int, new_padding_ms: int) -> EntryCollection:
    """
    Extends or shortens every entry's end by the change in end padding.

    An end never moves before its own start. When padding grows, an end is
    also kept at or before the next entry's start so no overlap is created;
    shrinking padding is only limited by the entry's own start.
    """
    delta = new_padding_ms - current_padding_ms
    if delta == 0 or not entries:
        return entries
    padded = []
    for position, entry in enumerate(entries):
        end_ms = entry.end_ms + delta
        if delta > 0 and position + 1 < len(entries):
            end_ms = min(end_ms, entries[position + 1].start_ms)
        end_ms = max(end_ms, entry.start_ms)
        padded.append(entry if end_ms == entry.end_ms else replace(entry, end_ms=end_ms))
    return tuple(padded)


def set_field_to_playback_time(entries: EntryCollection, seq: int, field: str, playback_ms: int) -> EntryCollection:
    """
    Sets an entry's start or end to the current playback position without overlapping its neighbours.

    For the start: the new start is kept at or after the previous entry's
    end, and the end moves with it to preserve the duration, capped at the
    next entry's start (the start collapses onto the end if it would pass it).
    For the end: the new end is kept between the entry's own start and the
    next entry's start.

    Raises:
        ValueError: If `field` is not start_time or end_time.
    """
    _check_field(field, TIME_FIELDS)
    position = find_position(entries, seq)
    if position is None:
        return entries
    entry = entries[position]
    previous = entries[position - 1] if position > 0 else None
    following = entries[position + 1] if position + 1 < len(entries) else None
    playback_ms = max(0, int(playback_ms))

    if field == START_TIME:
        start_ms = max(playback_ms, previous.end_ms) if previous else playback_ms
        end_ms = start_ms + max(0, entry.end_ms - entry.start_ms)
        if following:
            end_ms = min(end_ms, following.start_ms)
        start_ms = min(start_ms, end_ms)
    else:
        start_ms = entry.start_ms
        end_ms = min(playback_ms, following.start_ms) if following else playback_ms
        end_ms = max(end_ms, start_ms)

    updated = replace(entry, start_ms=start_ms, end_ms=end_ms)
    if updated == entry:
        return entries
    logger.debug(f"Entry {seq} {field} set from playback position {playback_ms} ms")
    return entries[:position] + (updated,) + entries[position + 1:]
