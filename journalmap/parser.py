"""Conversion between the continuous journal buffer and discrete entries.

The buffer grammar is::

    Document     := Entry (BlankLine+ Entry)*
    Entry        := TitleLine CategoryLine? BodyLine*
    TitleLine    := non-empty line not starting with '#'
    CategoryLine := '#' Name (',' WS* Name)*

Parsing is best effort: any string yields a (possibly empty) entry list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

from journalmap.models import JournalEntry, local_now

CATEGORY_PREFIX = "#"
CATEGORY_SEPARATOR = ","


def split_lines(text: str) -> list[str]:
    """Split a buffer on newlines, keeping a trailing empty line if present."""
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def is_category_line(line: str) -> bool:
    return line.strip().startswith(CATEGORY_PREFIX)


def parse_category_line(line: str) -> list[str]:
    """Return the category names declared on a ``#a, #b`` style line.

    Each comma separated piece is trimmed and loses its own leading ``#``,
    so ``"#travel, #food"`` and ``"#travel, food"`` both give two names.
    """
    remainder = line.strip()[len(CATEGORY_PREFIX) :]
    names: list[str] = []
    for piece in remainder.split(CATEGORY_SEPARATOR):
        name = piece.strip().lstrip(CATEGORY_PREFIX).strip()
        if name:
            names.append(name)
    return names


def format_category_line(categories: Iterable[str]) -> str:
    return CATEGORY_PREFIX + ", #".join(categories)


def as_aware(timestamp: datetime) -> datetime:
    """Attach the local zone to a naive timestamp so all of them compare."""
    if timestamp.tzinfo is None:
        return timestamp.astimezone()
    return timestamp


def build_timestamp_lookup(
    entries: Iterable[JournalEntry | tuple[str, datetime]],
) -> dict[str, datetime]:
    """Build the title -> timestamp reconciliation table.

    Accepts entries or ``(title, timestamp)`` pairs. When two of them share
    a title the last one wins; the ambiguity is not corrected.
    """
    lookup: dict[str, datetime] = {}
    for item in entries:
        if isinstance(item, JournalEntry):
            title, timestamp = item.title, item.timestamp
        else:
            title, timestamp = item
        lookup[title.strip()] = as_aware(timestamp)
    return lookup


def _finish_entry(entry: JournalEntry, body_lines: list[str]) -> JournalEntry:
    entry.body = "\n".join(body_lines).strip()
    return entry


def parse_entries(
    raw_text: str,
    known_timestamps: Mapping[str, datetime] | None = None,
    clock: Callable[[], datetime] = local_now,
) -> list[JournalEntry]:
    """Fold a raw buffer into entries sorted newest first.

    Args:
        raw_text: the whole journal buffer
        known_timestamps: title -> timestamp of previously known entries;
            a title found here keeps its creation time, any other title gets
            ``clock()``. A retitled entry therefore gets a fresh timestamp.
        clock: source of "now" for new titles

    Returns:
        Entries sorted by timestamp descending. Equal timestamps keep no
        guaranteed relative order.
    """
    lookup = known_timestamps or {}
    entries: list[JournalEntry] = []
    current: JournalEntry | None = None
    body_lines: list[str] = []
    previous_was_empty = True

    for line in split_lines(raw_text):
        trimmed = line.strip()

        if trimmed.startswith(CATEGORY_PREFIX):
            # categories before the first title have nowhere to go
            if current is not None:
                current.categories.extend(parse_category_line(trimmed))
            previous_was_empty = False
        elif trimmed and previous_was_empty:
            if current is not None:
                entries.append(_finish_entry(current, body_lines))
            timestamp = lookup.get(trimmed)
            current = JournalEntry(
                title=trimmed,
                categories=[],
                body="",
                timestamp=as_aware(timestamp if timestamp is not None else clock()),
            )
            body_lines = []
            previous_was_empty = False
        elif current is not None:
            body_lines.append(line if trimmed else "")
            previous_was_empty = not trimmed
        else:
            previous_was_empty = not trimmed

    if current is not None:
        entries.append(_finish_entry(current, body_lines))

    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    logging.debug("Parsed %d journal entries from buffer", len(entries))
    return entries


def serialize_entry(entry: JournalEntry) -> str:
    """Render one entry as its title line, category line and body."""
    lines = [entry.title.strip()]
    if entry.categories:
        lines.append(format_category_line(entry.categories))
    body = entry.body.strip()
    if body:
        lines.append(body)
    return "\n".join(lines)


def serialize_entries(entries: Iterable[JournalEntry]) -> str:
    """Render entries (already newest first) separated by one blank line.

    Untitled placeholders have no text form and are skipped.
    """
    return "\n\n".join(
        serialize_entry(entry) for entry in entries if entry.title.strip()
    )
