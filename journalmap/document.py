"""Controller owning one open journal document.

The raw buffer is the source of truth. Every change to it triggers a full
reparse; field edits made through the entry list are serialized back into
the buffer first. Nothing here is thread safe, the UI thread owns it.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from journalmap import storage
from journalmap.assistant import build_journal_context
from journalmap.categories import CategoryIndex
from journalmap.classifier import (
    apply_category_suggestion,
    begin_entry,
    category_query_at,
    classify_text,
    handle_keystroke,
)
from journalmap.constants import CONTEXT_ENTRY_LIMIT
from journalmap.models import EditOutcome, JournalEntry, LineRole, local_now
from journalmap.parser import build_timestamp_lookup, parse_entries, serialize_entries


class JournalDocument:
    """Raw text, derived entries, title mode and category vocabulary."""

    def __init__(
        self,
        db_path: Path,
        clock: Callable[[], datetime] = local_now,
        autosave: bool = True,
    ) -> None:
        self.db_path = db_path
        self.autosave = autosave
        self.raw_text = ""
        self.title_mode = False
        self.entries: list[JournalEntry] = []
        self.categories = CategoryIndex()
        self.last_error: Exception | None = None
        self._clock = clock
        self._known_timestamps: dict[str, datetime] = {}

    def load(self) -> None:
        """Read the buffer, known timestamps and vocabulary, then reparse.

        The storage loaders already degrade to empty results on failure, so
        an unreadable database opens as an empty document.
        """
        self.raw_text = storage.load_document_text(self.db_path)
        self._known_timestamps = storage.load_known_timestamps(self.db_path)
        self.categories.load(storage.load_categories(self.db_path))
        self.title_mode = False
        self.reparse()
        logging.info(
            "Loaded journal document with %d entries from %s",
            len(self.entries),
            self.db_path,
        )

    def reparse(self) -> None:
        # unsaved entries keep their first-seen time between keystrokes
        lookup = build_timestamp_lookup(self.entries)
        lookup.update(self._known_timestamps)
        self.entries = parse_entries(self.raw_text, lookup, self._clock)

    def set_raw_text(self, text: str) -> None:
        self.raw_text = text
        self.reparse()
        if self.autosave:
            self.save()

    def save(self) -> bool:
        """Persist the buffer and entries; returns False and keeps state on failure."""
        kept = [entry for entry in self.entries if entry.title.strip()]
        try:
            storage.save_journal(self.db_path, self.raw_text, kept)
        except sqlite3.DatabaseError as exc:
            logging.error("Saving journal failed, keeping unsaved changes: %s", exc)
            self.last_error = exc
            return False

        self.last_error = None
        self.entries = kept
        self.categories.record_usage(entry.categories for entry in kept)
        self._known_timestamps = storage.load_known_timestamps(self.db_path)
        return True

    # ---- continuous buffer editing ----

    def start_new_entry(self) -> int:
        """Open a blank title line at the end of the buffer and enter title mode."""
        text, cursor = begin_entry(self.raw_text)
        self.title_mode = True
        self.set_raw_text(text)
        return cursor

    def handle_key(self, key: str, cursor: int, apply: bool = True) -> EditOutcome:
        """Feed one keystroke through the edit-mode state machine.

        With ``apply`` false the caller performs the insertion itself (the Qt
        editor does, so its undo stack stays intact) and only the title mode
        is updated here.
        """
        outcome = handle_keystroke(self.raw_text, cursor, key, self.title_mode)
        self.title_mode = outcome.title_mode
        if outcome.handled and apply:
            self.set_raw_text(outcome.text)
        return outcome

    def line_roles(self, cursor: int) -> list[LineRole]:
        return classify_text(self.raw_text, cursor, self.title_mode)

    def category_suggestions(self, query: str) -> list[str]:
        return self.categories.suggestions(query)

    def suggestions_at(self, cursor: int) -> list[str]:
        query = category_query_at(self.raw_text, cursor)
        if query is None:
            return []
        return self.category_suggestions(query)

    def accept_suggestion(self, cursor: int, name: str) -> int:
        text, new_cursor = apply_category_suggestion(self.raw_text, cursor, name)
        if text != self.raw_text:
            self.set_raw_text(text)
        return new_cursor

    # ---- entry list editing ----

    def has_placeholder(self) -> bool:
        return any(not entry.title.strip() for entry in self.entries)

    def _rewrite_from_entries(self) -> None:
        self.raw_text = serialize_entries(self.entries)
        if not self.has_placeholder():
            self.reparse()
            if self.autosave:
                self.save()

    def add_entry(
        self, title: str = "", categories: Iterable[str] = (), body: str = ""
    ) -> JournalEntry:
        """Insert an entry at the top; an empty title makes a placeholder.

        Placeholders are not written into the buffer. Autosave waits until
        the placeholder gets a title; an explicit save drops it.
        """
        entry = JournalEntry(
            title=title.strip(),
            categories=list(categories),
            body=body,
            timestamp=self._clock(),
        )
        self.entries.insert(0, entry)
        self._rewrite_from_entries()
        return entry

    def update_entry(
        self,
        index: int,
        title: str | None = None,
        categories: Iterable[str] | None = None,
        body: str | None = None,
    ) -> None:
        """Edit fields of one entry and re-serialize the whole buffer.

        Changing the title breaks the title -> timestamp link, so a retitled
        entry gets a fresh timestamp.
        """
        entry = self.entries[index]
        if title is not None and title.strip() != entry.title:
            entry.title = title.strip()
            entry.timestamp = self._clock()
        if categories is not None:
            entry.categories = [name.strip() for name in categories if name.strip()]
        if body is not None:
            entry.body = body
        self._rewrite_from_entries()

    def delete_entry(self, index: int) -> JournalEntry:
        entry = self.entries.pop(index)
        self._rewrite_from_entries()
        return entry

    def assistant_context(self, limit: int = CONTEXT_ENTRY_LIMIT) -> str:
        return build_journal_context(self.entries, limit)
