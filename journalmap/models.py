"""Data models for journal entries, categories and editor state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


def local_now() -> datetime:
    """Return the current wall-clock instant as an aware local datetime."""
    return datetime.now().astimezone()


@dataclass
class JournalEntry:
    """One journal record parsed out of the continuous text buffer.

    Identity across edits is the title text; there is no persistent id.
    """

    title: str
    categories: list[str] = field(default_factory=list)
    body: str = ""
    timestamp: datetime = field(default_factory=local_now)


@dataclass
class CategoryRecord:
    """A vocabulary word with the number of saved entries that used it."""

    name: str
    usage_count: int = 0


class LineRole(str, Enum):
    """Semantic role of a single line in the raw buffer."""

    TITLE = "title"
    CATEGORY = "category"
    BODY = "body"
    BLANK = "blank"


@dataclass
class EditOutcome:
    """Result of running one keystroke through the edit-mode state machine.

    When ``handled`` is true the editor must suppress the key and use
    ``text``/``cursor`` instead; ``inserted`` is what replaced the keystroke.
    """

    text: str
    cursor: int
    title_mode: bool
    handled: bool = False
    inserted: str = ""


@dataclass
class ChatMessage:
    content: str
    is_user: bool
    timestamp: datetime = field(default_factory=local_now)
