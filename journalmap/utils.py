"""Utility functions for formatting and rendering."""

from __future__ import annotations

from datetime import datetime

from journalmap.constants import (
    CHAT_MESSAGE_TEMPLATE,
    EMPTY_HISTORY_TEMPLATE,
    ENTRY_DETAIL_TEMPLATE,
)
from journalmap.models import ChatMessage, JournalEntry


def format_timestamp_display(timestamp: datetime | None) -> str:
    """Render timestamps into a compact, reader-friendly string."""
    if timestamp is None:
        return "Unknown time"
    return timestamp.strftime("%Y-%m-%d %H:%M")


def preview_text(text: str, width: int = 48) -> str:
    """Collapse whitespace and cut to ``width`` characters with an ellipsis."""
    preview = " ".join(text.strip().split())
    if len(preview) > width:
        preview = preview[: width - 1] + "…"
    return preview


def qt_position_to_index(text: str, position: int) -> int:
    """Map a Qt cursor position (UTF-16 code units) to a ``str`` index.

    A position falling inside a surrogate pair maps to the character start.
    """
    encoded = text.encode("utf-16-le")
    position = max(0, min(position, len(encoded) // 2))
    return len(encoded[: 2 * position].decode("utf-16-le", errors="ignore"))


def index_to_qt_position(text: str, index: int) -> int:
    """Inverse of ``qt_position_to_index``."""
    index = max(0, min(index, len(text)))
    return len(text[:index].encode("utf-16-le")) // 2


def review_theme_colors(dark_mode: bool) -> dict[str, str]:
    """Choose review pane colors based on the current palette."""
    if dark_mode:
        return {
            "text": "#dfe6e9",
            "secondary": "#a4b0be",
            "divider": "#3a3f44",
            "accent": "#74b9ff",
        }
    return {
        "text": "#2d3436",
        "secondary": "#636e72",
        "divider": "#dfe6e9",
        "accent": "#0984e3",
    }


def render_entry_detail_html(entry: JournalEntry, dark_mode: bool = False) -> str:
    """Render the selected journal entry via the Jinja2 template."""
    return ENTRY_DETAIL_TEMPLATE.render(
        colors=review_theme_colors(dark_mode),
        title=entry.title or "Untitled",
        timestamp_display=format_timestamp_display(entry.timestamp),
        categories=entry.categories,
        body_text=entry.body,
        has_body=bool(entry.body.strip()),
        empty_body_notice="(no body yet)",
    )


def render_empty_history_html(dark_mode: bool) -> str:
    """Render a friendly empty-state message that respects theme colors."""
    return EMPTY_HISTORY_TEMPLATE.render(colors=review_theme_colors(dark_mode))


def render_chat_message_html(message: ChatMessage, dark_mode: bool = False) -> str:
    return CHAT_MESSAGE_TEMPLATE.render(
        colors=review_theme_colors(dark_mode),
        is_user=message.is_user,
        content=message.content,
        timestamp_display=format_timestamp_display(message.timestamp),
    )
