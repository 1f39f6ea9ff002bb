"""Per-keystroke line classification and the title-mode edit state machine.

Everything here is a pure function of the buffer, the cursor offset and the
title-mode flag. Roles are recomputed for the whole buffer on every call;
at journal scale the O(lines) pass is cheap enough not to cache.
"""

from __future__ import annotations

from collections.abc import Sequence

from journalmap.models import EditOutcome, LineRole
from journalmap.parser import CATEGORY_PREFIX, CATEGORY_SEPARATOR, split_lines

ENTER_KEY = "\n"
COMMA_KEY = ","
CATEGORY_SCAFFOLD = "\n#"
COMMA_EXPANSION = ", #"


def line_bounds(text: str, cursor: int) -> tuple[int, int]:
    """Return ``(start, end)`` offsets of the line holding ``cursor``.

    ``end`` points at the terminating newline (or ``len(text)``).
    """
    cursor = max(0, min(cursor, len(text)))
    start = text.rfind("\n", 0, cursor) + 1
    end = text.find("\n", cursor)
    if end == -1:
        end = len(text)
    return start, end


def line_at(text: str, cursor: int) -> str:
    start, end = line_bounds(text, cursor)
    return text[start:end]


def cursor_line_index(lines: Sequence[str], cursor: int) -> int | None:
    """Index of the line whose span ``[start, start + len]`` holds ``cursor``."""
    location = 0
    for index, line in enumerate(lines):
        if location <= cursor <= location + len(line):
            return index
        location += len(line) + 1
    return None


def classify_lines(
    lines: Sequence[str], cursor: int, title_mode: bool
) -> list[LineRole]:
    """Assign a role to every line of the buffer."""
    current = cursor_line_index(lines, cursor) if title_mode else None
    trimmed = [line.strip() for line in lines]
    roles: list[LineRole] = []

    for index, text in enumerate(trimmed):
        if index == current and not text:
            # placeholder for the title about to be typed
            roles.append(LineRole.TITLE)
        elif text.startswith(CATEGORY_PREFIX):
            roles.append(LineRole.CATEGORY)
        elif text:
            followed_by_category = index + 1 < len(trimmed) and trimmed[
                index + 1
            ].startswith(CATEGORY_PREFIX)
            starts_entry = (
                index == 0
                or not trimmed[index - 1]
                or trimmed[index - 1].startswith(CATEGORY_PREFIX)
            )
            if followed_by_category and starts_entry:
                roles.append(LineRole.TITLE)
            else:
                roles.append(LineRole.BODY)
        else:
            roles.append(LineRole.BLANK)

    return roles


def classify_text(text: str, cursor: int, title_mode: bool) -> list[LineRole]:
    return classify_lines(split_lines(text), cursor, title_mode)


def _insert(text: str, cursor: int, insertion: str) -> str:
    return text[:cursor] + insertion + text[cursor:]


def handle_keystroke(
    text: str, cursor: int, key: str, title_mode: bool
) -> EditOutcome:
    """Run one keystroke through the title-mode state machine.

    Enter in title mode is replaced by a category scaffold (``"\\n#"``) and
    leaves title mode. A comma on a category line expands to ``", #"``.
    Anything else passes through untouched with ``handled=False``.
    """
    cursor = max(0, min(cursor, len(text)))

    if key == ENTER_KEY and title_mode:
        return EditOutcome(
            text=_insert(text, cursor, CATEGORY_SCAFFOLD),
            cursor=cursor + len(CATEGORY_SCAFFOLD),
            title_mode=False,
            handled=True,
            inserted=CATEGORY_SCAFFOLD,
        )

    if key == COMMA_KEY and line_at(text, cursor).strip().startswith(CATEGORY_PREFIX):
        return EditOutcome(
            text=_insert(text, cursor, COMMA_EXPANSION),
            cursor=cursor + len(COMMA_EXPANSION),
            title_mode=title_mode,
            handled=True,
            inserted=COMMA_EXPANSION,
        )

    # Enter on a category line moves on to the body with a plain newline
    return EditOutcome(text=text, cursor=cursor, title_mode=title_mode)


def begin_entry(text: str) -> tuple[str, int]:
    """Prepare the buffer for a new entry typed at its end.

    Returns the new text and the cursor position where the title goes.
    """
    if text and not text.endswith("\n"):
        text += "\n"
    if text:
        text += "\n"
    return text, len(text)


def category_query_at(text: str, cursor: int) -> str | None:
    """Return the category fragment being typed at ``cursor``, if any.

    Only category lines with content that does not end in a comma qualify.
    """
    line = line_at(text, cursor).strip()
    if not line.startswith(CATEGORY_PREFIX):
        return None
    content = line[len(CATEGORY_PREFIX) :].strip()
    if not content or content.endswith(CATEGORY_SEPARATOR):
        return None
    fragment = content.split(CATEGORY_SEPARATOR)[-1].strip().lstrip(CATEGORY_PREFIX)
    return fragment.strip() or None


def apply_category_suggestion(text: str, cursor: int, name: str) -> tuple[str, int]:
    """Replace the fragment typed before ``cursor`` with ``name``.

    The fragment runs back from the cursor to the nearest ``#``; when the
    cursor is not on a category line the text is returned unchanged.
    """
    start, _ = line_bounds(text, cursor)
    cursor = max(0, min(cursor, len(text)))
    if not text[start:cursor].strip().startswith(CATEGORY_PREFIX):
        return text, cursor
    marker = text.rfind(CATEGORY_PREFIX, start, cursor)
    separator = text.rfind(CATEGORY_SEPARATOR, start, cursor)
    fragment_start = max(marker, separator) + 1
    while fragment_start < cursor and text[fragment_start] in " \t#":
        fragment_start += 1
    new_text = text[:fragment_start] + name + text[cursor:]
    return new_text, fragment_start + len(name)
