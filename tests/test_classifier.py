"""Tests for line classification and the title-mode edit state machine."""

from __future__ import annotations

from journalmap.classifier import (
    apply_category_suggestion,
    begin_entry,
    category_query_at,
    classify_lines,
    classify_text,
    cursor_line_index,
    handle_keystroke,
    line_bounds,
)
from journalmap.models import LineRole


class TestClassifyLines:
    """Roles assigned on every keystroke."""

    def test_title_category_body_blank(self):
        lines = ["Trip", "#travel", "Ramen.", "", "Gym", "#fitness"]
        roles = classify_lines(lines, 0, title_mode=False)
        assert roles == [
            LineRole.TITLE,
            LineRole.CATEGORY,
            LineRole.BODY,
            LineRole.BLANK,
            LineRole.TITLE,
            LineRole.CATEGORY,
        ]

    def test_line_without_following_category_is_body(self):
        roles = classify_lines(["Just a thought", "", "Another"], 0, title_mode=False)
        assert roles == [LineRole.BODY, LineRole.BLANK, LineRole.BODY]

    def test_title_after_category_line(self):
        roles = classify_lines(["#a", "Next", "#b"], 0, title_mode=False)
        assert roles == [LineRole.CATEGORY, LineRole.TITLE, LineRole.CATEGORY]

    def test_body_line_followed_by_category_is_not_title(self):
        roles = classify_lines(["Title", "body", "#late"], 0, title_mode=False)
        assert roles == [LineRole.BODY, LineRole.BODY, LineRole.CATEGORY]

    def test_indented_category_line(self):
        assert classify_lines(["   #tag"], 0, False) == [LineRole.CATEGORY]

    def test_title_mode_placeholder_on_cursor_line(self):
        text = "Trip\n#travel\n\n"
        roles = classify_text(text, len(text), title_mode=True)
        assert roles[-1] == LineRole.TITLE
        assert roles[-2] == LineRole.BLANK

    def test_placeholder_needs_title_mode(self):
        text = "Trip\n#travel\n\n"
        roles = classify_text(text, len(text), title_mode=False)
        assert roles[-1] == LineRole.BLANK

    def test_placeholder_only_for_empty_line(self):
        text = "Trip\n#travel\n\nNew"
        roles = classify_text(text, len(text), title_mode=True)
        assert roles[-1] == LineRole.BODY

    def test_empty_buffer(self):
        assert classify_text("", 0, False) == [LineRole.BLANK]
        assert classify_text("", 0, True) == [LineRole.TITLE]

    def test_cursor_line_index(self):
        lines = ["ab", "", "cde"]
        assert cursor_line_index(lines, 0) == 0
        assert cursor_line_index(lines, 2) == 0
        assert cursor_line_index(lines, 3) == 1
        assert cursor_line_index(lines, 4) == 2
        assert cursor_line_index(lines, 7) == 2
        assert cursor_line_index(lines, 99) is None


class TestKeystrokes:
    """Enter and comma interception."""

    def test_enter_in_title_mode_inserts_category_scaffold(self):
        text = "Trip\n#travel\n\n"
        cursor = len(text)
        text += "New title"
        cursor = len(text)

        outcome = handle_keystroke(text, cursor, "\n", title_mode=True)

        assert outcome.handled
        assert outcome.text == "Trip\n#travel\n\nNew title\n#"
        assert outcome.cursor == cursor + 2
        assert outcome.title_mode is False
        assert outcome.inserted == "\n#"

    def test_enter_in_title_mode_on_empty_line(self):
        outcome = handle_keystroke("Old\n\n", 5, "\n", title_mode=True)
        assert outcome.text == "Old\n\n\n#"
        assert outcome.cursor == 7
        assert not outcome.title_mode

    def test_enter_on_category_line_passes_through(self):
        text = "Trip\n#travel"
        outcome = handle_keystroke(text, len(text), "\n", title_mode=False)
        assert not outcome.handled
        assert outcome.text == text
        assert outcome.title_mode is False

    def test_plain_enter_passes_through(self):
        outcome = handle_keystroke("body", 4, "\n", title_mode=False)
        assert not outcome.handled
        assert outcome.cursor == 4

    def test_comma_on_category_line_expands(self):
        outcome = handle_keystroke("#travel", 7, ",", title_mode=False)
        assert outcome.handled
        assert outcome.text == "#travel, #"
        assert outcome.cursor == len("#travel, #")

    def test_comma_mid_buffer_category_line(self):
        text = "Trip\n#travel\nbody"
        outcome = handle_keystroke(text, 12, ",", title_mode=False)
        assert outcome.text == "Trip\n#travel, #\nbody"
        assert outcome.cursor == 15

    def test_comma_in_body_is_literal(self):
        outcome = handle_keystroke("Trip\nsome, body", 10, ",", title_mode=False)
        assert not outcome.handled

    def test_comma_keeps_title_mode(self):
        outcome = handle_keystroke("#a", 2, ",", title_mode=True)
        assert outcome.title_mode is True

    def test_other_keys_ignored(self):
        outcome = handle_keystroke("#a", 2, "x", title_mode=True)
        assert not outcome.handled
        assert outcome.title_mode is True


def test_line_bounds():
    text = "one\ntwo\nthree"
    assert line_bounds(text, 0) == (0, 3)
    assert line_bounds(text, 5) == (4, 7)
    assert line_bounds(text, len(text)) == (8, 13)


def test_begin_entry_adds_separator():
    assert begin_entry("") == ("", 0)
    assert begin_entry("Trip\n#a") == ("Trip\n#a\n\n", 9)
    assert begin_entry("Trip\n") == ("Trip\n\n", 6)


def test_category_query_at():
    assert category_query_at("#tra", 4) == "tra"
    assert category_query_at("Trip\n#travel, #fo", 17) == "fo"
    assert category_query_at("#travel,", 8) is None
    assert category_query_at("#", 1) is None
    assert category_query_at("body text", 4) is None


def test_apply_category_suggestion():
    assert apply_category_suggestion("#tra", 4, "travel") == ("#travel", 7)

    text = "Trip\n#travel, #fo\nbody"
    new_text, cursor = apply_category_suggestion(text, 17, "food")
    assert new_text == "Trip\n#travel, #food\nbody"
    assert cursor == 19


def test_apply_category_suggestion_outside_category_line():
    assert apply_category_suggestion("plain", 5, "x") == ("plain", 5)
