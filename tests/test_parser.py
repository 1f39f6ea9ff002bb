"""Tests for parsing and serializing the continuous journal buffer."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from journalmap.models import JournalEntry
from journalmap.parser import (
    build_timestamp_lookup,
    parse_category_line,
    parse_entries,
    serialize_entries,
    serialize_entry,
)

BASE_TIME = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


def make_clock(start: datetime = BASE_TIME):
    """Clock that advances one minute per call so creation order is visible."""
    ticks = iter(range(10_000))

    def clock() -> datetime:
        return start + timedelta(minutes=next(ticks))

    return clock


SAMPLE = (
    "Trip to Japan\n#travel, #food\nHad ramen in Osaka.\n\nGym day\n#fitness\nLeg day."
)


def test_parses_two_entries_newest_first():
    entries = parse_entries(SAMPLE, {}, make_clock())

    assert [entry.title for entry in entries] == ["Gym day", "Trip to Japan"]
    assert entries[0].categories == ["fitness"]
    assert entries[0].body == "Leg day."
    assert entries[1].categories == ["travel", "food"]
    assert entries[1].body == "Had ramen in Osaka."


def test_known_timestamps_are_reused():
    old = datetime(2025, 1, 1, tzinfo=timezone.utc)
    entries = parse_entries(SAMPLE, {"Trip to Japan": old}, make_clock())

    trip = next(entry for entry in entries if entry.title == "Trip to Japan")
    gym = next(entry for entry in entries if entry.title == "Gym day")
    assert trip.timestamp == old
    assert gym.timestamp == BASE_TIME


def test_sorted_by_timestamp_descending():
    known = {
        "Trip to Japan": datetime(2026, 3, 1, tzinfo=timezone.utc),
        "Gym day": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    entries = parse_entries(SAMPLE, known, make_clock())
    assert [entry.title for entry in entries] == ["Trip to Japan", "Gym day"]


def test_category_line_before_any_title_is_dropped():
    entries = parse_entries("#orphan, #tags\n\nReal entry\n#kept", {}, make_clock())

    assert len(entries) == 1
    assert entries[0].title == "Real entry"
    assert entries[0].categories == ["kept"]


def test_only_category_lines_give_no_entries():
    assert parse_entries("#a\n#b, c\n", {}, make_clock()) == []


def test_body_lines_are_kept_verbatim_and_trimmed_at_edges():
    text = "Title\n#tag\n  indented line\nsecond line\n\n"
    entries = parse_entries(text, {}, make_clock())

    assert entries[0].body == "indented line\nsecond line"


def test_category_lines_never_land_in_body():
    text = "Title\nfirst body line\n#late, #tags\nmore body"
    entry = parse_entries(text, {}, make_clock())[0]

    assert entry.categories == ["late", "tags"]
    assert "#" not in entry.body
    assert entry.body == "first body line\nmore body"


def test_line_after_blank_starts_new_entry():
    text = "First\nbody\n\nSecond"
    titles = {entry.title for entry in parse_entries(text, {}, make_clock())}
    assert titles == {"First", "Second"}


def test_multiple_category_lines_accumulate():
    entry = parse_entries("Title\n#a\n#b, #c", {}, make_clock())[0]
    assert entry.categories == ["a", "b", "c"]


def test_parse_never_fails_on_odd_input():
    for text in ["", "\n\n\n", "#", "#,,, ,#", "\r\n\r\nTitle\r\n#x\r\n", "   \t  "]:
        result = parse_entries(text, {}, make_clock())
        assert isinstance(result, list)

    entry = parse_entries("\r\n\r\nTitle\r\n#x\r\n", {}, make_clock())[0]
    assert entry.title == "Title"
    assert entry.categories == ["x"]


def test_parse_category_line_trims_and_drops_empties():
    assert parse_category_line("  #travel, #food ,, #  ") == ["travel", "food"]
    assert parse_category_line("#") == []
    assert parse_category_line("#one,two") == ["one", "two"]


def test_serialize_entry_format():
    entry = JournalEntry(
        title="  Trip  ", categories=["travel", "food"], body="\nBody text\n"
    )
    assert serialize_entry(entry) == "Trip\n#travel, #food\nBody text"


def test_serialize_omits_empty_parts():
    entries = [
        JournalEntry(title="Only title"),
        JournalEntry(title="With body", body="text"),
    ]
    assert serialize_entries(entries) == "Only title\n\nWith body\ntext"


def test_serialize_skips_untitled_placeholders():
    entries = [JournalEntry(title=""), JournalEntry(title="Kept", categories=["x"])]
    assert serialize_entries(entries) == "Kept\n#x"


def test_round_trip_reproduces_entries():
    entries = [
        JournalEntry(
            title="Gym day",
            categories=["fitness"],
            body="Leg day.\nSquats and lunges.",
            timestamp=datetime(2026, 2, 3, tzinfo=timezone.utc),
        ),
        JournalEntry(
            title="Quiet evening",
            categories=[],
            body="",
            timestamp=datetime(2026, 2, 2, tzinfo=timezone.utc),
        ),
        JournalEntry(
            title="Trip to Japan",
            categories=["travel", "food"],
            body="Had ramen in Osaka.",
            timestamp=datetime(2026, 2, 1, tzinfo=timezone.utc),
        ),
    ]

    reparsed = parse_entries(
        serialize_entries(entries), build_timestamp_lookup(entries), make_clock()
    )

    assert [
        (entry.title, entry.categories, entry.body.strip(), entry.timestamp)
        for entry in reparsed
    ] == [
        (entry.title, entry.categories, entry.body.strip(), entry.timestamp)
        for entry in entries
    ]


def test_deleting_an_entry_leaves_others_untouched():
    entries = parse_entries(SAMPLE + "\n\nThird\n#misc\nMore.", {}, make_clock())
    before = {entry.title: serialize_entry(entry) for entry in entries}

    remaining = [entry for entry in entries if entry.title != "Gym day"]
    text = serialize_entries(remaining)

    for entry in remaining:
        assert before[entry.title] in text
    assert "Gym day" not in text


def test_timestamp_lookup_last_write_wins():
    first = datetime(2025, 1, 1, tzinfo=timezone.utc)
    second = datetime(2025, 6, 1, tzinfo=timezone.utc)
    lookup = build_timestamp_lookup(
        [JournalEntry(title="Same", timestamp=first), ("Same", second)]
    )
    assert lookup == {"Same": second}


def test_retitled_entry_gets_fresh_timestamp():
    old = datetime(2025, 1, 1, tzinfo=timezone.utc)
    entries = parse_entries("Renamed entry\nbody", {"Original entry": old}, make_clock())
    assert entries[0].timestamp == BASE_TIME


def test_naive_known_timestamp_next_to_new_title():
    naive = datetime(2025, 1, 1, 8, 0)
    entries = parse_entries("Old\n\nNew", {"Old": naive}, make_clock())

    assert [entry.title for entry in entries] == ["New", "Old"]
    old = entries[1]
    assert old.timestamp.tzinfo is not None
    assert old.timestamp == naive.astimezone()


def test_naive_clock_values_still_sort():
    def naive_clock() -> datetime:
        return datetime(2026, 3, 1, 12, 0)

    known = {"Kept": datetime(2025, 1, 1, tzinfo=timezone.utc)}
    entries = parse_entries("Kept\n\nFresh", known, naive_clock)

    assert [entry.title for entry in entries] == ["Fresh", "Kept"]
    assert all(entry.timestamp.tzinfo is not None for entry in entries)


def test_timestamp_lookup_makes_naive_values_aware():
    lookup = build_timestamp_lookup([("Same", datetime(2025, 6, 1))])
    assert lookup["Same"].tzinfo is not None
