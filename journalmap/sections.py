"""Grouping of entries by date and by category for the collections tab."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from journalmap.models import CategoryRecord, JournalEntry


@dataclass
class DateSection:
    year: int
    entries: list[JournalEntry] = field(default_factory=list)
    month: int | None = None


@dataclass
class CategorySection:
    name: str
    entry_count: int
    entries: list[JournalEntry] = field(default_factory=list)


def _newest_first(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)


def group_by_year(entries: Iterable[JournalEntry]) -> list[DateSection]:
    """One section per year, newest year first, entries newest first."""
    sections: dict[int, DateSection] = {}
    for entry in _newest_first(entries):
        year = entry.timestamp.year
        sections.setdefault(year, DateSection(year=year)).entries.append(entry)
    return sorted(sections.values(), key=lambda section: section.year, reverse=True)


def group_by_month(entries: Iterable[JournalEntry], year: int) -> list[DateSection]:
    """Month sections within ``year``, latest month first."""
    sections: dict[int, DateSection] = {}
    for entry in _newest_first(entries):
        if entry.timestamp.year != year:
            continue
        month = entry.timestamp.month
        sections.setdefault(month, DateSection(year=year, month=month)).entries.append(
            entry
        )
    return sorted(sections.values(), key=lambda section: section.month or 0, reverse=True)


def has_category(entry: JournalEntry, name: str) -> bool:
    wanted = name.casefold()
    return any(category.casefold() == wanted for category in entry.categories)


def filter_by_category(
    entries: Iterable[JournalEntry], name: str
) -> list[JournalEntry]:
    return [entry for entry in _newest_first(entries) if has_category(entry, name)]


def filter_by_date(
    entries: Iterable[JournalEntry], year: int, month: int | None = None
) -> list[JournalEntry]:
    return [
        entry
        for entry in _newest_first(entries)
        if entry.timestamp.year == year
        and (month is None or entry.timestamp.month == month)
    ]


def category_sections(
    vocabulary: Sequence[CategoryRecord], entries: Iterable[JournalEntry]
) -> list[CategorySection]:
    """A section per vocabulary word, in vocabulary order.

    Words no current entry uses still get an (empty) section since the
    vocabulary never shrinks.
    """
    entries = list(entries)
    sections = []
    for record in vocabulary:
        if not record.name:
            continue
        matched = filter_by_category(entries, record.name)
        sections.append(
            CategorySection(name=record.name, entry_count=len(matched), entries=matched)
        )
    return sections


def search_entries(entries: Iterable[JournalEntry], text: str) -> list[JournalEntry]:
    """Case-insensitive match on title, body or any category."""
    needle = text.strip().casefold()
    ordered = _newest_first(entries)
    if not needle:
        return ordered
    return [
        entry
        for entry in ordered
        if needle in entry.title.casefold()
        or needle in entry.body.casefold()
        or any(needle in category.casefold() for category in entry.categories)
    ]


def entry_titles(entries: Iterable[JournalEntry]) -> list[str]:
    """Titles in display order for the compact titles-only view."""
    return [entry.title for entry in entries]
