"""Category vocabulary and fuzzy suggestion ranking for autocomplete."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from journalmap.constants import SUGGESTION_LIMIT
from journalmap.models import CategoryRecord

EXACT_MATCH_SCORE = 1.0
SUBSTRING_MATCH_SCORE = 0.8


def similarity_score(first: str, second: str) -> float:
    """Cheap case-insensitive similarity between two category names.

    1.0 for equal names, 0.8 when one contains the other, otherwise the
    Jaccard index of the two character sets.
    """
    a = first.lower()
    b = second.lower()
    if a == b:
        return EXACT_MATCH_SCORE
    if a in b or b in a:
        return SUBSTRING_MATCH_SCORE
    chars_a = set(a)
    chars_b = set(b)
    union = chars_a | chars_b
    if not union:
        return 0.0
    return len(chars_a & chars_b) / len(union)


def suggest_categories(
    query: str,
    vocabulary: Sequence[CategoryRecord],
    limit: int = SUGGESTION_LIMIT,
) -> list[str]:
    """Return up to ``limit`` category names for an autocomplete query.

    An empty query gives the most used names. Otherwise only names that
    contain the query (or are contained in it) are ranked by
    ``similarity_score``; the sort is stable so ties keep vocabulary order.
    """
    records = [record for record in vocabulary if record.name]
    if not records:
        return []

    lowered = query.lower()
    if not lowered:
        by_usage = sorted(records, key=lambda record: record.usage_count, reverse=True)
        return [record.name for record in by_usage[:limit]]

    matches = [
        record.name
        for record in records
        if lowered in record.name.lower() or record.name.lower() in lowered
    ]
    matches.sort(key=lambda name: similarity_score(name, lowered), reverse=True)
    return matches[:limit]


class CategoryIndex:
    """Usage-ranked vocabulary consulted by both editors.

    Counts only ever grow: each entry referencing a category adds one per
    recorded save.
    """

    def __init__(self, records: Iterable[CategoryRecord] = ()) -> None:
        self._records: dict[str, CategoryRecord] = {}
        self.load(records)

    def load(self, records: Iterable[CategoryRecord]) -> None:
        self._records.clear()
        for record in records:
            existing = self._records.get(record.name)
            if existing is None:
                self._records[record.name] = CategoryRecord(
                    record.name, record.usage_count
                )
            else:
                existing.usage_count += record.usage_count

    def record_usage(self, entry_categories: Iterable[Iterable[str]]) -> None:
        """Count one use per entry for every distinct category it carries."""
        for categories in entry_categories:
            for name in dict.fromkeys(name for name in categories if name):
                record = self._records.setdefault(name, CategoryRecord(name, 0))
                record.usage_count += 1

    def records(self) -> list[CategoryRecord]:
        """Records sorted by usage, ties in first-seen order."""
        return sorted(
            self._records.values(), key=lambda record: record.usage_count, reverse=True
        )

    def names(self) -> list[str]:
        return [record.name for record in self.records()]

    def suggestions(self, query: str, limit: int = SUGGESTION_LIMIT) -> list[str]:
        return suggest_categories(query, self.records(), limit)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records
