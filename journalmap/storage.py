"""Database operations and data persistence."""

from __future__ import annotations

import csv
import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from journalmap.models import CategoryRecord, JournalEntry, local_now
from journalmap.parser import as_aware, parse_category_line

CATEGORY_JOIN = ", "


def apply_sqlite_pragmas(conn: sqlite3.Connection) -> None:
    """Apply recommended PRAGMA tunings to an open SQLite connection.

    This centralizes the WAL and sync/temp_store settings so all code paths
    opening the DB get consistent behavior.
    """
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        logging.debug(
            "Applied SQLite PRAGMAs: journal_mode=WAL, synchronous=NORMAL, temp_store=MEMORY"
        )
    except sqlite3.DatabaseError:
        logging.exception("Failed to apply SQLite PRAGMA settings.")


def initialize_storage(db_path: Path) -> None:
    """Ensure the SQLite schema for documents, entries and categories exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    raw_text TEXT NOT NULL DEFAULT '',
                    last_modified TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    categories TEXT NOT NULL DEFAULT '',
                    body TEXT NOT NULL DEFAULT '',
                    timestamp TEXT NOT NULL,
                    last_modified TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_timestamp ON entries(timestamp)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    name TEXT PRIMARY KEY,
                    usage_count INTEGER NOT NULL DEFAULT 0
                )
                """
            )
    except sqlite3.DatabaseError:
        logging.exception("Failed to initialize journal database at %s", db_path)
        raise


def _parse_timestamp(raw: object) -> datetime:
    try:
        parsed = datetime.fromisoformat(str(raw))
    except ValueError:
        logging.warning("Unreadable entry timestamp %r, using now", raw)
        return local_now()
    return as_aware(parsed)


def load_document_text(db_path: Path) -> str:
    """Return the stored raw journal buffer, or "" when nothing can be read."""
    if not db_path.exists():
        return ""

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            row = conn.execute(
                "SELECT raw_text FROM documents ORDER BY id LIMIT 1"
            ).fetchone()
    except sqlite3.DatabaseError:
        logging.exception("Failed to load journal document from SQLite.")
        return ""

    if row is None or row[0] is None:
        return ""
    return str(row[0])


def load_known_timestamps(db_path: Path) -> dict[str, datetime]:
    """Title -> timestamp of every saved entry; the last row for a title wins."""
    if not db_path.exists():
        return {}

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            rows = conn.execute(
                "SELECT title, timestamp FROM entries ORDER BY id ASC"
            ).fetchall()
    except sqlite3.DatabaseError:
        logging.exception("Failed to load entry timestamps from SQLite.")
        return {}

    return {str(title): _parse_timestamp(timestamp) for title, timestamp in rows}


def load_entries(db_path: Path) -> list[JournalEntry]:
    """加载已保存的 journal 条目，按 timestamp DESC 排序。"""
    if not db_path.exists():
        return []

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT title, categories, body, timestamp
                FROM entries
                ORDER BY timestamp DESC, position ASC
                """
            ).fetchall()
    except sqlite3.DatabaseError:
        logging.exception("Failed to load journal entries from SQLite.")
        return []

    entries: list[JournalEntry] = []
    for row in rows:
        row_dict = dict(row)
        try:
            entries.append(
                JournalEntry(
                    title=str(row_dict.get("title", "")),
                    categories=parse_category_line(
                        "#" + str(row_dict.get("categories") or "")
                    ),
                    body=str(row_dict.get("body") or ""),
                    timestamp=_parse_timestamp(row_dict.get("timestamp")),
                )
            )
        except (TypeError, ValueError):
            logging.exception("Skipping malformed database row: %s", row_dict)
            continue

    # ISO strings with mixed offsets do not sort correctly as text
    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    return entries


def load_categories(db_path: Path) -> list[CategoryRecord]:
    """Category vocabulary by usage count descending, ties in insertion order."""
    if not db_path.exists():
        return []

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            rows = conn.execute(
                """
                SELECT name, usage_count
                FROM categories
                WHERE name != ''
                ORDER BY usage_count DESC, rowid ASC
                """
            ).fetchall()
    except sqlite3.DatabaseError:
        logging.exception("Failed to load categories from SQLite.")
        return []

    return [CategoryRecord(name=str(name), usage_count=int(count)) for name, count in rows]


def save_journal(db_path: Path, raw_text: str, entries: Iterable[JournalEntry]) -> None:
    """将整个文档及其解析出的条目写入数据库（单个事务）。

    Entry rows are replaced wholesale. A stored timestamp survives for any
    entry whose title is unchanged, entries with an empty title are dropped,
    and every category gains one use per entry that carries it.
    """
    now = local_now().isoformat()

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)

            updated = conn.execute(
                "UPDATE documents SET raw_text = ?, last_modified = ? "
                "WHERE id = (SELECT MIN(id) FROM documents)",
                (raw_text, now),
            ).rowcount
            if not updated:
                conn.execute(
                    "INSERT INTO documents (raw_text, last_modified) VALUES (?, ?)",
                    (raw_text, now),
                )

            # copy timestamps before the rows they live in are deleted
            existing = {
                str(title): str(timestamp)
                for title, timestamp in conn.execute(
                    "SELECT title, timestamp FROM entries ORDER BY id ASC"
                )
            }
            conn.execute("DELETE FROM entries")

            payload: list[tuple[str, str, str, str, str, int]] = []
            usage: list[str] = []
            for position, entry in enumerate(entries):
                title = entry.title.strip()
                if not title:
                    continue
                payload.append(
                    (
                        title,
                        CATEGORY_JOIN.join(entry.categories),
                        entry.body,
                        existing.get(title, entry.timestamp.isoformat()),
                        now,
                        position,
                    )
                )
                usage.extend(dict.fromkeys(name for name in entry.categories if name))

            conn.executemany(
                """
                INSERT INTO entries (
                    title,
                    categories,
                    body,
                    timestamp,
                    last_modified,
                    position
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                payload,
            )
            for name in usage:
                conn.execute(
                    "INSERT INTO categories (name, usage_count) VALUES (?, 1) "
                    "ON CONFLICT(name) DO UPDATE SET usage_count = usage_count + 1",
                    (name,),
                )
            logging.info(
                "Saved journal document with %d entries to %s", len(payload), db_path
            )
    except sqlite3.DatabaseError:
        logging.exception("Failed to save journal document to database.")
        raise


def export_journal_to_csv(db_path: Path, csv_path: Path) -> int:
    """Write saved entries to a CSV file and return the number of rows exported.

    Uses streaming export to avoid loading all entries into memory at once.
    """
    if not db_path.exists():
        return 0

    csv_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with sqlite3.connect(db_path) as conn:
            apply_sqlite_pragmas(conn)
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT title, categories, body, timestamp
                FROM entries
                ORDER BY timestamp ASC, position DESC
                """
            )
            return _write_entries_to_csv(cursor, csv_path)
    except sqlite3.DatabaseError:
        logging.exception("Failed to export journal entries from SQLite.")
        raise
    except OSError:
        logging.exception("Failed to write journal CSV export to %s", csv_path)
        raise


def _write_entries_to_csv(cursor: sqlite3.Cursor, csv_path: Path) -> int:
    """Write database cursor rows to CSV file using streaming approach."""
    row_count = 0
    batch_size = 1000

    with csv_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["title", "categories", "body", "timestamp"])

        while True:
            rows = cursor.fetchmany(batch_size)
            if not rows:
                break

            for row in rows:
                writer.writerow(
                    [row["title"], row["categories"], row["body"], row["timestamp"]]
                )
                row_count += 1

    return row_count
