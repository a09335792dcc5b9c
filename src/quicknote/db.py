"""
Database module for QuickNote.

SQLite storage for notes and review cards, with the search index kept in the
same file and updated inside the same transaction.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator

from quicknote.config import get_db_path
from quicknote.errors import InvalidInput, NotFound, StorageBusy, StorageCorrupt
from quicknote.models import (
    EASINESS_DEFAULT,
    ArchivedNote,
    KnowledgeType,
    Note,
    ReviewCard,
    to_utc,
    utcnow,
)
from quicknote.search import SearchIndex

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in KnowledgeType)

SCHEMA = f"""
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Notes are append-only; AUTOINCREMENT keeps ids from being reused after delete
CREATE TABLE IF NOT EXISTS notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL CHECK(content <> ''),
    knowledge_type TEXT NOT NULL CHECK(knowledge_type IN ({_TYPE_VALUES})),
    created_at TEXT NOT NULL                -- ISO 8601 UTC
);

-- Tags (many-to-many)
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS note_tags (
    note_id INTEGER REFERENCES notes(id) ON DELETE CASCADE,
    tag_id INTEGER REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (note_id, tag_id)
);

-- Review cards (at most one per note)
CREATE TABLE IF NOT EXISTS review_cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    note_id INTEGER NOT NULL UNIQUE REFERENCES notes(id) ON DELETE CASCADE,
    interval_days REAL NOT NULL DEFAULT 0 CHECK(interval_days >= 0),
    repetitions INTEGER NOT NULL DEFAULT 0 CHECK(repetitions >= 0),
    easiness_factor REAL NOT NULL DEFAULT {EASINESS_DEFAULT} CHECK(easiness_factor >= 1.3),
    due_at TEXT NOT NULL,                   -- ISO 8601 UTC
    last_reviewed_at TEXT,
    CHECK(last_reviewed_at IS NULL OR due_at >= last_reviewed_at)
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_notes_type ON notes(knowledge_type);
CREATE INDEX IF NOT EXISTS idx_review_cards_due ON review_cards(due_at, note_id);
"""


def format_ts(value: datetime) -> str:
    """Fixed-width UTC timestamp, so string order equals time order."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


def translate_error(error: sqlite3.Error) -> Exception:
    """Map a sqlite3 error onto the QuickNote taxonomy."""
    message = str(error).lower()
    if isinstance(error, sqlite3.OperationalError) and ("locked" in message or "busy" in message):
        return StorageBusy(f"Vault is busy: {error}")
    return StorageCorrupt(f"Storage failure: {error}")


class Database:
    """SQLite database wrapper for QuickNote."""

    def __init__(
        self,
        db_path: Path | None = None,
        busy_timeout: float = 5.0,
        index: SearchIndex | None = None,
    ):
        self.db_path = db_path or get_db_path()
        self.busy_timeout = busy_timeout
        self.index = index or SearchIndex()
        self._write_lock = threading.Lock()
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure database exists and schema is current."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = self._open()
            try:
                conn.execute("PRAGMA journal_mode = WAL")
                row = None
                if conn.execute(
                    "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
                ).fetchone():
                    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
                if row and row[0] is not None and row[0] > SCHEMA_VERSION:
                    raise StorageCorrupt(
                        f"Vault schema version {row[0]} is newer than supported ({SCHEMA_VERSION})"
                    )
                conn.executescript(SCHEMA)
                self.index.create_schema(conn)
                # Set schema version
                conn.execute(
                    "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,)
                )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise translate_error(e) from e

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout,
            isolation_level=None,  # transactions are managed explicitly
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA synchronous = FULL")
        return conn

    @contextmanager
    def transaction(self, write: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside one SQLite transaction.

        Write transactions are serialised by a process lock and take the
        SQLite write lock up front (BEGIN IMMEDIATE). Readers get their own
        connection and snapshot. Any exception rolls everything back.
        """
        if write and not self._write_lock.acquire(timeout=self.busy_timeout):
            raise StorageBusy("Timed out waiting for another writer in this process")
        try:
            conn = self._open()
            try:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise translate_error(e) from e
        finally:
            if write:
                self._write_lock.release()

    # Notes

    def create_note(
        self,
        title: str,
        content: str,
        knowledge_type: KnowledgeType,
        tags: Iterable[str] = (),
        *,
        card_due_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> int:
        """
        Insert a note, index it and optionally seed its review card.

        All three writes commit together or not at all. Returns the note ID.
        """
        with self.transaction(write=True) as conn:
            note_id = self.insert_note(
                conn, title, content, knowledge_type, tags, created_at or utcnow()
            )
            self.index.index(conn, note_id, title, content)
            if card_due_at is not None:
                self.insert_card(conn, note_id, card_due_at)

        logger.debug(f"Created note {note_id} ({knowledge_type.value})")
        return note_id

    def insert_note(
        self,
        conn: sqlite3.Connection,
        title: str,
        content: str,
        knowledge_type: KnowledgeType,
        tags: Iterable[str],
        created_at: datetime,
        note_id: int | None = None,
    ) -> int:
        """Insert the note row and its tags on an open connection."""
        cursor = conn.execute("""
            INSERT INTO notes (id, title, content, knowledge_type, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, (note_id, title, content, KnowledgeType(knowledge_type).value, format_ts(created_at)))
        new_id = cursor.lastrowid

        # Handle tags
        for tag_name in sorted({tag.lower() for tag in tags}):
            conn.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (tag_name,))
            tag_id = conn.execute(
                "SELECT id FROM tags WHERE name = ?", (tag_name,)
            ).fetchone()[0]
            conn.execute(
                "INSERT OR IGNORE INTO note_tags (note_id, tag_id) VALUES (?, ?)",
                (new_id, tag_id)
            )

        return new_id

    def _tags_for(self, conn: sqlite3.Connection, note_ids: list[int]) -> dict[int, frozenset[str]]:
        if not note_ids:
            return {}
        found: dict[int, set[str]] = {}
        placeholders = ", ".join("?" for _ in note_ids)
        rows = conn.execute(f"""
            SELECT nt.note_id, t.name FROM note_tags nt
            JOIN tags t ON nt.tag_id = t.id
            WHERE nt.note_id IN ({placeholders})
        """, note_ids).fetchall()
        for row in rows:
            found.setdefault(row["note_id"], set()).add(row["name"])
        return {note_id: frozenset(names) for note_id, names in found.items()}

    def load_notes(self, conn: sqlite3.Connection, note_ids: list[int]) -> list[Note]:
        """Load notes in the order of `note_ids`. Missing ids are skipped."""
        if not note_ids:
            return []
        placeholders = ", ".join("?" for _ in note_ids)
        rows = conn.execute(
            f"SELECT * FROM notes WHERE id IN ({placeholders})", note_ids
        ).fetchall()
        tags = self._tags_for(conn, note_ids)
        by_id = {row["id"]: _row_to_note(row, tags.get(row["id"], frozenset())) for row in rows}
        return [by_id[note_id] for note_id in note_ids if note_id in by_id]

    def get_note(self, note_id: int) -> Note:
        """Get a single note by ID."""
        with self.transaction() as conn:
            notes = self.load_notes(conn, [note_id])
        if not notes:
            raise NotFound(f"Note not found: {note_id}")
        return notes[0]

    def list_notes(self) -> list[Note]:
        """All notes in creation order."""
        with self.transaction() as conn:
            ids = [row[0] for row in conn.execute("SELECT id FROM notes ORDER BY id")]
            return self.load_notes(conn, ids)

    def delete_note(self, note_id: int) -> None:
        """Delete a note with its tags, search terms and card."""
        with self.transaction(write=True) as conn:
            self.index.remove(conn, note_id)
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            if cursor.rowcount == 0:
                raise NotFound(f"Note not found: {note_id}")
        logger.debug(f"Deleted note {note_id}")

    def search(self, query: str) -> list[Note]:
        """Ranked full-text search, read from one snapshot."""
        with self.transaction() as conn:
            return self.load_notes(conn, self.index.query(conn, query))

    def note_count(self) -> int:
        with self.transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]

    # Review cards

    def insert_card(self, conn: sqlite3.Connection, note_id: int, due_at: datetime) -> ReviewCard:
        """Create a new card, due at `due_at`, on an open connection."""
        cursor = conn.execute("""
            INSERT INTO review_cards (note_id, interval_days, repetitions, easiness_factor, due_at)
            VALUES (?, 0, 0, ?, ?)
        """, (note_id, EASINESS_DEFAULT, format_ts(due_at)))
        return self.fetch_card(conn, cursor.lastrowid)

    def fetch_card(self, conn: sqlite3.Connection, card_id: int) -> ReviewCard:
        row = conn.execute("SELECT * FROM review_cards WHERE id = ?", (card_id,)).fetchone()
        if row is None:
            raise NotFound(f"Review card not found: {card_id}")
        return _row_to_card(row)

    def store_card(self, conn: sqlite3.Connection, card: ReviewCard) -> None:
        """Write back a card's scheduling fields."""
        cursor = conn.execute("""
            UPDATE review_cards
            SET interval_days = ?, repetitions = ?, easiness_factor = ?,
                due_at = ?, last_reviewed_at = ?
            WHERE id = ?
        """, (
            card.interval_days,
            card.repetitions,
            card.easiness_factor,
            format_ts(card.due_at),
            format_ts(card.last_reviewed_at) if card.last_reviewed_at else None,
            card.id,
        ))
        if cursor.rowcount == 0:
            raise NotFound(f"Review card not found: {card.id}")

    def get_card(self, card_id: int) -> ReviewCard:
        with self.transaction() as conn:
            return self.fetch_card(conn, card_id)

    def get_card_for_note(self, note_id: int) -> ReviewCard | None:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM review_cards WHERE note_id = ?", (note_id,)
            ).fetchone()
        return _row_to_card(row) if row else None

    def ensure_card(self, note_id: int, due_at: datetime) -> ReviewCard:
        """Return the note's card, creating one due at `due_at` if it has none."""
        with self.transaction(write=True) as conn:
            if not conn.execute("SELECT 1 FROM notes WHERE id = ?", (note_id,)).fetchone():
                raise NotFound(f"Note not found: {note_id}")
            row = conn.execute(
                "SELECT * FROM review_cards WHERE note_id = ?", (note_id,)
            ).fetchone()
            if row:
                return _row_to_card(row)
            return self.insert_card(conn, note_id, due_at)

    def list_cards(self) -> list[ReviewCard]:
        with self.transaction() as conn:
            rows = conn.execute("SELECT * FROM review_cards ORDER BY note_id").fetchall()
        return [_row_to_card(row) for row in rows]

    def due_cards(self, as_of: datetime) -> list[tuple[Note, ReviewCard]]:
        """Cards due at or before `as_of`, with their notes, oldest due first."""
        with self.transaction() as conn:
            rows = conn.execute("""
                SELECT * FROM review_cards
                WHERE due_at <= ?
                ORDER BY due_at ASC, note_id ASC
            """, (format_ts(as_of),)).fetchall()
            cards = [_row_to_card(row) for row in rows]
            notes = {note.id: note for note in self.load_notes(conn, [c.note_id for c in cards])}
        return [(notes[card.note_id], card) for card in cards]

    # Maintenance

    def snapshot(self) -> tuple[list[Note], list[ReviewCard]]:
        """Every note and card, read inside one transaction."""
        with self.transaction() as conn:
            ids = [row[0] for row in conn.execute("SELECT id FROM notes ORDER BY id")]
            notes = self.load_notes(conn, ids)
            rows = conn.execute("SELECT * FROM review_cards ORDER BY note_id").fetchall()
        return notes, [_row_to_card(row) for row in rows]

    def _check_free_ids(
        self, conn: sqlite3.Connection, table: str, label: str, ids: list[int]
    ) -> None:
        if len(set(ids)) != len(ids):
            raise InvalidInput(f"{label} in archive have duplicate ids")
        if not ids:
            return
        placeholders = ", ".join("?" for _ in ids)
        clash = conn.execute(
            f"SELECT id FROM {table} WHERE id IN ({placeholders}) ORDER BY id", ids
        ).fetchall()
        if clash:
            raise InvalidInput(
                f"{label} already exist in vault: {', '.join(str(row[0]) for row in clash)}"
            )

    def import_records(self, records: list[ArchivedNote]) -> int:
        """
        Insert archived notes with their original ids and cards.

        Any id already in the vault fails the whole import before anything
        is written. Returns the number of notes imported.
        """
        with self.transaction(write=True) as conn:
            self._check_free_ids(conn, "notes", "Notes", [record.id for record in records])
            self._check_free_ids(
                conn, "review_cards", "Review cards",
                [record.card.id for record in records if record.card is not None],
            )

            for record in records:
                self.insert_note(
                    conn, record.title, record.content, record.knowledge_type,
                    record.tags, record.created_at, note_id=record.id,
                )
                self.index.index(conn, record.id, record.title, record.content)
                if record.card is not None:
                    card = record.card
                    conn.execute("""
                        INSERT INTO review_cards (
                            id, note_id, interval_days, repetitions, easiness_factor,
                            due_at, last_reviewed_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        card.id,
                        record.id,
                        card.interval_days,
                        card.repetitions,
                        card.easiness_factor,
                        format_ts(card.due_at),
                        format_ts(card.last_reviewed_at) if card.last_reviewed_at else None,
                    ))

        logger.info(f"Imported {len(records)} notes")
        return len(records)

    def rebuild_index(self) -> int:
        with self.transaction(write=True) as conn:
            return self.index.rebuild(conn)

    def get_stats(self, as_of: datetime | None = None) -> dict[str, Any]:
        """Get database statistics."""
        as_of = as_of or utcnow()
        with self.transaction() as conn:
            total = conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]
            by_type = dict(conn.execute("""
                SELECT knowledge_type, COUNT(*) FROM notes GROUP BY knowledge_type
            """).fetchall())
            cards = conn.execute("SELECT COUNT(*) FROM review_cards").fetchone()[0]
            due = conn.execute(
                "SELECT COUNT(*) FROM review_cards WHERE due_at <= ?", (format_ts(as_of),)
            ).fetchone()[0]

            return {
                "total_notes": total,
                "by_type": by_type,
                "total_cards": cards,
                "due_cards": due,
            }


def _row_to_note(row: sqlite3.Row, tags: frozenset[str]) -> Note:
    try:
        return Note(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            knowledge_type=KnowledgeType(row["knowledge_type"]),
            tags=tags,
            created_at=parse_ts(row["created_at"]),
        )
    except ValueError as e:
        raise StorageCorrupt(f"Unreadable note row {row['id']}: {e}") from e


def _row_to_card(row: sqlite3.Row) -> ReviewCard:
    try:
        return ReviewCard(
            id=row["id"],
            note_id=row["note_id"],
            interval_days=row["interval_days"],
            repetitions=row["repetitions"],
            easiness_factor=row["easiness_factor"],
            due_at=parse_ts(row["due_at"]),
            last_reviewed_at=parse_ts(row["last_reviewed_at"]),
        )
    except ValueError as e:
        raise StorageCorrupt(f"Unreadable review card row {row['id']}: {e}") from e
