"""Tests for the storage layer."""

import sqlite3
from pathlib import Path

import pytest

from quicknote.db import SCHEMA_VERSION, Database, format_ts, parse_ts
from quicknote.errors import NotFound, StorageBusy, StorageCorrupt
from quicknote.models import KnowledgeType

from conftest import T0


class TestDatabaseInit:
    """Tests for database creation."""

    def test_creates_db_directory(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "vault.db"
        Database(path)
        assert path.exists()

    def test_creates_tables(self, db: Database):
        with db.transaction() as conn:
            names = {
                row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert {"notes", "tags", "note_tags", "review_cards", "search_terms", "schema_version"} <= names

    def test_uses_wal(self, db: Database):
        with db.transaction() as conn:
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"

    def test_reopen_is_idempotent(self, db: Database):
        note_id = db.create_note("t", "c", KnowledgeType.CONCEPT)
        reopened = Database(db.db_path)
        assert reopened.get_note(note_id).content == "c"

    def test_newer_schema_is_rejected(self, db: Database):
        with sqlite3.connect(db.db_path) as conn:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION + 1,))
        with pytest.raises(StorageCorrupt):
            Database(db.db_path)

    def test_garbage_file_is_corrupt(self, tmp_path: Path):
        path = tmp_path / "vault.db"
        path.write_bytes(b"this is not a database" * 200)
        with pytest.raises(StorageCorrupt):
            Database(path)


class TestNotes:
    """Tests for note storage."""

    def test_create_and_get(self, db: Database):
        note_id = db.create_note(
            "Title", "Body #x", KnowledgeType.SQL_QUERY, {"x", "Y"}, created_at=T0
        )
        note = db.get_note(note_id)

        assert note.id == note_id
        assert note.title == "Title"
        assert note.content == "Body #x"
        assert note.knowledge_type == KnowledgeType.SQL_QUERY
        assert note.tags == {"x", "y"}
        assert note.created_at == T0

    def test_ids_are_monotonic(self, db: Database):
        first = db.create_note("", "a", KnowledgeType.CONCEPT)
        db.delete_note(first)
        second = db.create_note("", "b", KnowledgeType.CONCEPT)
        assert second > first

    def test_get_missing(self, db: Database):
        with pytest.raises(NotFound):
            db.get_note(42)

    def test_list_notes_in_id_order(self, db: Database):
        ids = [db.create_note("", text, KnowledgeType.CONCEPT) for text in ("a", "b", "c")]
        assert [note.id for note in db.list_notes()] == ids

    def test_tags_shared_between_notes(self, db: Database):
        first = db.create_note("", "a", KnowledgeType.CONCEPT, {"work"})
        second = db.create_note("", "b", KnowledgeType.CONCEPT, {"work", "home"})
        assert db.get_note(first).tags == {"work"}
        assert db.get_note(second).tags == {"work", "home"}

    def test_delete_removes_everything(self, db: Database):
        note_id = db.create_note("", "alpha", KnowledgeType.CONCEPT, {"t"}, card_due_at=T0)
        db.delete_note(note_id)

        with pytest.raises(NotFound):
            db.get_note(note_id)
        assert db.get_card_for_note(note_id) is None
        assert db.search("alpha") == []
        with db.transaction() as conn:
            assert conn.execute("SELECT COUNT(*) FROM note_tags").fetchone()[0] == 0

    def test_delete_missing(self, db: Database):
        with pytest.raises(NotFound):
            db.delete_note(7)

    def test_empty_content_rejected_by_schema(self, db: Database):
        with pytest.raises(StorageCorrupt):
            db.create_note("", "", KnowledgeType.CONCEPT)
        assert db.note_count() == 0


class TestCards:
    """Tests for review card storage."""

    def test_seeded_card_defaults(self, db: Database):
        note_id = db.create_note("", "x", KnowledgeType.CONCEPT, card_due_at=T0)
        card = db.get_card_for_note(note_id)

        assert card.note_id == note_id
        assert card.repetitions == 0
        assert card.interval_days == 0
        assert card.easiness_factor == 2.5
        assert card.due_at == T0
        assert card.last_reviewed_at is None

    def test_ensure_card_is_idempotent(self, db: Database):
        note_id = db.create_note("", "x", KnowledgeType.CONCEPT)
        first = db.ensure_card(note_id, T0)
        second = db.ensure_card(note_id, T0)
        assert first == second
        assert len(db.list_cards()) == 1

    def test_ensure_card_unknown_note(self, db: Database):
        with pytest.raises(NotFound):
            db.ensure_card(99, T0)

    def test_get_card_missing(self, db: Database):
        with pytest.raises(NotFound):
            db.get_card(5)


class TestTransactions:
    """Tests for atomicity and locking."""

    def test_failure_rolls_back_note(self, db: Database, monkeypatch: pytest.MonkeyPatch):
        def boom(*args, **kwargs):
            raise RuntimeError("index down")

        monkeypatch.setattr(db.index, "index", boom)
        with pytest.raises(RuntimeError):
            db.create_note("", "alpha", KnowledgeType.CONCEPT, {"t"}, card_due_at=T0)

        assert db.note_count() == 0
        assert db.list_cards() == []

    def test_busy_writer(self, tmp_path: Path):
        db = Database(tmp_path / "vault.db", busy_timeout=0.1)
        blocker = sqlite3.connect(db.db_path, isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            with pytest.raises(StorageBusy) as excinfo:
                db.create_note("", "x", KnowledgeType.CONCEPT)
            assert excinfo.value.retryable
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        assert db.create_note("", "x", KnowledgeType.CONCEPT) == 1

    def test_readers_not_blocked_by_writer(self, db: Database):
        db.create_note("", "alpha", KnowledgeType.CONCEPT)
        blocker = sqlite3.connect(db.db_path, isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            assert len(db.search("alpha")) == 1
            assert db.note_count() == 1
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()


class TestTimestamps:
    """Tests for timestamp encoding."""

    def test_round_trip(self):
        assert parse_ts(format_ts(T0)) == T0

    def test_fixed_width_sorts(self):
        whole = format_ts(T0)
        fractional = format_ts(T0.replace(microsecond=5))
        assert len(whole) == len(fractional)
        assert whole < fractional

    def test_naive_taken_as_utc(self):
        assert format_ts(T0.replace(tzinfo=None)) == format_ts(T0)
