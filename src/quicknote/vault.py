"""
Vault: the command surface of QuickNote.

Everything a presentation layer needs goes through a Vault instance. It owns
the database, search index and scheduler for one vault directory; nothing is
shared between instances.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from quicknote.classifier import classify
from quicknote.commands import (
    AddNote,
    Command,
    CommandResult,
    ExportVault,
    ListReviewCards,
    RateReviewCard,
    SearchNotes,
)
from quicknote.config import VaultConfig, load_vault_config
from quicknote.db import Database
from quicknote.errors import InvalidInput, QuickNoteError
from quicknote.models import ARCHIVE_FORMAT, ARCHIVE_VERSION, Archive, Note, Rating, ReviewCard, utcnow
from quicknote.scheduler import ReviewScheduler
from quicknote.search import SearchIndex

logger = logging.getLogger(__name__)


def derive_title(content: str, max_length: int = 100) -> str:
    """First non-blank line of the content, cut to max_length."""
    for line in content.splitlines():
        line = line.strip()
        if line:
            return line[:max_length].rstrip()
    return ""


class Vault:
    """Command façade over one vault directory."""

    def __init__(self, config: VaultConfig | Path | str | None = None):
        if config is None:
            config = load_vault_config()
        elif not isinstance(config, VaultConfig):
            config = VaultConfig(home=Path(config))

        self.config = config
        self.index = SearchIndex()
        self.db = Database(config.db_path, busy_timeout=config.busy_timeout, index=self.index)
        self.scheduler = ReviewScheduler(self.db)

    # Notes

    def add_note(self, title: str, content: str, now: datetime | None = None) -> Note:
        """
        Classify and store a note.

        When auto_enroll is on the note also gets a review card due at
        creation time. Nothing is written if any step fails.
        """
        if not content or not content.strip():
            raise InvalidInput("Note content is empty")

        title = (title or "").strip() or derive_title(content, self.config.title_max_length)
        knowledge_type, tags = classify(content)
        now = now or utcnow()

        note_id = self.db.create_note(
            title,
            content,
            knowledge_type,
            tags,
            card_due_at=now if self.config.auto_enroll else None,
            created_at=now,
        )
        logger.info(f"Added note {note_id} as {knowledge_type.value} tags={sorted(tags)}")
        return self.db.get_note(note_id)

    def get_note(self, note_id: int) -> Note:
        return self.db.get_note(note_id)

    def list_notes(self) -> list[Note]:
        return self.db.list_notes()

    def delete_note(self, note_id: int) -> None:
        self.db.delete_note(note_id)

    def search_notes(self, query: str) -> list[Note]:
        """Ranked AND search; an empty query lists every note, newest first."""
        return self.db.search(query or "")

    # Review

    def enroll_note(self, note_id: int, due_at: datetime | None = None) -> ReviewCard:
        """Put a note into the review pool. Returns its existing card if it has one."""
        return self.db.ensure_card(note_id, due_at or utcnow())

    def list_review_cards(self, as_of: datetime | None = None) -> list[tuple[Note, ReviewCard]]:
        return self.scheduler.due(as_of)

    def rate_review_card(
        self, card_id: int, rating: Rating | str, now: datetime | None = None
    ) -> ReviewCard:
        return self.scheduler.rate(card_id, rating, now)

    # Archive

    def export_vault(self) -> Archive:
        """Read-only snapshot of every note and card."""
        notes, cards = self.db.snapshot()
        return Archive.from_records(notes, cards)

    def write_export(self, path: Path) -> int:
        """Write the archive as JSON. Returns the number of notes written."""
        archive = self.export_vault()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(archive.to_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info(f"Exported {len(archive.notes)} notes to {path}")
        return len(archive.notes)

    def import_vault(self, archive: Archive | dict[str, Any] | str) -> int:
        """
        Load an archive into this vault, keeping note ids.

        Fails without writing anything if the archive is malformed or any
        of its ids is already taken.
        """
        try:
            if isinstance(archive, str):
                archive = Archive.model_validate(json.loads(archive))
            elif isinstance(archive, dict):
                archive = Archive.model_validate(archive)
        except (json.JSONDecodeError, ValidationError) as e:
            raise InvalidInput(f"Malformed archive: {e}") from e

        if archive.format != ARCHIVE_FORMAT:
            raise InvalidInput(f"Not a QuickNote archive: format={archive.format!r}")
        if archive.version > ARCHIVE_VERSION:
            raise InvalidInput(
                f"Archive version {archive.version} is newer than supported ({ARCHIVE_VERSION})"
            )
        for record in archive.notes:
            if not record.content.strip():
                raise InvalidInput(f"Archived note {record.id} has empty content")

        return self.db.import_records(archive.notes)

    # Maintenance

    def rebuild_index(self) -> int:
        return self.db.rebuild_index()

    def stats(self) -> dict[str, Any]:
        return self.db.get_stats()

    # Boundary

    def execute(self, command: Command) -> CommandResult:
        """
        Run a typed command and report the outcome as a value.

        QuickNote errors never escape; they come back with ok=False and
        the error kind, so the caller decides how to present them.
        """
        try:
            data = self._dispatch(command)
        except QuickNoteError as e:
            logger.warning(f"{command.command} failed: {e.kind}: {e}")
            return CommandResult(ok=False, error=e.kind, message=str(e), retryable=e.retryable)
        return CommandResult(ok=True, data=data)

    def _dispatch(self, command: Command) -> Any:
        if isinstance(command, AddNote):
            return self.add_note(command.title, command.content).model_dump(mode="json")

        if isinstance(command, SearchNotes):
            return [note.model_dump(mode="json") for note in self.search_notes(command.query)]

        if isinstance(command, ListReviewCards):
            return [
                {"note": note.model_dump(mode="json"), "card": card.model_dump(mode="json")}
                for note, card in self.list_review_cards(command.as_of)
            ]

        if isinstance(command, RateReviewCard):
            return self.rate_review_card(command.card_id, command.rating).model_dump(mode="json")

        if isinstance(command, ExportVault):
            return self.export_vault().model_dump(mode="json")

        raise InvalidInput(f"Unsupported command: {command!r}")
