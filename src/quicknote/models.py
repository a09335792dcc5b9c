"""
Core records for QuickNote: notes, review cards and the export archive.
"""

import json
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

EASINESS_DEFAULT = 2.5
EASINESS_FLOOR = 1.3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class KnowledgeType(str, Enum):
    """Closed set of note labels. Stored by value, so never rename a member."""

    CONCEPT = "Concept"
    SNIPPET = "Snippet"
    CHECKLIST = "Checklist"
    NOTE = "Note"
    PROCESS = "Process"
    SQL_QUERY = "SQLQuery"
    DEBUG_PATTERN = "DebugPattern"


class Rating(str, Enum):
    """Answer buttons shown after a card is revealed."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class Note(BaseModel):
    """A stored note. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    content: str
    knowledge_type: KnowledgeType
    tags: frozenset[str] = frozenset()
    created_at: datetime


class ReviewCard(BaseModel):
    """Spaced-repetition state for one note."""

    model_config = ConfigDict(frozen=True)

    id: int
    note_id: int
    interval_days: float = Field(default=0.0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    easiness_factor: float = Field(default=EASINESS_DEFAULT, ge=EASINESS_FLOOR)
    due_at: datetime
    last_reviewed_at: datetime | None = None

    @property
    def is_new(self) -> bool:
        return self.repetitions == 0 and self.last_reviewed_at is None


ARCHIVE_FORMAT = "quicknote-archive"
ARCHIVE_VERSION = 1


class ArchivedCard(BaseModel):
    """Review state as written to an archive. Same bounds as ReviewCard."""

    id: int
    interval_days: float = Field(ge=0)
    repetitions: int = Field(ge=0)
    easiness_factor: float = Field(ge=EASINESS_FLOOR)
    due_at: datetime
    last_reviewed_at: datetime | None = None

    @model_validator(mode="after")
    def check_due_after_review(self) -> "ArchivedCard":
        if self.last_reviewed_at is None:
            return self
        if to_utc(self.due_at) < to_utc(self.last_reviewed_at):
            raise ValueError("due_at is earlier than last_reviewed_at")
        return self


class ArchivedNote(BaseModel):
    """One note in an archive, with its card if it is enrolled."""

    id: int
    title: str
    content: str
    knowledge_type: KnowledgeType
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    card: ArchivedCard | None = None


class Archive(BaseModel):
    """
    Portable snapshot of a vault.

    Field names and types are part of the on-disk format. Add fields, never
    rename them, and bump ARCHIVE_VERSION for incompatible changes.
    """

    format: str = ARCHIVE_FORMAT
    version: int = ARCHIVE_VERSION
    notes: list[ArchivedNote] = Field(default_factory=list)

    @classmethod
    def from_records(cls, notes: list[Note], cards: list[ReviewCard]) -> "Archive":
        cards_by_note = {card.note_id: card for card in cards}
        archived = []
        for note in sorted(notes, key=lambda n: n.id):
            card = cards_by_note.get(note.id)
            archived.append(ArchivedNote(
                id=note.id,
                title=note.title,
                content=note.content,
                knowledge_type=note.knowledge_type,
                tags=sorted(note.tags),
                created_at=note.created_at,
                card=ArchivedCard(
                    id=card.id,
                    interval_days=card.interval_days,
                    repetitions=card.repetitions,
                    easiness_factor=card.easiness_factor,
                    due_at=card.due_at,
                    last_reviewed_at=card.last_reviewed_at,
                ) if card else None,
            ))
        return cls(notes=archived)

    def to_json(self) -> str:
        """Serialise with sorted keys so equal vaults give equal bytes."""
        return json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True, ensure_ascii=False)
