"""
Typed commands for the QuickNote boundary.

The presentation layer speaks in command names and loose payloads. Those
are decoded here into a closed set of validated models before reaching the
vault, so the core never sees untyped input.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from quicknote.errors import InvalidInput
from quicknote.models import Rating


class _Command(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class AddNote(_Command):
    command: Literal["add_note"] = "add_note"
    title: str = ""
    content: str


class SearchNotes(_Command):
    command: Literal["search_notes"] = "search_notes"
    query: str = ""


class ListReviewCards(_Command):
    command: Literal["list_review_cards"] = "list_review_cards"
    as_of: datetime | None = None


class RateReviewCard(_Command):
    command: Literal["rate_review_card"] = "rate_review_card"
    card_id: int
    rating: Rating


class ExportVault(_Command):
    command: Literal["export_vault"] = "export_vault"


Command = Annotated[
    Union[AddNote, SearchNotes, ListReviewCards, RateReviewCard, ExportVault],
    Field(discriminator="command"),
]

COMMAND_NAMES = ("add_note", "search_notes", "list_review_cards", "rate_review_card", "export_vault")

_adapter: TypeAdapter[Command] = TypeAdapter(Command)


class CommandResult(BaseModel):
    """Explicit outcome of a command: either data or an error kind."""

    ok: bool
    data: Any = None
    error: str | None = None
    message: str | None = None
    retryable: bool = False


def decode_command(name: str, payload: dict[str, Any] | None = None) -> Command:
    """
    Validate an untyped (name, payload) pair into a typed command.

    Raises InvalidInput for unknown names, missing fields or bad values.
    """
    if name not in COMMAND_NAMES:
        raise InvalidInput(f"Unknown command: {name!r}")
    if payload is not None and not isinstance(payload, dict):
        raise InvalidInput(f"Payload for {name!r} must be an object")

    try:
        return _adapter.validate_python({**(payload or {}), "command": name})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or name}: {err['msg']}" for err in e.errors()
        )
        raise InvalidInput(f"Invalid {name!r} command: {problems}") from e
