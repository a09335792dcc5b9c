"""
CLI for QuickNote.

Minimal CLI using stdlib argument handling. Each subcommand decodes its
arguments into a typed command and runs it through the vault, so the CLI
only ever sees explicit results.

Usage:
    quicknote "your note here"      # Capture (primary interface)
    quicknote find redis            # Search
    quicknote --help                # Show help
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any


def print_help() -> None:
    """Print help message."""
    print("""quicknote - portable knowledge pocket

Usage:
    quicknote "your note here"     Capture a note

Commands:
    quicknote add [--title T] <text>   Capture a note (text may come from stdin)
    quicknote find [query]             Full-text search (empty: all notes)
    quicknote due                      List cards due for review
    quicknote rate <card> <rating>     Rate a card: again, hard, good, easy
    quicknote export [path]            Export the vault as JSON (stdout if no path)
    quicknote import <path>            Import a JSON archive
    quicknote reindex                  Rebuild the search index
    quicknote stats                    Show vault statistics

Options:
    quicknote --help, -h               Show this help
    quicknote --version, -v            Show version

Environment:
    QUICKNOTE_HOME        Vault directory (default ~/quicknote)
    QUICKNOTE_LOG_LEVEL   Logging level (default WARNING)""")


def print_version() -> None:
    """Print version."""
    from quicknote import __version__
    print(f"quicknote {__version__}")


def setup_logging() -> None:
    level = os.environ.get("QUICKNOTE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level, logging.WARNING),
    )


def open_vault():
    """Open the vault configured by config.toml and the environment."""
    from quicknote.vault import Vault
    return Vault()


def run(name: str, payload: dict[str, Any] | None = None) -> Any:
    """
    Decode and execute one command.

    Returns the result data, or None after printing the error.
    """
    from quicknote.commands import decode_command
    from quicknote.errors import QuickNoteError

    try:
        command = decode_command(name, payload)
        result = open_vault().execute(command)
    except QuickNoteError as e:
        print(f"Error: {e.kind}: {e}", file=sys.stderr)
        return None

    if not result.ok:
        hint = " (vault busy, try again)" if result.retryable else ""
        print(f"Error: {result.error}: {result.message}{hint}", file=sys.stderr)
        return None
    return result.data


def cmd_add(args: list[str]) -> int:
    """Capture a note."""
    from quicknote.models import Note

    title = ""
    words = []

    # Parse arguments
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--title", "-t") and i + 1 < len(args):
            title = args[i + 1]
            i += 2
        else:
            words.append(arg)
            i += 1

    content = " ".join(words)
    if not content and not sys.stdin.isatty():
        content = sys.stdin.read()

    data = run("add_note", {"title": title, "content": content})
    if data is None:
        return 1

    note = Note.model_validate(data)
    print(f"{note.id}\t{note.knowledge_type.value}\t{note.title}")
    return 0


def cmd_find(args: list[str]) -> int:
    """Full-text search notes."""
    from quicknote.display import format_notes
    from quicknote.models import Note

    query = " ".join(args)
    data = run("search_notes", {"query": query})
    if data is None:
        return 1

    notes = [Note.model_validate(item) for item in data]
    print(format_notes(notes, f"SEARCH: {query}" if query.strip() else "ALL NOTES"))
    return 0


def cmd_due() -> int:
    """List cards due now."""
    from quicknote.display import format_due
    from quicknote.models import Note, ReviewCard, utcnow

    as_of = utcnow()
    data = run("list_review_cards", {"as_of": as_of})
    if data is None:
        return 1

    pairs = [(Note.model_validate(item["note"]), ReviewCard.model_validate(item["card"])) for item in data]
    print(format_due(pairs, as_of))
    return 0


def cmd_rate(args: list[str]) -> int:
    """Rate a review card."""
    from quicknote.display import format_card
    from quicknote.models import ReviewCard

    if len(args) != 2:
        print("Usage: quicknote rate <card_id> <again|hard|good|easy>", file=sys.stderr)
        return 1

    data = run("rate_review_card", {"card_id": args[0], "rating": args[1].lower()})
    if data is None:
        return 1

    print(format_card(ReviewCard.model_validate(data)))
    return 0


def cmd_export(args: list[str]) -> int:
    """Export the vault."""
    from quicknote.errors import QuickNoteError
    from quicknote.models import Archive

    if args:
        try:
            count = open_vault().write_export(Path(args[0]))
        except (QuickNoteError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Exported {count} notes to {args[0]}")
        return 0

    data = run("export_vault")
    if data is None:
        return 1
    print(Archive.model_validate(data).to_json())
    return 0


def cmd_import(args: list[str]) -> int:
    """Import a JSON archive."""
    from quicknote.errors import QuickNoteError

    if not args:
        print("Usage: quicknote import <path>", file=sys.stderr)
        return 1

    try:
        text = Path(args[0]).read_text(encoding="utf-8")
        count = open_vault().import_vault(text)
    except (QuickNoteError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Imported {count} notes")
    return 0


def cmd_reindex() -> int:
    """Rebuild the search index from stored notes."""
    from quicknote.errors import QuickNoteError

    try:
        count = open_vault().rebuild_index()
    except QuickNoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Reindexed {count} notes")
    return 0


def cmd_stats() -> int:
    """Show vault statistics."""
    from quicknote.display import format_stats
    from quicknote.errors import QuickNoteError

    try:
        print(format_stats(open_vault().stats()))
        return 0
    except QuickNoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main() -> int:
    """Main entry point."""
    setup_logging()
    args = sys.argv[1:]

    # No args - check for piped input
    if not args:
        if not sys.stdin.isatty():
            return cmd_add([])
        print_help()
        return 0

    first_arg = args[0]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    # Subcommands (lazy import to keep startup fast)
    if first_arg == "add":
        return cmd_add(args[1:])

    if first_arg == "find":
        return cmd_find(args[1:])

    if first_arg == "due":
        return cmd_due()

    if first_arg == "rate":
        return cmd_rate(args[1:])

    if first_arg == "export":
        return cmd_export(args[1:])

    if first_arg == "import":
        return cmd_import(args[1:])

    if first_arg == "reindex":
        return cmd_reindex()

    if first_arg == "stats":
        return cmd_stats()

    # Everything else is a note to capture
    return cmd_add(args)


if __name__ == "__main__":
    sys.exit(main())
