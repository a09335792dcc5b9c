"""
Terminal formatting for QuickNote.

Turns notes and cards into the colored listings the CLI prints.
"""

import os
from datetime import datetime
from typing import Any

from quicknote.models import KnowledgeType, Note, ReviewCard


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    @classmethod
    def enabled(cls) -> bool:
        """Check if colors should be enabled."""
        return not os.environ.get("NO_COLOR")


def c(text: str, *codes: str) -> str:
    """Apply color codes to text if colors are enabled."""
    if not Colors.enabled():
        return text
    return "".join(codes) + text + Colors.RESET


# Type colors
TYPE_COLORS = {
    KnowledgeType.CONCEPT: Colors.BRIGHT_CYAN,
    KnowledgeType.SNIPPET: Colors.BRIGHT_BLUE,
    KnowledgeType.CHECKLIST: Colors.BRIGHT_GREEN,
    KnowledgeType.NOTE: Colors.WHITE,
    KnowledgeType.PROCESS: Colors.BRIGHT_YELLOW,
    KnowledgeType.SQL_QUERY: Colors.BRIGHT_MAGENTA,
    KnowledgeType.DEBUG_PATTERN: Colors.BRIGHT_RED,
}


def _note_line(note: Note, extra: str = "") -> str:
    seq_str = c(f"{note.id:>5}", Colors.BOLD, Colors.WHITE)
    type_str = c(f"{note.knowledge_type.value:12}", TYPE_COLORS.get(note.knowledge_type, ""))
    tags = " ".join(f"#{tag}" for tag in sorted(note.tags))
    tag_str = c(f" {tags}", Colors.DIM) if tags else ""
    return f"{seq_str}  {type_str}  {note.title[:48]}{tag_str}{extra}"


def format_notes(notes: list[Note], heading: str) -> str:
    """Format a list of notes with a header."""
    if not notes:
        return c("No notes found.", Colors.DIM)

    lines = [c(f"━━━ {heading} ━━━", Colors.BOLD, Colors.BLUE), ""]
    lines.append(c(f"{'ID':>5}  {'TYPE':12}  TITLE", Colors.DIM))
    lines.append(c("─" * 70, Colors.DIM))
    lines.extend(_note_line(note) for note in notes)
    return "\n".join(lines)


def format_due(pairs: list[tuple[Note, ReviewCard]], as_of: datetime) -> str:
    """Format the review queue."""
    if not pairs:
        return c("Nothing due. You're all caught up.", Colors.DIM)

    lines = [c(f"━━━ DUE FOR REVIEW ({len(pairs)}) ━━━", Colors.BOLD, Colors.BLUE), ""]
    lines.append(c(f"{'CARD':>5}  {'NOTE':>5}  {'DUE':16}  {'REPS':>4}  TITLE", Colors.DIM))
    lines.append(c("─" * 70, Colors.DIM))
    for note, card in pairs:
        due = card.due_at.strftime("%Y-%m-%d %H:%M")
        overdue = (as_of - card.due_at).days
        due_str = c(due, Colors.YELLOW) if overdue >= 1 else due
        lines.append(
            f"{c(f'{card.id:>5}', Colors.BOLD)}  {note.id:>5}  {due_str:16}  "
            f"{card.repetitions:>4}  {note.title[:40]}"
        )
    return "\n".join(lines)


def format_card(card: ReviewCard) -> str:
    due = card.due_at.strftime("%Y-%m-%d")
    return (
        f"Card {card.id}: next review {c(due, Colors.GREEN)} "
        f"(interval {card.interval_days:g}d, reps {card.repetitions}, "
        f"ease {card.easiness_factor:.2f})"
    )


def format_stats(stats: dict[str, Any]) -> str:
    lines = ["QuickNote Statistics", "-" * 30]
    lines.append(f"Total notes: {stats['total_notes']}")
    if stats.get("by_type"):
        lines.append("\nBy type:")
        for knowledge_type, count in sorted(stats["by_type"].items()):
            lines.append(f"  {knowledge_type}: {count}")
    lines.append(f"\nReview cards: {stats['total_cards']} ({stats['due_cards']} due)")
    return "\n".join(lines)
