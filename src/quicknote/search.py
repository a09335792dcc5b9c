"""
Full-text search for QuickNote.

Keeps a per-note term table inside the vault database. Terms are written in
the same transaction as the note, so search never lags behind storage. The
table is a cache: rebuild() regenerates it from the notes table alone.
"""

import logging
import re
import sqlite3
from collections import Counter

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\w+")

SCHEMA = """
CREATE TABLE IF NOT EXISTS search_terms (
    note_id INTEGER NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    term TEXT NOT NULL,
    title_count INTEGER NOT NULL DEFAULT 0,
    content_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (note_id, term)
);

CREATE INDEX IF NOT EXISTS idx_search_terms_term ON search_terms(term);
"""


def tokenize(text: str) -> list[str]:
    """Split on whitespace and punctuation, lower-cased."""
    return TOKEN_PATTERN.findall(text.lower())


class SearchIndex:
    """Token index over note title and content."""

    def create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(SCHEMA)

    def index(self, conn: sqlite3.Connection, note_id: int, title: str, content: str) -> None:
        """Index (or re-index) a note."""
        title_counts = Counter(tokenize(title))
        content_counts = Counter(tokenize(content))

        conn.execute("DELETE FROM search_terms WHERE note_id = ?", (note_id,))
        conn.executemany(
            """
            INSERT INTO search_terms (note_id, term, title_count, content_count)
            VALUES (?, ?, ?, ?)
            """,
            [
                (note_id, term, title_counts[term], content_counts[term])
                for term in sorted(title_counts.keys() | content_counts.keys())
            ],
        )

    def remove(self, conn: sqlite3.Connection, note_id: int) -> None:
        conn.execute("DELETE FROM search_terms WHERE note_id = ?", (note_id,))

    def query(self, conn: sqlite3.Connection, text: str) -> list[int]:
        """
        Return matching note ids, best match first.

        Every distinct query token must appear in the title or content.
        Ranked by how many query tokens hit the title, then by total
        occurrences, then by id. A query with no tokens returns every note,
        newest first.
        """
        tokens = sorted(set(tokenize(text)))

        if not tokens:
            rows = conn.execute("SELECT id FROM notes ORDER BY id DESC").fetchall()
            return [row[0] for row in rows]

        placeholders = ", ".join("?" for _ in tokens)
        rows = conn.execute(f"""
            SELECT note_id,
                   SUM(CASE WHEN title_count > 0 THEN 1 ELSE 0 END) AS title_hits,
                   SUM(title_count + content_count) AS occurrences
            FROM search_terms
            WHERE term IN ({placeholders})
            GROUP BY note_id
            HAVING COUNT(*) = ?
            ORDER BY title_hits DESC, occurrences DESC, note_id ASC
        """, (*tokens, len(tokens))).fetchall()
        return [row[0] for row in rows]

    def rebuild(self, conn: sqlite3.Connection) -> int:
        """Drop all terms and re-derive them from the notes table. Returns note count."""
        conn.execute("DELETE FROM search_terms")
        notes = conn.execute("SELECT id, title, content FROM notes ORDER BY id").fetchall()
        for note_id, title, content in notes:
            self.index(conn, note_id, title, content)
        logger.info(f"Rebuilt search index for {len(notes)} notes")
        return len(notes)
