"""
Error taxonomy for QuickNote.

Every failure the core reports is one of these. Callers that need plain
result values go through Vault.execute, which turns them into CommandResult.
"""


class QuickNoteError(Exception):
    """Base class for all QuickNote errors."""

    retryable = False

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidInput(QuickNoteError):
    """Rejected input: empty content, unknown rating, malformed command or archive."""


class NotFound(QuickNoteError):
    """Unknown note or card id."""


class StorageBusy(QuickNoteError):
    """The vault is locked by another writer. Safe to retry with backoff."""

    retryable = True


class StorageCorrupt(QuickNoteError):
    """Unexpected schema or read failure. Never repaired automatically."""
