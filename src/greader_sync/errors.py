"""Exception taxonomy shared by the store, the remote client and the sync layer.

- ``NotFoundError`` is an expected outcome callers branch on.
- ``UnauthorizedError`` means the remote rejected our token; re-login upstream.
- ``RemoteError`` covers transport failures and malformed responses.
- ``StorageError`` wraps database failures.
- ``CombinedError`` joins per-item failures from a fan-out loop.
"""

from __future__ import annotations


class GReaderSyncError(Exception):
    """Base class for all greader_sync errors."""


class NotFoundError(GReaderSyncError):
    """Requested row does not exist."""


class UnauthorizedError(GReaderSyncError):
    """Remote service rejected the credentials or token."""


class RemoteError(GReaderSyncError):
    """Network failure, unexpected status, or undecodable response."""


class StorageError(GReaderSyncError):
    """Local database write or read could not be completed."""


class SyncCancelledError(GReaderSyncError):
    """A reconciliation pass was interrupted between steps."""


class CombinedError(GReaderSyncError):
    """Several independent failures collected from one batch.

    Args:
        errors: The collected exceptions, in the order they happened.
    """

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(str(e) for e in self.errors))


def join_errors(errors: list[BaseException]) -> None:
    """Raise a ``CombinedError`` holding *errors*, or return if empty."""
    if errors:
        raise CombinedError(errors)
