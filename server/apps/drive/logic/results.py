"""Result values returned by lifecycle operations.

Declined and failed operations are ordinary return values: name
conflicts, quota and missing records are expected user-facing outcomes,
not exceptions.
"""

import enum
from dataclasses import dataclass
from typing import Any, final

from server.apps.drive.models import FileRecord


class Outcome(enum.StrEnum):
    """How a lifecycle operation ended."""

    COMPLETED = 'completed'
    UNCHANGED = 'unchanged'
    DECLINED = 'declined'
    FAILED = 'failed'


class Reason(enum.StrEnum):
    """Why an operation was declined or failed."""

    NOT_FOUND = 'not_found'
    ACCESS_DENIED = 'access_denied'
    NAME_CONFLICT = 'name_conflict'
    INVALID_NAME = 'invalid_name'
    INVALID_PATH = 'invalid_path'
    FILE_TOO_LARGE = 'file_too_large'
    QUOTA_EXCEEDED = 'quota_exceeded'
    NOT_IN_BIN = 'not_in_bin'
    STORAGE_ERROR = 'storage_error'


@final
@dataclass(frozen=True, slots=True)
class LifecycleResult:
    """Outcome of a mutating operation.

    Attributes:
        outcome: Completed, unchanged (no-op), declined or failed.
        record: Resulting record, or the untouched one for no-ops.
        reason: Set for declined and failed outcomes.
        affected: Number of records touched by bulk operations.
    """

    outcome: Outcome
    record: FileRecord | None = None
    reason: Reason | None = None
    affected: int = 0

    @property
    def ok(self) -> bool:
        """Whether the caller got what it asked for."""
        return self.outcome in {Outcome.COMPLETED, Outcome.UNCHANGED}

    @classmethod
    def completed(
        cls,
        record: FileRecord | None = None,
        affected: int = 0,
    ) -> 'LifecycleResult':
        """Build a successful result."""
        return cls(Outcome.COMPLETED, record=record, affected=affected)

    @classmethod
    def unchanged(cls, record: FileRecord) -> 'LifecycleResult':
        """Build a no-op result carrying the current record."""
        return cls(Outcome.UNCHANGED, record=record)

    @classmethod
    def declined(
        cls,
        reason: Reason,
        record: FileRecord | None = None,
    ) -> 'LifecycleResult':
        """Build a result for a rejected precondition."""
        return cls(Outcome.DECLINED, record=record, reason=reason)

    @classmethod
    def failed(
        cls,
        reason: Reason,
        record: FileRecord | None = None,
    ) -> 'LifecycleResult':
        """Build a result for a collaborator failure mid-operation."""
        return cls(Outcome.FAILED, record=record, reason=reason)


@final
@dataclass(frozen=True, slots=True)
class FileDownload:
    """Open blob stream of a record plus the blob headers."""

    stream: Any
    record: FileRecord
    headers: dict[str, Any]


@final
@dataclass(frozen=True, slots=True)
class FilePreview:
    """What a client needs to render a file preview.

    Attributes:
        kind: 'image', 'text', 'pdf', 'audio', 'video' or 'other'.
        name: Record name.
        size: Record size in bytes.
        url: Presigned URL for media kinds, empty otherwise.
        content: Decoded text for the text kind.
    """

    kind: str
    name: str
    size: int
    url: str = ''
    content: str | None = None
