"""Business logic for storage quota operations."""

import logging
from typing import TYPE_CHECKING, final

from server.apps.drive.exceptions import FileTooLargeError, QuotaExceededError

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.contracts import (
        MetadataStore,
        UserProvider,
    )

logger = logging.getLogger(__name__)


@final
class QuotaAccountant:
    """Computes, persists and enforces per-user storage usage.

    Usage is always recomputed from the metadata store (Drive and Bin
    both count) and written over storage_used; it is never adjusted
    by deltas.
    """

    def __init__(
        self,
        metadata: 'MetadataStore',
        users: 'UserProvider',
        max_file_size: int,
    ) -> None:
        """Initialize accountant.

        Args:
            metadata: Metadata store collaborator.
            users: User provider collaborator.
            max_file_size: Single-file cap in bytes.
        """
        self._metadata = metadata
        self._users = users
        self._max_file_size = max_file_size

    @property
    def max_file_size(self) -> int:
        """Get the single-file cap in bytes."""
        return self._max_file_size

    def calculate_usage(self, owner_id: object) -> int:
        """Sum the sizes of an owner's live records.

        Args:
            owner_id: Owning user ID.

        Returns:
            Usage in bytes.
        """
        return self._metadata.sum_size(owner_id)

    def sync_usage(self, owner_id: object) -> int:
        """Recompute usage and persist it into storage_used.

        Errors from either store propagate to the caller.

        Args:
            owner_id: Owning user ID.

        Returns:
            New usage in bytes.
        """
        total = self.calculate_usage(owner_id)
        self._users.update_storage_used(owner_id, total)
        logger.info('Synced storage usage for user %s: %d bytes', owner_id, total)
        return total

    def check_upload(self, owner_id: object, size_bytes: int) -> None:
        """Admission control for a new upload.

        Both checks run before any blob is written.

        Args:
            owner_id: Owning user ID.
            size_bytes: Size of the upload.

        Raises:
            FileTooLargeError: If size exceeds the single-file cap.
            QuotaExceededError: If usage plus size exceeds the limit.
        """
        if size_bytes > self._max_file_size:
            logger.warning(
                'Upload too large for user %s: %d > %d bytes',
                owner_id,
                size_bytes,
                self._max_file_size,
            )
            raise FileTooLargeError(
                limit_bytes=self._max_file_size,
                size_bytes=size_bytes,
            )

        profile = self._users.find_by_id(owner_id)
        if profile is None:
            return

        used_bytes = self.calculate_usage(owner_id)
        if used_bytes + size_bytes > profile.storage_limit:
            logger.warning(
                'Quota exceeded for user %s: need %d, have %d available',
                owner_id,
                size_bytes,
                max(0, profile.storage_limit - used_bytes),
            )
            raise QuotaExceededError(
                quota_bytes=profile.storage_limit,
                used_bytes=used_bytes,
                required_bytes=size_bytes,
            )
