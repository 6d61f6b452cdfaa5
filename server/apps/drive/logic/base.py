"""Shared state and helpers of the file lifecycle engine."""

import logging
from typing import TYPE_CHECKING, Final

from server.apps.drive.logic.invalidation import (
    CacheInvalidator,
    file_key,
)
from server.apps.drive.logic.locks import KeyedLock
from server.apps.drive.logic.paths import PathResolver
from server.apps.drive.logic.quota_operations import QuotaAccountant
from server.apps.drive.logic.results import LifecycleResult, Reason
from server.apps.drive.models import AuthProvider, FileRecord

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.contracts import (
        ActivityTracker,
        BlobStore,
        Cache,
        MetadataStore,
        UserProvider,
    )

# Defaults match the hosted service
DEFAULT_MAX_FILE_SIZE: Final = 25 * 1024 * 1024
DEFAULT_FILE_CACHE_TTL: Final = 300
DEFAULT_LISTING_CACHE_TTL: Final = 300
DEFAULT_STATS_CACHE_TTL: Final = 900
DEFAULT_PRESIGN_TTL: Final = 3600

logger = logging.getLogger(__name__)


class EngineBase:  # noqa: WPS214
    """Collaborators and helpers used by every lifecycle operation.

    All collaborators are passed in explicitly; nothing here reads
    Django settings or module-level registries.
    """

    def __init__(  # noqa: WPS211
        self,
        metadata: 'MetadataStore',
        blobs: 'BlobStore',
        cache: 'Cache',
        users: 'UserProvider',
        *,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        file_cache_ttl: int = DEFAULT_FILE_CACHE_TTL,
        listing_cache_ttl: int = DEFAULT_LISTING_CACHE_TTL,
        stats_cache_ttl: int = DEFAULT_STATS_CACHE_TTL,
        presign_ttl: int = DEFAULT_PRESIGN_TTL,
        locks: KeyedLock | None = None,
        tracker: 'ActivityTracker | None' = None,
    ) -> None:
        """Initialize engine.

        Args:
            metadata: Metadata store (file records).
            blobs: Blob store (bucket).
            cache: Advisory cache.
            users: User provider (auth provider, limit, usage).
            max_file_size: Single-file upload cap in bytes.
            file_cache_ttl: TTL of cached records in seconds.
            listing_cache_ttl: TTL of cached listings in seconds.
            stats_cache_ttl: TTL of cached storage stats in seconds.
            presign_ttl: Default expiry of presigned URLs in seconds.
            locks: Keyed lock shared by engines of one process.
            tracker: Activity counters, none kept when omitted.
        """
        self.metadata = metadata
        self.blobs = blobs
        self.cache = cache
        self.users = users
        self.quota = QuotaAccountant(metadata, users, max_file_size)
        self.invalidator = CacheInvalidator(cache)
        self.locks = locks or KeyedLock()
        self.file_cache_ttl = file_cache_ttl
        self.listing_cache_ttl = listing_cache_ttl
        self.stats_cache_ttl = stats_cache_ttl
        self.presign_ttl = presign_ttl
        self.tracker = tracker

    def track(
        self,
        owner_id: object,
        operation: str,
        file_id: object | None = None,
    ) -> None:
        """Add a completed mutation to the owner's activity."""
        if self.tracker is not None:
            self.tracker.track_operation(owner_id, operation, file_id)

    def count_file_stat(
        self,
        file_id: object,
        stat_name: str,
        user_id: object | None = None,
    ) -> None:
        """Bump a file counter and, given a user, the same user counter."""
        if self.tracker is None:
            return
        self.tracker.increment_file_stat(file_id, stat_name)
        if user_id is not None:
            self.tracker.increment_user_stat(user_id, f'file_{stat_name}')

    def forget_activity(self, file_id: object) -> None:
        """Drop the counters of a permanently deleted record."""
        if self.tracker is not None:
            self.tracker.forget_file(file_id)

    def resolver_for(self, owner_id: object) -> PathResolver:
        """Build a path resolver for an owner.

        Unknown users fall back to the local prefix; this only happens
        for records orphaned by a half-finished account deletion.

        Args:
            owner_id: Owning user ID.

        Returns:
            PathResolver bound to the owner's auth provider.
        """
        profile = self.users.find_by_id(owner_id)
        if profile is None:
            logger.error(
                'User %s not found, using local storage prefix',
                owner_id,
            )
            return PathResolver(owner_id, AuthProvider.LOCAL)
        return PathResolver(owner_id, profile.auth_provider)

    def name_lock_key(
        self,
        owner_id: object,
        location: str,
        object_path: str,
        name: str,
    ) -> str:
        """Lock key of one name slot, shared by creations and renames."""
        return f'name:{owner_id}:{str(location).lower()}:{object_path}{name}'

    def fresh_record(self, file_id: object) -> FileRecord | None:
        """Read a record straight from the metadata store.

        Drops the cached copy first so later cache reads observe the
        write that is about to happen.

        Args:
            file_id: Record ID.

        Returns:
            FileRecord, or None if unknown.
        """
        self.cache.delete(file_key(file_id))
        return self.metadata.find_by_id(file_id)

    def is_owner(self, record: FileRecord, user_id: object) -> bool:
        """Check record ownership, tolerant to int/str IDs."""
        return str(record.owner_id) == str(user_id)

    def name_taken(
        self,
        record: FileRecord,
        name: str,
        location: str,
    ) -> FileRecord | None:
        """Find another live record holding name at the record's path.

        Args:
            record: Record being renamed or moved.
            name: Candidate name.
            location: Location to check.

        Returns:
            The conflicting record, or None.
        """
        existing = self.metadata.find_by_name_and_path(
            record.owner_id,
            name,
            record.object_path,
            location,
        )
        if existing is not None and existing.id == record.id:
            return None
        return existing

    def refusal_for(
        self,
        record: FileRecord | None,
        user_id: object,
    ) -> LifecycleResult | None:
        """Decline operations on missing or foreign records.

        Args:
            record: Freshly read record, None if unknown.
            user_id: Caller.

        Returns:
            Declined result, or None when the caller may proceed.
        """
        if record is None:
            logger.warning('File not found for user %s', user_id)
            return LifecycleResult.declined(Reason.NOT_FOUND)
        if not self.is_owner(record, user_id):
            logger.warning(
                'Access denied to file %s for user %s',
                record.id,
                user_id,
            )
            return LifecycleResult.declined(Reason.ACCESS_DENIED)
        return None
