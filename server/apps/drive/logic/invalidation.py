"""Cache key layout and invalidation for drive data.

Keys:
- file:{id} holds one record payload.
- files:{owner}:{location}:{path} holds a directory listing.
- user:{owner}:storage_stats holds the storage stats aggregate.

Every mutation drops the touched file key and the listing keys of each
location it read from or wrote to. Cache calls never raise.
"""

import logging
from typing import TYPE_CHECKING, Final, final

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.contracts import Cache

_ALL: Final = '*'

logger = logging.getLogger(__name__)


def file_key(file_id: object) -> str:
    """Cache key of a single record."""
    return f'file:{file_id}'


def listing_key(owner_id: object, location: str, path: str) -> str:
    """Cache key of a directory listing."""
    return f'files:{owner_id}:{location.lower()}:{path}'


def listing_pattern(owner_id: object, location: str | None = None) -> str:
    """Glob matching an owner's listings, optionally in one location."""
    if location is None:
        return f'files:{owner_id}:{_ALL}'
    return f'files:{owner_id}:{location.lower()}:{_ALL}'


def storage_stats_key(owner_id: object) -> str:
    """Cache key of an owner's storage stats."""
    return f'user:{owner_id}:storage_stats'


@final
class CacheInvalidator:
    """Applies the invalidation rules against a cache collaborator."""

    def __init__(self, cache: 'Cache') -> None:
        """Initialize invalidator.

        Args:
            cache: Cache collaborator (errors are handled inside it).
        """
        self._cache = cache

    def forget_file(self, file_id: object) -> None:
        """Drop the cached copy of one record.

        Args:
            file_id: Record ID.
        """
        self._cache.delete(file_key(file_id))

    def invalidate_owner(self, owner_id: object, *locations: str) -> None:
        """Drop an owner's listings and storage stats.

        Args:
            owner_id: Owning user ID.
            locations: Locations touched; none means all of them.
        """
        patterns = [
            listing_pattern(owner_id, location) for location in locations
        ] or [listing_pattern(owner_id)]

        for pattern in patterns:
            removed = self._cache.delete_pattern(pattern)
            logger.debug(
                'Invalidated %d cache keys matching %s',
                removed,
                pattern,
            )

        self._cache.delete(storage_stats_key(owner_id))

    def invalidate_file(
        self,
        file_id: object,
        owner_id: object,
        *locations: str,
    ) -> None:
        """Drop a record together with the listings it appears in.

        Args:
            file_id: Record ID.
            owner_id: Owning user ID.
            locations: Source and destination locations.
        """
        self.forget_file(file_id)
        self.invalidate_owner(owner_id, *locations)
