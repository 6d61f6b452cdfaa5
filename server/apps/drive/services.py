"""Wiring of the lifecycle engine from Django settings."""

import redis
from django.conf import settings
from django.core.files.storage import default_storage

from server.apps.drive.infrastructure.accounts import DjangoUserProvider
from server.apps.drive.infrastructure.cache import RedisCache
from server.apps.drive.infrastructure.metadata_store import (
    DjangoMetadataStore,
)
from server.apps.drive.infrastructure.tracker import RedisActivityTracker
from server.apps.drive.logic.lifecycle import FileLifecycleEngine
from server.apps.drive.logic.locks import KeyedLock

# Shared by every engine in the process so per-file locks hold across requests
_LOCKS = KeyedLock()


def build_lifecycle_engine() -> FileLifecycleEngine:
    """Build an engine from the project settings.

    Uses the default storage (BlobStorage) for blobs, one REDIS_URL
    client for the cache and the activity tracker and the DRIVE_*
    settings for limits and TTLs.

    Returns:
        FileLifecycleEngine ready for use.
    """
    redis_client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    return FileLifecycleEngine(
        DjangoMetadataStore(),
        default_storage,
        RedisCache(redis_client),
        DjangoUserProvider(settings.DRIVE_DEFAULT_STORAGE_LIMIT),
        max_file_size=settings.DRIVE_MAX_FILE_SIZE,
        file_cache_ttl=settings.DRIVE_FILE_CACHE_TTL,
        listing_cache_ttl=settings.DRIVE_LISTING_CACHE_TTL,
        stats_cache_ttl=settings.DRIVE_STATS_CACHE_TTL,
        presign_ttl=settings.DRIVE_PRESIGN_TTL,
        locks=_LOCKS,
        tracker=RedisActivityTracker(redis_client),
    )
