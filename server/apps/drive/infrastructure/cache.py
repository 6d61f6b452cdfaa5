"""Redis-backed advisory cache for drive records and listings."""

import json
import logging
from typing import Any, final

import redis
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)


@final
class RedisCache:
    """Key-value cache storing JSON payloads in Redis.

    Every method catches Redis and decoding errors, logs them and
    degrades to a miss (or a zero count), so an unreachable Redis
    slows requests down but never fails them.
    """

    def __init__(self, client: redis.Redis) -> None:
        """Initialize cache around a client.

        Args:
            client: redis-py client created with decode_responses=True.
        """
        self._client = client

    def get(self, key: str) -> Any | None:
        """Read and decode a value.

        Args:
            key: Cache key.

        Returns:
            Decoded value, or None on a miss or any cache error.
        """
        try:
            raw_value = self._client.get(key)
        except redis.RedisError:
            logger.exception('Cache get failed: %s', key)
            return None

        if raw_value is None:
            logger.debug('Cache miss: %s', key)
            return None

        try:
            return json.loads(raw_value)
        except ValueError:
            logger.warning('Dropping undecodable cache entry: %s', key)
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Encode and store a value with an expiry.

        Args:
            key: Cache key.
            value: JSON-serializable value (datetimes and UUIDs allowed).
            ttl: Expiry in seconds.
        """
        try:
            self._client.set(
                key,
                json.dumps(value, cls=DjangoJSONEncoder),
                ex=ttl,
            )
        except (redis.RedisError, TypeError):
            logger.exception('Cache set failed: %s', key)

    def delete(self, key: str) -> None:
        """Remove one key.

        Args:
            key: Cache key.
        """
        try:
            self._client.delete(key)
        except redis.RedisError:
            logger.exception('Cache delete failed: %s', key)

    def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob pattern.

        Args:
            pattern: Redis glob (e.g., 'files:42:drive:*').

        Returns:
            Number of keys removed, 0 on cache errors.
        """
        matched = self.keys(pattern)
        if not matched:
            return 0

        try:
            return int(self._client.delete(*matched))
        except redis.RedisError:
            logger.exception('Cache pattern delete failed: %s', pattern)
            return 0

    def keys(self, pattern: str) -> list[str]:
        """List keys matching a glob pattern.

        Uses SCAN so large keyspaces are walked incrementally.

        Args:
            pattern: Redis glob.

        Returns:
            Matching keys, empty on cache errors.
        """
        try:
            return list(self._client.scan_iter(match=pattern))
        except redis.RedisError:
            logger.exception('Cache scan failed: %s', pattern)
            return []
