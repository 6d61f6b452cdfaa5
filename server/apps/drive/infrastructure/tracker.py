"""Redis-backed activity counters for drive files and users.

Keys:
- user:{owner}:file_operations is a list of the newest operations.
- user:{owner}:file_stats counts operations by kind.
- user:{owner}:stats holds per-user counters (e.g., file_downloads).
- file:{id}:stats holds per-file counters (downloads, previews).
"""

import json
import logging
from typing import Any, Final, final

import redis
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

# Length of the per-user operation history
HISTORY_LENGTH: Final = 100

logger = logging.getLogger(__name__)


def operations_key(owner_id: object) -> str:
    """Key of an owner's operation history."""
    return f'user:{owner_id}:file_operations'


def operation_stats_key(owner_id: object) -> str:
    """Key of an owner's per-operation counters."""
    return f'user:{owner_id}:file_stats'


def user_stats_key(owner_id: object) -> str:
    """Key of an owner's usage counters."""
    return f'user:{owner_id}:stats'


def file_stats_key(file_id: object) -> str:
    """Key of a file's usage counters."""
    return f'file:{file_id}:stats'


@final
class RedisActivityTracker:
    """Best-effort analytics kept next to the cache in Redis.

    Like RedisCache, every method logs Redis errors and carries on;
    tracking never decides whether an operation succeeds.
    """

    def __init__(self, client: redis.Redis) -> None:
        """Initialize tracker around a client.

        Args:
            client: redis-py client created with decode_responses=True.
        """
        self._client = client

    def track_operation(
        self,
        owner_id: object,
        operation: str,
        file_id: object | None = None,
    ) -> None:
        """Record one mutation in the owner's history and counters.

        Args:
            owner_id: Owning user ID.
            operation: create, update, move, delete or empty_bin.
            file_id: Record ID, None for owner-wide operations.
        """
        now = timezone.now()
        entry = json.dumps(
            {
                'operation': operation,
                'file_id': None if file_id is None else str(file_id),
                'timestamp': now,
            },
            cls=DjangoJSONEncoder,
        )
        history = operations_key(owner_id)
        counters = operation_stats_key(owner_id)
        try:
            with self._client.pipeline(transaction=False) as pipe:
                pipe.lpush(history, entry)
                pipe.ltrim(history, 0, HISTORY_LENGTH - 1)
                pipe.hincrby(counters, operation, 1)
                pipe.hset(counters, 'last_operation', now.isoformat())
                pipe.execute()
        except redis.RedisError:
            logger.exception(
                'Error tracking %s of %s for user %s',
                operation,
                file_id,
                owner_id,
            )

    def increment_file_stat(
        self,
        file_id: object,
        stat_name: str,
        by: int = 1,
    ) -> None:
        """Bump one counter of a file."""
        self._increment(file_stats_key(file_id), stat_name, by)

    def increment_user_stat(
        self,
        owner_id: object,
        stat_name: str,
        by: int = 1,
    ) -> None:
        """Bump one counter of a user."""
        self._increment(user_stats_key(owner_id), stat_name, by)

    def _increment(self, key: str, stat_name: str, by: int) -> None:
        try:
            self._client.hincrby(key, stat_name, by)
        except redis.RedisError:
            logger.exception('Error incrementing %s in %s', stat_name, key)

    def recent_operations(self, owner_id: object) -> list[dict[str, Any]]:
        """Newest-first operation history of an owner.

        Args:
            owner_id: Owning user ID.

        Returns:
            Decoded history entries, empty on Redis errors.
        """
        try:
            raw_entries = self._client.lrange(operations_key(owner_id), 0, -1)
        except redis.RedisError:
            logger.exception('Error reading history of user %s', owner_id)
            return []

        entries = []
        for raw_entry in raw_entries:
            try:
                entries.append(json.loads(raw_entry))
            except ValueError:
                logger.warning('Skipping undecodable history entry: %r', raw_entry)
        return entries

    def file_stats(self, file_id: object) -> dict[str, int]:
        """Counters of a file, empty on Redis errors."""
        return self._counters(file_stats_key(file_id))

    def user_stats(self, owner_id: object) -> dict[str, int]:
        """Usage counters of a user, empty on Redis errors."""
        return self._counters(user_stats_key(owner_id))

    def _counters(self, key: str) -> dict[str, int]:
        try:
            raw_counters = self._client.hgetall(key)
        except redis.RedisError:
            logger.exception('Error reading counters %s', key)
            return {}
        return {name: int(count) for name, count in raw_counters.items()}

    def forget_file(self, file_id: object) -> None:
        """Drop the counters of a permanently deleted file."""
        try:
            self._client.delete(file_stats_key(file_id))
        except redis.RedisError:
            logger.exception('Error dropping stats of file %s', file_id)

    def forget_owner(self, owner_id: object) -> None:
        """Drop every activity key of a removed account."""
        try:
            self._client.delete(
                operations_key(owner_id),
                operation_stats_key(owner_id),
                user_stats_key(owner_id),
            )
        except redis.RedisError:
            logger.exception('Error dropping activity of user %s', owner_id)
