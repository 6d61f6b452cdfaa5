"""Collaborator contracts consumed by the lifecycle engine.

The engine receives concrete collaborators through its constructor;
these protocols describe the surface it relies on so tests can pass
fakes and production can pass the Django/S3/Redis implementations.
"""

from collections.abc import Iterable, Iterator
from typing import Any, Protocol

from server.apps.drive.models import FileRecord, StorageProfile


class MetadataStore(Protocol):
    """Relational table of file and folder records."""

    def insert(self, **fields: Any) -> FileRecord: ...

    def update(self, record_id: object, **fields: Any) -> FileRecord | None: ...

    def delete(self, record_id: object) -> bool: ...

    def find_by_id(self, record_id: object) -> FileRecord | None: ...

    def find_by_path(
        self,
        owner_id: object,
        path: str,
        location: str,
    ) -> list[FileRecord]: ...

    def find_by_name_and_path(
        self,
        owner_id: object,
        name: str,
        path: str,
        location: str,
    ) -> FileRecord | None: ...

    def find_in_location(
        self,
        owner_id: object,
        location: str,
    ) -> list[FileRecord]: ...

    def sum_size(self, owner_id: object) -> int: ...

    def count_files(self, owner_id: object) -> int: ...

    def delete_bin_contents(self, owner_id: object) -> int: ...

    def delete_by_owner(self, owner_id: object) -> int: ...


class BlobStore(Protocol):
    """Object storage bucket addressed by string keys."""

    def put_object(
        self,
        key: str,
        content: bytes,
        size: int,
        headers: dict[str, str],
    ) -> None: ...

    def get_object(self, key: str) -> tuple[Any, dict[str, Any]]: ...

    def stat_object(self, key: str) -> dict[str, Any] | None: ...

    def copy_object(self, source_key: str, dest_key: str) -> None: ...

    def move_object(self, source_key: str, dest_key: str) -> bool: ...

    def delete_object(self, key: str) -> bool: ...

    def delete_objects(self, keys: Iterable[str]) -> int: ...

    def list_keys(self, prefix: str) -> Iterator[str]: ...

    def presign(self, key: str, ttl: int) -> str: ...

    def create_folder(self, key: str) -> None: ...


class Cache(Protocol):
    """Advisory key-value cache; implementations must not raise."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_pattern(self, pattern: str) -> int: ...

    def keys(self, pattern: str) -> list[str]: ...


class UserProvider(Protocol):
    """Read access to accounts plus the storage_used write."""

    def find_by_id(self, user_id: object) -> StorageProfile | None: ...

    def ensure_profile(
        self,
        user_id: object,
        auth_provider: str,
    ) -> StorageProfile | None: ...

    def update_storage_used(self, user_id: object, used_bytes: int) -> None: ...


class ActivityTracker(Protocol):
    """Best-effort usage analytics; implementations must not raise."""

    def track_operation(
        self,
        owner_id: object,
        operation: str,
        file_id: object | None = None,
    ) -> None: ...

    def increment_file_stat(
        self,
        file_id: object,
        stat_name: str,
        by: int = 1,
    ) -> None: ...

    def increment_user_stat(
        self,
        owner_id: object,
        stat_name: str,
        by: int = 1,
    ) -> None: ...

    def forget_file(self, file_id: object) -> None: ...

    def forget_owner(self, owner_id: object) -> None: ...
