"""Database models for drive app."""

import uuid
from datetime import datetime
from typing import Any, Final, final, override

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.dateparse import parse_datetime

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_PATH_MAX_LENGTH: Final = 1024
_OBJECT_TYPE_MAX_LENGTH: Final = 64
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHOICE_MAX_LENGTH: Final = 16

ROOT_PATH: Final = '/'
FOLDER_MIME_TYPE: Final = 'application/x-directory'

# Default quota: 5 GB in bytes
DEFAULT_STORAGE_LIMIT: Final = 5 * 1024 * 1024 * 1024


class Location(models.TextChoices):
    """Trash state of a record; both live in the same bucket."""

    DRIVE = 'Drive', 'Drive'
    BIN = 'Bin', 'Bin'


class AuthProvider(models.TextChoices):
    """How the account signed up; selects the blob key prefix."""

    LOCAL = 'local', 'Local'
    GOOGLE = 'google', 'Google'


@final
class FileRecord(models.Model):
    """File or folder in a user's virtual tree.

    The blob key is never stored: it is derived from owner, auth
    provider, location, object_path and object_name, so renames and
    bin moves only touch these columns plus the bucket.

    object_path is always normalized to '/' or '/a/b/' (leading and
    trailing slash). The root of each location is a folder record with
    an empty object_name at '/'.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_files',
        db_index=True,
    )

    object_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        help_text='Leaf name, empty only for location root markers',
    )

    object_path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        default=ROOT_PATH,
        help_text='Normalized virtual directory, e.g. / or /docs/',
    )

    object_type = models.CharField(
        max_length=_OBJECT_TYPE_MAX_LENGTH,
        default='file',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        default='application/octet-stream',
    )

    size = models.BigIntegerField(
        default=0,
        help_text='File size in bytes, 0 for folders',
    )

    is_folder = models.BooleanField(default=False)

    is_deleted = models.BooleanField(default=False)

    location = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=Location.choices,
        default=Location.DRIVE,
    )

    metadata = models.JSONField(default=dict, blank=True)

    last_modified = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File record'  # type: ignore[mutable-override]
        verbose_name_plural = 'File records'  # type: ignore[mutable-override]
        ordering = ['created_at']

        indexes = [
            # Optimize directory listing queries
            models.Index(
                fields=['owner', 'location', 'object_path'],
                name='drive_owner_loc_path_idx',
            ),
        ]

        constraints = [
            # One live record per name in a folder of a location
            models.UniqueConstraint(
                fields=['owner', 'object_path', 'object_name', 'location'],
                condition=models.Q(is_deleted=False),
                name='drive_live_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.location}{self.object_path}{self.object_name}'

    @property
    def is_root_marker(self) -> bool:
        """Whether this is the root folder record of its location."""
        return (
            self.is_folder
            and not self.object_name
            and self.object_path == ROOT_PATH
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict for the cache.

        Returns:
            Field values keyed by attribute name.
        """
        return {
            'id': str(self.id),
            'owner_id': self.owner_id,
            'object_name': self.object_name,
            'object_path': self.object_path,
            'object_type': self.object_type,
            'mime_type': self.mime_type,
            'size': self.size,
            'is_folder': self.is_folder,
            'is_deleted': self.is_deleted,
            'location': self.location,
            'metadata': self.metadata,
            'last_modified': _isoformat(self.last_modified),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> 'FileRecord':
        """Rebuild an unsaved instance from a cache payload.

        Args:
            payload: Dict produced by to_payload().

        Returns:
            FileRecord carrying the cached field values.
        """
        fields = dict(payload)
        fields['id'] = uuid.UUID(fields['id'])
        for field_name in ('last_modified', 'created_at', 'updated_at'):
            raw_value = fields.get(field_name)
            fields[field_name] = parse_datetime(raw_value) if raw_value else None
        return cls(**fields)


def _isoformat(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


@final
class StorageProfile(models.Model):
    """Storage accounting for a user.

    storage_used is a cached aggregate of the owner's non-deleted
    records (Drive and Bin both count). It is recomputed after every
    size-changing operation, never incremented in place.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='storage_profile',
        primary_key=True,
    )

    auth_provider = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=AuthProvider.choices,
        default=AuthProvider.LOCAL,
    )

    storage_limit = models.BigIntegerField(
        default=DEFAULT_STORAGE_LIMIT,
        help_text='Storage quota limit in bytes',
    )

    storage_used = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    last_storage_update = models.DateTimeField(null=True, blank=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Storage profile'  # type: ignore[mutable-override]
        verbose_name_plural = 'Storage profiles'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(storage_limit__gte=0),
                name='storage_limit_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(storage_used__gte=0),
                name='storage_used_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}: {self.storage_used}/{self.storage_limit}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.storage_used + size_bytes <= self.storage_limit

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        return max(0, self.storage_limit - self.storage_used)
