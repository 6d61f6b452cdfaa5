"""Django ORM implementation of the metadata store."""

import logging
from typing import Any, final

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from server.apps.drive.models import ROOT_PATH, FileRecord, Location

logger = logging.getLogger(__name__)


@final
class DjangoMetadataStore:
    """File record CRUD and path queries over the FileRecord table.

    Database errors are not caught here: they are the authoritative
    outcome of an operation and propagate to the caller.
    """

    def insert(self, **fields: Any) -> FileRecord:
        """Create a record.

        Args:
            fields: FileRecord field values (owner_id, object_name, ...).

        Returns:
            Saved FileRecord.

        Raises:
            IntegrityError: If a live record with the same name exists.
        """
        with transaction.atomic():
            record = FileRecord.objects.create(**fields)
        logger.debug('Inserted file record %s', record.id)
        return record

    def update(self, record_id: object, **fields: Any) -> FileRecord | None:
        """Update fields of a record and bump updated_at.

        Args:
            record_id: Record ID.
            fields: Field values to change.

        Returns:
            Updated FileRecord, or None if it does not exist.
        """
        record = self.find_by_id(record_id)
        if record is None:
            return None

        for field_name, field_value in fields.items():
            setattr(record, field_name, field_value)
        with transaction.atomic():
            record.save(update_fields=[*fields, 'updated_at'])
        return record

    def delete(self, record_id: object) -> bool:
        """Delete a record.

        Args:
            record_id: Record ID.

        Returns:
            True if a row was removed.
        """
        try:
            deleted, _ = FileRecord.objects.filter(id=record_id).delete()
        except ValidationError:
            return False
        return deleted > 0

    def find_by_id(self, record_id: object) -> FileRecord | None:
        """Fetch a record by ID.

        Args:
            record_id: Record ID (UUID or its string form).

        Returns:
            FileRecord, or None for unknown or malformed IDs.
        """
        try:
            return FileRecord.objects.filter(id=record_id).first()
        except ValidationError:
            logger.warning('Malformed file id: %r', record_id)
            return None

    def find_by_path(
        self,
        owner_id: object,
        path: str,
        location: str,
    ) -> list[FileRecord]:
        """List live records directly inside a directory.

        Args:
            owner_id: Owning user ID.
            path: Normalized directory path.
            location: 'Drive' or 'Bin'.

        Returns:
            Records ordered by creation time.
        """
        return list(
            FileRecord.objects.filter(
                owner_id=owner_id,
                object_path=path,
                location=location,
                is_deleted=False,
            ),
        )

    def find_by_name_and_path(
        self,
        owner_id: object,
        name: str,
        path: str,
        location: str,
    ) -> FileRecord | None:
        """Find the live record holding a name in a directory.

        Args:
            owner_id: Owning user ID.
            name: Leaf name.
            path: Normalized directory path.
            location: 'Drive' or 'Bin'.

        Returns:
            FileRecord, or None if the name is free.
        """
        return FileRecord.objects.filter(
            owner_id=owner_id,
            object_name=name,
            object_path=path,
            location=location,
            is_deleted=False,
        ).first()

    def find_in_location(
        self,
        owner_id: object,
        location: str,
    ) -> list[FileRecord]:
        """List every live record of an owner in a location.

        Args:
            owner_id: Owning user ID.
            location: 'Drive' or 'Bin'.

        Returns:
            Records, root marker included.
        """
        return list(
            FileRecord.objects.filter(
                owner_id=owner_id,
                location=location,
                is_deleted=False,
            ),
        )

    def sum_size(self, owner_id: object) -> int:
        """Total bytes of an owner's live records in every location."""
        return FileRecord.objects.filter(
            owner_id=owner_id,
            is_deleted=False,
        ).aggregate(total=Sum('size'))['total'] or 0

    def count_files(self, owner_id: object) -> int:
        """Number of an owner's live non-folder records."""
        return FileRecord.objects.filter(
            owner_id=owner_id,
            is_deleted=False,
            is_folder=False,
        ).count()

    def delete_bin_contents(self, owner_id: object) -> int:
        """Delete every Bin record except the Bin root marker.

        Args:
            owner_id: Owning user ID.

        Returns:
            Number of records removed.
        """
        deleted, _ = FileRecord.objects.filter(
            owner_id=owner_id,
            location=Location.BIN,
        ).exclude(
            object_name='',
            object_path=ROOT_PATH,
            is_folder=True,
        ).delete()
        return deleted

    def delete_by_owner(self, owner_id: object) -> int:
        """Delete every record of an owner, root markers included."""
        deleted, _ = FileRecord.objects.filter(owner_id=owner_id).delete()
        return deleted
