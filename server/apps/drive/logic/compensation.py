"""Compensating action for duplicating a file across both stores.

Duplicate is the only operation that undoes a completed write: the new
metadata record is inserted first, and if the blob copy then fails the
record is deleted again so no listing shows a file without bytes.
"""

import logging
from typing import TYPE_CHECKING

from server.apps.drive.exceptions import BlobStorageError

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.contracts import (
        BlobStore,
        MetadataStore,
    )
    from server.apps.drive.models import FileRecord

logger = logging.getLogger(__name__)


def rollback_duplicate(
    metadata: 'MetadataStore',
    record: 'FileRecord',
) -> bool:
    """Delete the metadata record of a failed duplicate.

    Best-effort: a failing delete is logged and leaves an orphan record
    for an operator to reconcile.

    Args:
        metadata: Metadata store collaborator.
        record: Record inserted for the copy.

    Returns:
        True if the record was removed.
    """
    try:
        removed = metadata.delete(record.id)
    except Exception:
        logger.exception(
            'Failed to roll back duplicate record (orphaned): %s',
            record.id,
        )
        return False

    logger.info('Rolled back duplicate record %s', record.id)
    return removed


def copy_with_rollback(
    metadata: 'MetadataStore',
    blobs: 'BlobStore',
    record: 'FileRecord',
    source_key: str,
    dest_key: str,
) -> bool:
    """Copy the blob of a freshly inserted duplicate record.

    Args:
        metadata: Metadata store collaborator.
        blobs: Blob store collaborator.
        record: Record already inserted for the copy.
        source_key: Key of the original blob.
        dest_key: Key of the copy.

    Returns:
        True if the copy succeeded; False after rolling back the record.
    """
    try:
        blobs.copy_object(source_key, dest_key)
    except BlobStorageError:
        logger.exception(
            'Duplicate blob copy failed: %s -> %s',
            source_key,
            dest_key,
        )
        rollback_duplicate(metadata, record)
        return False
    return True
