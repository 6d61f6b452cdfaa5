"""Tests for duplicate rollback."""

import pytest
from django.db import DatabaseError

from server.apps.drive.exceptions import BlobStorageError
from server.apps.drive.logic.compensation import (
    copy_with_rollback,
    rollback_duplicate,
)
from server.apps.drive.models import FileRecord


class _FailingBlobs:
    def copy_object(self, source_key, dest_key):
        raise BlobStorageError(f'{source_key} -> {dest_key}')


class _FailingMetadata:
    def delete(self, record_id):
        raise DatabaseError('connection lost')


@pytest.fixture
def duplicate(user):
    """Record standing in for a freshly inserted copy."""
    return FileRecord.objects.create(owner=user, object_name='a (1).txt')


@pytest.mark.django_db
class TestRollbackDuplicate:
    """Tests for rollback_duplicate function."""

    def test_removes_record(self, metadata_store, duplicate):
        """Test the copy's record is deleted."""
        assert rollback_duplicate(metadata_store, duplicate)
        assert not FileRecord.objects.filter(id=duplicate.id).exists()

    def test_failing_delete_is_swallowed(self, duplicate):
        """Test a failed rollback reports the orphan instead of raising."""
        assert not rollback_duplicate(_FailingMetadata(), duplicate)


@pytest.mark.django_db
class TestCopyWithRollback:
    """Tests for copy_with_rollback function."""

    def test_successful_copy(self, metadata_store, blob_storage, bucket, user):
        """Test the blob is copied and the record kept."""
        bucket.put_object(Key='src.txt', Body=b'data')
        record = FileRecord.objects.create(owner=user, object_name='copy')

        copied = copy_with_rollback(
            metadata_store,
            blob_storage,
            record,
            'src.txt',
            'dst.txt',
        )

        assert copied
        assert bucket.Object('dst.txt').get()['Body'].read() == b'data'
        assert FileRecord.objects.filter(id=record.id).exists()

    def test_failed_copy_rolls_back(self, metadata_store, duplicate):
        """Test the record disappears when the copy fails."""
        copied = copy_with_rollback(
            metadata_store,
            _FailingBlobs(),
            duplicate,
            'src.txt',
            'dst.txt',
        )

        assert not copied
        assert not FileRecord.objects.filter(id=duplicate.id).exists()

    def test_missing_source_rolls_back(
        self,
        metadata_store,
        blob_storage,
        bucket,
        duplicate,
    ):
        """Test a missing source blob counts as a failed copy."""
        copied = copy_with_rollback(
            metadata_store,
            blob_storage,
            duplicate,
            'missing.txt',
            'dst.txt',
        )

        assert not copied
        assert not FileRecord.objects.filter(id=duplicate.id).exists()
