"""Tests for the S3 blob storage backend."""

import pytest
from botocore.exceptions import ClientError

from server.apps.drive.exceptions import BlobNotFoundError, BlobStorageError
from server.apps.drive.models import FOLDER_MIME_TYPE


def _keys(bucket):
    return {obj.key for obj in bucket.objects.all()}


class TestPutAndGet:
    """Tests for put_object, get_object and stat_object."""

    def test_put_object_with_headers(self, blob_storage, bucket):
        """Test content type and user metadata reach S3."""
        blob_storage.put_object(
            'Local Users/1/Drive/a.txt',
            b'hello',
            5,
            {
                'Content-Type': 'text/plain',
                'x-amz-meta-owner-id': '1',
                'x-amz-meta-object-type': 'file',
            },
        )

        stored = bucket.Object('Local Users/1/Drive/a.txt')
        assert stored.content_type == 'text/plain'
        assert stored.metadata == {'owner-id': '1', 'object-type': 'file'}

    def test_get_object(self, blob_storage):
        """Test bytes and headers come back."""
        blob_storage.put_object('k.txt', b'hello', 5, {'Content-Type': 'text/plain'})

        stream, headers = blob_storage.get_object('k.txt')

        assert stream.read() == b'hello'
        assert headers['Content-Type'] == 'text/plain'
        assert headers['Content-Length'] == 5

    def test_get_missing_object(self, blob_storage):
        """Test a missing key raises BlobNotFoundError."""
        with pytest.raises(BlobNotFoundError):
            blob_storage.get_object('missing.txt')

    def test_stat_object(self, blob_storage):
        """Test stat returns headers with user metadata."""
        blob_storage.put_object(
            'k.txt',
            b'hello',
            5,
            {'Content-Type': 'text/plain', 'x-amz-meta-owner-id': '9'},
        )

        headers = blob_storage.stat_object('k.txt')

        assert headers['x-amz-meta-owner-id'] == '9'

    def test_stat_missing_object(self, blob_storage):
        """Test stat of a missing key is None."""
        assert blob_storage.stat_object('missing.txt') is None

    def test_put_failure_is_wrapped(self, blob_storage, monkeypatch):
        """Test boto errors become BlobStorageError."""
        def failing_put(**kwargs):
            raise ClientError(
                {'Error': {'Code': 'InternalError', 'Message': 'boom'}},
                'PutObject',
            )

        monkeypatch.setattr(blob_storage.client, 'put_object', failing_put)

        with pytest.raises(BlobStorageError):
            blob_storage.put_object('k.txt', b'x', 1, {})


class TestCopyMoveDelete:
    """Tests for copy_object, move_object and delete_object."""

    def test_copy_object(self, blob_storage, bucket):
        """Test both keys exist after a copy."""
        bucket.put_object(Key='a.txt', Body=b'data')

        blob_storage.copy_object('a.txt', 'b.txt')

        assert {'a.txt', 'b.txt'} <= _keys(bucket)

    def test_copy_missing_source(self, blob_storage):
        """Test copying a missing key raises BlobNotFoundError."""
        with pytest.raises(BlobNotFoundError):
            blob_storage.copy_object('missing.txt', 'b.txt')

    def test_move_object(self, blob_storage, bucket):
        """Test the source is gone after a move."""
        bucket.put_object(Key='Drive/a.txt', Body=b'data')

        assert blob_storage.move_object('Drive/a.txt', 'Bin/a.txt')

        assert _keys(bucket) == {'Bin/a.txt'}
        assert bucket.Object('Bin/a.txt').get()['Body'].read() == b'data'

    def test_move_missing_source(self, blob_storage, bucket):
        """Test moving a missing key reports False and writes nothing."""
        assert not blob_storage.move_object('missing.txt', 'b.txt')
        assert not _keys(bucket)

    def test_move_keeps_copy_when_delete_fails(
        self,
        blob_storage,
        bucket,
        monkeypatch,
    ):
        """Test a failed source delete still counts as moved."""
        bucket.put_object(Key='a.txt', Body=b'data')

        def failing_delete(**kwargs):
            raise ClientError(
                {'Error': {'Code': 'InternalError', 'Message': 'boom'}},
                'DeleteObject',
            )

        monkeypatch.setattr(blob_storage.client, 'delete_object', failing_delete)

        assert blob_storage.move_object('a.txt', 'b.txt')
        assert {'a.txt', 'b.txt'} <= _keys(bucket)

    def test_delete_object(self, blob_storage, bucket):
        """Test delete removes the key."""
        bucket.put_object(Key='a.txt', Body=b'data')

        assert blob_storage.delete_object('a.txt')
        assert not _keys(bucket)

    def test_delete_missing_object(self, blob_storage):
        """Test deleting a missing key reports False."""
        assert not blob_storage.delete_object('missing.txt')


class TestBulkOperations:
    """Tests for list_keys and delete_objects."""

    def test_list_keys_recursive(self, blob_storage, bucket):
        """Test every key under the prefix is listed."""
        for key in ('u/1/a', 'u/1/d/b', 'u/1/d/e/c', 'u/2/a'):
            bucket.put_object(Key=key, Body=b'')

        assert set(blob_storage.list_keys('u/1/')) == {
            'u/1/a',
            'u/1/d/b',
            'u/1/d/e/c',
        }

    def test_delete_objects_batches(self, blob_storage, bucket, monkeypatch):
        """Test more than 1000 keys are deleted in several requests."""
        keys = [f'k/{index}' for index in range(1001)]
        for key in keys:
            bucket.put_object(Key=key, Body=b'')
        calls = []
        original = blob_storage.client.delete_objects

        def counting_delete(**kwargs):
            calls.append(len(kwargs['Delete']['Objects']))
            return original(**kwargs)

        monkeypatch.setattr(
            blob_storage.client,
            'delete_objects',
            counting_delete,
        )

        deleted = blob_storage.delete_objects(keys)

        assert deleted == 1001
        assert calls == [1000, 1]
        assert not _keys(bucket)

    def test_delete_objects_empty(self, blob_storage):
        """Test nothing to delete makes no request."""
        assert blob_storage.delete_objects([]) == 0


class TestFoldersAndUrls:
    """Tests for create_folder and presign."""

    def test_create_folder_marker(self, blob_storage, bucket):
        """Test a zero-byte marker with the folder type is written."""
        blob_storage.create_folder('Local Users/1/Drive')

        marker = bucket.Object('Local Users/1/Drive/')
        assert marker.content_length == 0
        assert marker.content_type == FOLDER_MIME_TYPE

    def test_create_folder_is_idempotent(self, blob_storage, bucket):
        """Test an existing marker is left alone."""
        bucket.put_object(Key='x/', Body=b'', Metadata={'keep': 'me'})

        blob_storage.create_folder('x/')

        assert bucket.Object('x/').metadata == {'keep': 'me'}

    def test_presign(self, blob_storage):
        """Test presigned URLs reference the key."""
        url = blob_storage.presign('docs/a.txt', 60)

        assert 'docs/a.txt' in url
        assert 'cloud-drive' in url
