"""Custom storage backend for S3-compatible storage."""

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Final, final

from botocore.exceptions import BotoCoreError, ClientError
from storages.backends.s3 import S3Storage

from server.apps.drive.exceptions import BlobNotFoundError, BlobStorageError
from server.apps.drive.models import FOLDER_MIME_TYPE

# S3 DeleteObjects accepts at most 1000 keys per request
_DELETE_BATCH_SIZE: Final = 1000

_NOT_FOUND_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))

_META_PREFIX: Final = 'x-amz-meta-'

logger = logging.getLogger(__name__)


def _is_not_found(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in _NOT_FOUND_CODES


@final
class BlobStorage(S3Storage):
    """S3 storage backend addressed by raw bucket keys.

    Extends django-storages S3Storage with the key-level operations the
    lifecycle engine needs:
    - put/get/stat/copy/move/delete of single objects
    - batched deletes and prefix listing
    - presigned download URLs and zero-byte folder markers

    boto3 errors are logged and re-raised as BlobStorageError; a missing
    key on read raises BlobNotFoundError.
    """

    @property
    def client(self) -> Any:
        """Low-level boto3 S3 client of the storage connection."""
        return self.connection.meta.client

    def put_object(
        self,
        key: str,
        content: bytes,
        size: int,
        headers: dict[str, str],
    ) -> None:
        """Upload bytes under an exact key.

        Args:
            key: Bucket key.
            content: Object bytes.
            size: Content length in bytes.
            headers: Content-Type plus x-amz-meta-* user metadata.

        Raises:
            BlobStorageError: If S3 upload fails.
        """
        user_metadata = {
            header[len(_META_PREFIX):]: header_value
            for header, header_value in headers.items()
            if header.startswith(_META_PREFIX)
        }
        try:
            logger.info('Uploading object to storage: %s', key)
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentLength=size,
                ContentType=headers.get(
                    'Content-Type',
                    'application/octet-stream',
                ),
                Metadata=user_metadata,
            )
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to upload object to storage: %s', key)
            raise BlobStorageError(f'Upload failed: {key}') from error

    def get_object(self, key: str) -> tuple[Any, dict[str, Any]]:
        """Open an object for streaming.

        Args:
            key: Bucket key.

        Returns:
            Tuple of streaming body and headers dict.

        Raises:
            BlobNotFoundError: If the key does not exist.
            BlobStorageError: If S3 download fails.
        """
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as error:
            if _is_not_found(error):
                raise BlobNotFoundError(f'Object not found: {key}') from error
            logger.exception('Failed to download object: %s', key)
            raise BlobStorageError(f'Download failed: {key}') from error
        except BotoCoreError as error:
            logger.exception('Failed to download object: %s', key)
            raise BlobStorageError(f'Download failed: {key}') from error

        return response['Body'], _headers_from(response)

    def stat_object(self, key: str) -> dict[str, Any] | None:
        """Read object headers without the body.

        Args:
            key: Bucket key.

        Returns:
            Headers dict, or None if the key does not exist.

        Raises:
            BlobStorageError: If the HEAD request fails otherwise.
        """
        try:
            response = self.client.head_object(
                Bucket=self.bucket_name,
                Key=key,
            )
        except ClientError as error:
            if _is_not_found(error):
                return None
            logger.exception('Failed to stat object: %s', key)
            raise BlobStorageError(f'Stat failed: {key}') from error
        except BotoCoreError as error:
            logger.exception('Failed to stat object: %s', key)
            raise BlobStorageError(f'Stat failed: {key}') from error

        return _headers_from(response)

    def copy_object(self, source_key: str, dest_key: str) -> None:
        """Server-side copy of one object.

        Args:
            source_key: Existing key.
            dest_key: Key to create or overwrite.

        Raises:
            BlobNotFoundError: If the source key does not exist.
            BlobStorageError: If the copy fails.
        """
        try:
            logger.info('Copying object: %s -> %s', source_key, dest_key)
            self.client.copy_object(
                Bucket=self.bucket_name,
                Key=dest_key,
                CopySource={'Bucket': self.bucket_name, 'Key': source_key},
            )
        except ClientError as error:
            if _is_not_found(error):
                raise BlobNotFoundError(
                    f'Copy source not found: {source_key}',
                ) from error
            logger.exception('Copy failed: %s -> %s', source_key, dest_key)
            raise BlobStorageError(f'Copy failed: {source_key}') from error
        except BotoCoreError as error:
            logger.exception('Copy failed: %s -> %s', source_key, dest_key)
            raise BlobStorageError(f'Copy failed: {source_key}') from error

    def move_object(self, source_key: str, dest_key: str) -> bool:
        """Move/rename an object in S3 storage.

        S3 doesn't support native rename, so this performs a server-side
        copy followed by deletion of the source.

        Note: This operation is not atomic. If copy succeeds but delete
        fails, both objects exist and the source is orphaned; no data
        is lost.

        Args:
            source_key: Existing key.
            dest_key: Target key (overwritten if present).

        Returns:
            True if moved, False if the source did not exist.

        Raises:
            BlobStorageError: If the copy fails.
        """
        if self.stat_object(source_key) is None:
            logger.warning('Move source does not exist: %s', source_key)
            return False

        self.copy_object(source_key, dest_key)
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=source_key)
        except (BotoCoreError, ClientError):
            logger.exception(
                'Moved but failed to delete source (orphaned): %s',
                source_key,
            )
        logger.info('Moved object: %s -> %s', source_key, dest_key)
        return True

    def delete_object(self, key: str) -> bool:
        """Delete one object.

        Args:
            key: Bucket key.

        Returns:
            True if deleted, False if it was already gone.

        Raises:
            BlobStorageError: If S3 delete fails.
        """
        if self.stat_object(key) is None:
            logger.warning('Object not found in storage: %s', key)
            return False

        try:
            logger.info('Deleting object from storage: %s', key)
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to delete object from storage: %s', key)
            raise BlobStorageError(f'Delete failed: {key}') from error
        return True

    def delete_objects(self, keys: Iterable[str]) -> int:
        """Delete many objects in batches.

        Args:
            keys: Bucket keys.

        Returns:
            Number of keys S3 reported as deleted.

        Raises:
            BlobStorageError: If a batch request fails.
        """
        pending = list(keys)
        deleted = 0
        for start in range(0, len(pending), _DELETE_BATCH_SIZE):
            batch = pending[start:start + _DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={
                        'Objects': [{'Key': key} for key in batch],
                        'Quiet': False,
                    },
                )
            except (BotoCoreError, ClientError) as error:
                logger.exception('Batch delete failed (%d keys)', len(batch))
                raise BlobStorageError('Batch delete failed') from error

            for failure in response.get('Errors', []):
                logger.error(
                    'Failed to delete %s: %s',
                    failure.get('Key'),
                    failure.get('Message'),
                )
            deleted += len(response.get('Deleted', []))
        return deleted

    def list_keys(self, prefix: str) -> Iterator[str]:
        """List every key under a prefix, recursively.

        Args:
            prefix: Key prefix (e.g., 'Local Users/42/').

        Yields:
            Bucket keys.

        Raises:
            BlobStorageError: If listing fails.
        """
        paginator = self.client.get_paginator('list_objects_v2')
        try:
            for page in paginator.paginate(
                Bucket=self.bucket_name,
                Prefix=prefix,
            ):
                for entry in page.get('Contents', []):
                    yield entry['Key']
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to list objects under: %s', prefix)
            raise BlobStorageError(f'List failed: {prefix}') from error

    def presign(self, key: str, ttl: int) -> str:
        """Generate a presigned GET URL.

        Args:
            key: Bucket key.
            ttl: Expiry in seconds.

        Returns:
            Presigned URL.

        Raises:
            BlobStorageError: If signing fails.
        """
        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to presign object: %s', key)
            raise BlobStorageError(f'Presign failed: {key}') from error

    def create_folder(self, key: str) -> None:
        """Create a zero-byte folder marker if it is missing.

        Args:
            key: Folder key; a trailing slash is added if absent.

        Raises:
            BlobStorageError: If the marker cannot be written.
        """
        marker = key if key.endswith('/') else f'{key}/'
        if self.stat_object(marker) is not None:
            logger.debug('Folder marker already exists: %s', marker)
            return

        self.put_object(
            marker,
            b'',
            0,
            {
                'Content-Type': FOLDER_MIME_TYPE,
                'x-amz-meta-object-type': 'folder',
            },
        )


def _headers_from(response: dict[str, Any]) -> dict[str, Any]:
    headers: dict[str, Any] = {
        'Content-Type': response.get('ContentType'),
        'Content-Length': response.get('ContentLength'),
        'ETag': response.get('ETag'),
        'Last-Modified': response.get('LastModified'),
    }
    for meta_name, meta_value in response.get('Metadata', {}).items():
        headers[f'{_META_PREFIX}{meta_name}'] = meta_value
    return headers
