"""Business logic for creating, renaming, copying and reading files."""

import logging
import re
from collections.abc import Iterable
from typing import Any, Final

from django.db import DatabaseError, IntegrityError
from django.utils import timezone

from server.apps.drive.exceptions import (
    AccessDeniedError,
    BlobStorageError,
    FileRecordNotFoundError,
    FileTooLargeError,
    InvalidNameError,
    InvalidPathError,
    QuotaExceededError,
    UserNotFoundError,
)
from server.apps.drive.infrastructure.metadata import (
    calculate_checksum,
    detect_mime_type,
    object_type_for,
    preview_kind,
)
from server.apps.drive.logic.base import EngineBase
from server.apps.drive.logic.compensation import copy_with_rollback
from server.apps.drive.logic.invalidation import (
    file_key,
    listing_key,
    storage_stats_key,
)
from server.apps.drive.logic.paths import (
    normalize_path,
    split_extension,
    validate_object_name,
)
from server.apps.drive.logic.results import (
    FileDownload,
    FilePreview,
    LifecycleResult,
    Reason,
)
from server.apps.drive.models import (
    FOLDER_MIME_TYPE,
    ROOT_PATH,
    FileRecord,
    Location,
)

_OBJECT_TYPE_META: Final = 'x-amz-meta-object-type'

# Preview kinds served through a presigned URL
_URL_PREVIEW_KINDS: Final = frozenset(('image', 'pdf', 'audio', 'video'))

logger = logging.getLogger(__name__)


def preserve_extension(old_name: str, new_name: str) -> str:
    """Carry the old extension over to a new name that has none.

    'report.pdf' renamed to 'summary' becomes 'summary.pdf'; a new name
    that already ends with the extension or has its own dot is kept.

    Args:
        old_name: Current file name.
        new_name: Requested file name.

    Returns:
        Final file name.
    """
    if '.' not in old_name or old_name.startswith('.'):
        return new_name

    extension = old_name[old_name.rfind('.'):]
    if new_name.endswith(extension) or '.' in new_name:
        return new_name
    return f'{new_name}{extension}'


def next_copy_name(
    name: str,
    sibling_names: Iterable[str],
    *,
    is_folder: bool = False,
) -> str:
    """Pick the name for a duplicate: 'base (n)ext'.

    n is one more than the highest existing suffix among siblings with
    the same base, whatever their extension: 'report (5).txt' makes
    the next copy of 'report.pdf' 'report (6).pdf'.

    Args:
        name: Name of the file being duplicated.
        sibling_names: Names already present in the same directory.
        is_folder: Folder names never have an extension.

    Returns:
        Name like 'report (3).pdf'.
    """
    base, extension = ('', '') if is_folder else split_extension(name)
    if is_folder or not extension:
        base = name

    pattern = re.compile(rf'^{re.escape(base)}\s*\((\d+)\)$')
    highest = 0
    for sibling in sibling_names:
        if extension:
            if '.' not in sibling:
                continue
            sibling = sibling[:sibling.rfind('.')]
        match = pattern.match(sibling)
        if match:
            highest = max(highest, int(match.group(1)))

    return f'{base} ({highest + 1}){extension}'


class FileOperations(EngineBase):  # noqa: WPS214
    """Upload, folder creation, rename, duplicate and the read path."""

    def upload_file(  # noqa: WPS211
        self,
        owner_id: object,
        content: bytes,
        name: str,
        path: str = ROOT_PATH,
        *,
        mime_type: str | None = None,
        extra_metadata: dict[str, Any] | None = None,
    ) -> LifecycleResult:
        """Store a new file in the owner's Drive.

        Every check (name, conflict, size cap, quota) runs before the
        blob is written, so a declined upload changes nothing.

        Args:
            owner_id: Owning user ID.
            content: File bytes.
            name: File name.
            path: Virtual directory (normalized here).
            mime_type: Declared Content-Type.
            extra_metadata: Client metadata kept on the record.

        Returns:
            Completed result with the new record, or declined/failed.

        Raises:
            DatabaseError: If the metadata store fails.
        """
        try:
            object_path = normalize_path(path)
            validate_object_name(name)
        except InvalidPathError:
            logger.warning('Upload declined, invalid path: %r', path)
            return LifecycleResult.declined(Reason.INVALID_PATH)
        except InvalidNameError:
            logger.warning('Upload declined, invalid name: %r', name)
            return LifecycleResult.declined(Reason.INVALID_NAME)

        size = len(content)
        name_key = self.name_lock_key(
            owner_id,
            Location.DRIVE,
            object_path,
            name,
        )
        with self.locks.hold(name_key):
            if self.metadata.find_by_name_and_path(
                owner_id,
                name,
                object_path,
                Location.DRIVE,
            ):
                logger.warning(
                    'File "%s" already exists at %s for user %s',
                    name,
                    object_path,
                    owner_id,
                )
                return LifecycleResult.declined(Reason.NAME_CONFLICT)

            try:
                self.quota.check_upload(owner_id, size)
            except FileTooLargeError:
                return LifecycleResult.declined(Reason.FILE_TOO_LARGE)
            except QuotaExceededError:
                return LifecycleResult.declined(Reason.QUOTA_EXCEEDED)

            resolved_mime = detect_mime_type(name, mime_type)
            key = self.resolver_for(owner_id).key_for(
                Location.DRIVE,
                object_path,
                name,
            )
            try:
                self.blobs.put_object(
                    key,
                    content,
                    size,
                    {
                        'Content-Type': resolved_mime,
                        'x-amz-meta-owner-id': str(owner_id),
                        _OBJECT_TYPE_META: 'file',
                    },
                )
            except BlobStorageError:
                logger.exception('Upload of %s failed in storage', key)
                return LifecycleResult.failed(Reason.STORAGE_ERROR)

            record = self._insert_uploaded(
                owner_id,
                key,
                name=name,
                object_path=object_path,
                mime_type=resolved_mime,
                size=size,
                metadata={
                    **(extra_metadata or {}),
                    _OBJECT_TYPE_META: 'file',
                    'checksum_sha256': calculate_checksum(content),
                },
            )
            if record is None:
                return LifecycleResult.declined(Reason.NAME_CONFLICT)

            self.quota.sync_usage(owner_id)
            self.invalidator.invalidate_owner(owner_id, Location.DRIVE)
            self.track(owner_id, 'create', record.id)

        logger.info('Uploaded %s (%d bytes) as %s', key, size, record.id)
        return LifecycleResult.completed(record)

    def _insert_uploaded(  # noqa: WPS211
        self,
        owner_id: object,
        key: str,
        *,
        name: str,
        object_path: str,
        mime_type: str,
        size: int,
        metadata: dict[str, Any],
    ) -> FileRecord | None:
        try:
            return self.metadata.insert(
                owner_id=owner_id,
                object_name=name,
                object_path=object_path,
                object_type=object_type_for(mime_type),
                mime_type=mime_type,
                size=size,
                is_folder=False,
                location=Location.DRIVE,
                metadata=metadata,
                last_modified=timezone.now(),
            )
        except IntegrityError:
            # A concurrent upload won the name; the blob key is the
            # winner's too, so the object stays.
            logger.warning('Lost upload race for %s', key)
            return None
        except DatabaseError:
            logger.exception('Record insert failed, removing blob %s', key)
            self._discard_blob(key)
            raise

    def _discard_blob(self, key: str) -> None:
        try:
            self.blobs.delete_object(key)
        except BlobStorageError:
            logger.exception('Failed to remove blob (orphaned): %s', key)

    def create_folder(
        self,
        owner_id: object,
        name: str,
        path: str = ROOT_PATH,
    ) -> LifecycleResult:
        """Create an empty folder in the owner's Drive.

        Args:
            owner_id: Owning user ID.
            name: Folder name.
            path: Parent directory.

        Returns:
            Completed result with the folder record, or declined/failed.
        """
        try:
            object_path = normalize_path(path)
            validate_object_name(name)
        except InvalidPathError:
            return LifecycleResult.declined(Reason.INVALID_PATH)
        except InvalidNameError:
            return LifecycleResult.declined(Reason.INVALID_NAME)

        name_key = self.name_lock_key(
            owner_id,
            Location.DRIVE,
            object_path,
            name,
        )
        with self.locks.hold(name_key):
            if self.metadata.find_by_name_and_path(
                owner_id,
                name,
                object_path,
                Location.DRIVE,
            ):
                logger.warning('Folder "%s" already exists at %s', name, path)
                return LifecycleResult.declined(Reason.NAME_CONFLICT)

            key = self.resolver_for(owner_id).key_for(
                Location.DRIVE,
                object_path,
                name,
                is_folder=True,
            )
            try:
                self.blobs.create_folder(key)
            except BlobStorageError:
                logger.exception('Folder marker %s could not be written', key)
                return LifecycleResult.failed(Reason.STORAGE_ERROR)

            try:
                record = self.metadata.insert(
                    owner_id=owner_id,
                    object_name=name,
                    object_path=object_path,
                    object_type='folder',
                    mime_type=FOLDER_MIME_TYPE,
                    size=0,
                    is_folder=True,
                    location=Location.DRIVE,
                    metadata={_OBJECT_TYPE_META: 'folder'},
                )
            except IntegrityError:
                logger.warning('Lost folder creation race for %s', key)
                return LifecycleResult.declined(Reason.NAME_CONFLICT)

            self.invalidator.invalidate_owner(owner_id, Location.DRIVE)
            self.track(owner_id, 'create', record.id)

        logger.info('Created folder %s as %s', key, record.id)
        return LifecycleResult.completed(record)

    def rename_file(
        self,
        file_id: object,
        user_id: object,
        new_name: str,
    ) -> LifecycleResult:
        """Rename a file or folder within its directory and location.

        Non-folder blobs are moved to the new key first; the record is
        only updated once the bytes are in place. Folder children are
        not re-keyed. Root markers cannot be renamed.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.
            new_name: Requested name (old extension kept if omitted).

        Returns:
            Completed, unchanged (same name), declined or failed result.
        """
        with self.locks.hold(file_id):
            record = self.fresh_record(file_id)
            refusal = self.refusal_for(record, user_id)
            if refusal is not None:
                return refusal

            if record.is_root_marker:
                logger.warning('Root folder %s cannot be renamed', file_id)
                return LifecycleResult.declined(Reason.INVALID_PATH, record)

            try:
                validate_object_name(new_name)
            except InvalidNameError:
                return LifecycleResult.declined(Reason.INVALID_NAME, record)

            if not record.is_folder:
                new_name = preserve_extension(record.object_name, new_name)
            if new_name == record.object_name:
                logger.debug('File %s already named "%s"', file_id, new_name)
                return LifecycleResult.unchanged(record)

            name_key = self.name_lock_key(
                record.owner_id,
                record.location,
                record.object_path,
                new_name,
            )
            with self.locks.hold(name_key):
                result = self._rename_record(record, new_name)

        if result.ok:
            logger.info(
                'File %s renamed from "%s" to "%s"',
                file_id,
                record.object_name,
                new_name,
            )
        return result

    def _rename_record(  # noqa: WPS231
        self,
        record: FileRecord,
        new_name: str,
    ) -> LifecycleResult:
        if self.name_taken(record, new_name, record.location):
            logger.warning(
                'A file named "%s" already exists at %s',
                new_name,
                record.object_path,
            )
            return LifecycleResult.declined(Reason.NAME_CONFLICT, record)

        resolver = self.resolver_for(record.owner_id)
        source_key = resolver.key_of(record)
        dest_key = resolver.key_for(
            record.location,
            record.object_path,
            new_name,
            is_folder=record.is_folder,
        )
        if not record.is_folder:
            try:
                moved = self.blobs.move_object(source_key, dest_key)
            except BlobStorageError:
                logger.exception(
                    'Rename failed in storage (%s -> %s), '
                    'record %s left unchanged',
                    source_key,
                    dest_key,
                    record.id,
                )
                return LifecycleResult.failed(Reason.STORAGE_ERROR, record)
            if not moved:
                logger.warning(
                    'Blob %s missing, renaming record %s only',
                    source_key,
                    record.id,
                )

        try:
            updated = self.metadata.update(record.id, object_name=new_name)
        except IntegrityError:
            logger.exception(
                'Rename of %s lost a name race after moving %s -> %s',
                record.id,
                source_key,
                dest_key,
            )
            if not record.is_folder:
                self._move_back(dest_key, source_key)
            return LifecycleResult.declined(Reason.NAME_CONFLICT, record)

        self.invalidator.invalidate_file(
            record.id,
            record.owner_id,
            record.location,
        )
        if updated is None:
            logger.error(
                'Record %s vanished during rename, blob now at %s',
                record.id,
                dest_key,
            )
            return LifecycleResult.failed(Reason.NOT_FOUND)
        self.track(record.owner_id, 'update', record.id)
        return LifecycleResult.completed(updated)

    def _move_back(self, dest_key: str, source_key: str) -> None:
        try:
            self.blobs.move_object(dest_key, source_key)
        except BlobStorageError:
            logger.exception(
                'Could not move %s back to %s, blob and record disagree',
                dest_key,
                source_key,
            )

    def duplicate_file(
        self,
        file_id: object,
        user_id: object,
    ) -> LifecycleResult:
        """Copy a file next to itself as 'name (n).ext'.

        The copy's record is inserted before its bytes; a failed blob
        copy deletes that record again.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            Completed result with the copy, or declined/failed.
        """
        with self.locks.hold(file_id):
            record = self.fresh_record(file_id)
            refusal = self.refusal_for(record, user_id)
            if refusal is not None:
                return refusal

            if record.is_root_marker:
                return LifecycleResult.declined(Reason.INVALID_NAME, record)

            siblings = self.metadata.find_by_path(
                record.owner_id,
                record.object_path,
                record.location,
            )
            copy_name = next_copy_name(
                record.object_name,
                (sibling.object_name for sibling in siblings),
                is_folder=record.is_folder,
            )
            logger.debug('Duplicate of %s will be "%s"', file_id, copy_name)

            try:
                duplicate = self.metadata.insert(
                    owner_id=record.owner_id,
                    object_name=copy_name,
                    object_path=record.object_path,
                    object_type=record.object_type,
                    mime_type=record.mime_type,
                    size=record.size,
                    is_folder=record.is_folder,
                    location=record.location,
                    metadata=dict(record.metadata or {}),
                    last_modified=timezone.now(),
                )
            except IntegrityError:
                logger.warning('Duplicate name "%s" taken concurrently', copy_name)
                return LifecycleResult.declined(Reason.NAME_CONFLICT, record)

            if not record.is_folder:
                resolver = self.resolver_for(record.owner_id)
                copied = copy_with_rollback(
                    self.metadata,
                    self.blobs,
                    duplicate,
                    resolver.key_of(record),
                    resolver.key_of(duplicate),
                )
                if not copied:
                    return LifecycleResult.failed(Reason.STORAGE_ERROR, record)

            self.quota.sync_usage(record.owner_id)
            self.invalidator.invalidate_owner(record.owner_id, record.location)
            self.track(record.owner_id, 'create', duplicate.id)

        logger.info('Duplicated %s as %s', file_id, duplicate.id)
        return LifecycleResult.completed(duplicate)

    def get_files_by_path(
        self,
        owner_id: object,
        path: str = ROOT_PATH,
        location: str = Location.DRIVE,
    ) -> list[FileRecord]:
        """List the live records directly inside a directory.

        Root markers and any other empty-named record are left out.
        Results are cached per owner, location and path.

        Args:
            owner_id: Owning user ID.
            path: Virtual directory (normalized here).
            location: 'Drive' or 'Bin'.

        Returns:
            Records ordered by creation time.

        Raises:
            InvalidPathError: If the path cannot be normalized.
        """
        object_path = normalize_path(path)
        cache_key = listing_key(owner_id, location, object_path)
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return [FileRecord.from_payload(payload) for payload in cached]

        records = [
            record
            for record in self.metadata.find_by_path(
                owner_id,
                object_path,
                location,
            )
            if record.object_name.strip()
        ]
        logger.debug(
            'Found %d files for %s at %s',
            len(records),
            location,
            object_path,
        )
        self.cache.set(
            cache_key,
            [record.to_payload() for record in records],
            self.listing_cache_ttl,
        )
        return records

    def get_file_by_id(self, file_id: object) -> FileRecord | None:
        """Get a record, cache first.

        Args:
            file_id: Record ID.

        Returns:
            FileRecord, or None if unknown.
        """
        cache_key = file_key(file_id)
        cached = self.cache.get(cache_key)
        if isinstance(cached, dict):
            return FileRecord.from_payload(cached)

        record = self.metadata.find_by_id(file_id)
        if record is None:
            logger.warning('File not found: %s', file_id)
            return None

        self.cache.set(cache_key, record.to_payload(), self.file_cache_ttl)
        return record

    def download_file(self, file_id: object, user_id: object) -> FileDownload:
        """Open the bytes of a record for streaming.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            FileDownload with stream, record and blob headers.

        Raises:
            FileRecordNotFoundError: If the record does not exist.
            AccessDeniedError: If the caller is not the owner.
            BlobNotFoundError: If the bytes are missing.
        """
        record = self._readable_record(file_id, user_id)
        key = self.resolver_for(record.owner_id).key_of(record)
        logger.debug('Downloading %s from %s', file_id, key)
        stream, headers = self.blobs.get_object(key)
        self.count_file_stat(record.id, 'downloads', user_id)
        return FileDownload(stream=stream, record=record, headers=headers)

    def get_file_url(
        self,
        file_id: object,
        user_id: object,
        ttl: int | None = None,
    ) -> str:
        """Presign a download URL for a record.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.
            ttl: Expiry in seconds, engine default when omitted.

        Returns:
            Presigned URL.

        Raises:
            FileRecordNotFoundError: If the record does not exist.
            AccessDeniedError: If the caller is not the owner.
        """
        record = self._readable_record(file_id, user_id)
        key = self.resolver_for(record.owner_id).key_of(record)
        url = self.blobs.presign(key, ttl or self.presign_ttl)
        self.count_file_stat(record.id, 'url_generations')
        return url

    def preview_file(self, file_id: object, user_id: object) -> FilePreview:
        """Describe how a client should preview a record.

        Text is inlined, media kinds get a presigned URL.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            FilePreview.

        Raises:
            FileRecordNotFoundError: If the record does not exist.
            AccessDeniedError: If the caller is not the owner.
        """
        record = self._readable_record(file_id, user_id)
        kind = preview_kind(record.mime_type)
        url = ''
        content = None
        key = self.resolver_for(record.owner_id).key_of(record)
        if kind in _URL_PREVIEW_KINDS:
            url = self.blobs.presign(key, self.presign_ttl)
        elif kind == 'text':
            stream, _headers = self.blobs.get_object(key)
            try:
                content = stream.read().decode('utf-8', errors='replace')
            finally:
                stream.close()

        self.count_file_stat(record.id, 'previews')
        logger.debug('Generated %s preview for %s', kind, file_id)
        return FilePreview(
            kind=kind,
            name=record.object_name,
            size=record.size,
            url=url,
            content=content,
        )

    def get_storage_stats(self, owner_id: object) -> dict[str, int]:
        """Usage, limit and file count of an owner, cached.

        Args:
            owner_id: Owning user ID.

        Returns:
            Dict with storage_used, storage_limit and file_count.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        cache_key = storage_stats_key(owner_id)
        cached = self.cache.get(cache_key)
        if isinstance(cached, dict):
            return cached

        profile = self.users.find_by_id(owner_id)
        if profile is None:
            raise UserNotFoundError(f'User not found: {owner_id}')

        stats = {
            'storage_used': self.quota.calculate_usage(owner_id),
            'storage_limit': profile.storage_limit,
            'file_count': self.metadata.count_files(owner_id),
        }
        self.cache.set(cache_key, stats, self.stats_cache_ttl)
        return stats

    def _readable_record(self, file_id: object, user_id: object) -> FileRecord:
        record = self.fresh_record(file_id)
        if record is None:
            raise FileRecordNotFoundError(f'File not found: {file_id}')
        if not self.is_owner(record, user_id):
            logger.warning('Access denied to file %s for user %s', file_id, user_id)
            raise AccessDeniedError(f'Access denied: {file_id}')
        return record
