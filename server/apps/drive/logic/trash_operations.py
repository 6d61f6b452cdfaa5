"""Business logic for Bin (trash) operations and account lifecycle."""

import logging

from django.db import IntegrityError

from server.apps.drive.exceptions import BlobStorageError
from server.apps.drive.logic.base import EngineBase
from server.apps.drive.logic.paths import PathResolver
from server.apps.drive.logic.results import LifecycleResult, Reason
from server.apps.drive.models import (
    FOLDER_MIME_TYPE,
    ROOT_PATH,
    AuthProvider,
    FileRecord,
    Location,
)

logger = logging.getLogger(__name__)


class TrashOperations(EngineBase):  # noqa: WPS214
    """Move to Bin, restore, permanent deletion, bootstrap and teardown."""

    def move_to_bin(self, file_id: object, user_id: object) -> LifecycleResult:
        """Move a Drive record to the Bin.

        The path is kept; only the location and the blob key prefix
        change. Quota is untouched since Bin contents still count.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            Completed, unchanged (already in Bin), declined or failed.
        """
        return self._relocate(file_id, user_id, Location.BIN)

    def restore_file(self, file_id: object, user_id: object) -> LifecycleResult:
        """Move a Bin record back to the Drive.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            Completed, unchanged (already in Drive), declined or failed.
        """
        return self._relocate(file_id, user_id, Location.DRIVE)

    def _relocate(
        self,
        file_id: object,
        user_id: object,
        target: str,
    ) -> LifecycleResult:
        with self.locks.hold(file_id):
            record = self.fresh_record(file_id)
            refusal = self.refusal_for(record, user_id)
            if refusal is not None:
                return refusal

            if record.is_root_marker:
                logger.warning('Root folder %s cannot change location', file_id)
                return LifecycleResult.declined(Reason.INVALID_PATH, record)

            if record.location == target:
                logger.info('File %s is already in %s', file_id, target)
                return LifecycleResult.unchanged(record)

            name_key = self.name_lock_key(
                record.owner_id,
                target,
                record.object_path,
                record.object_name,
            )
            with self.locks.hold(name_key):
                result = self._relocate_record(record, target)

        if result.ok:
            logger.info(
                'File %s moved from %s to %s',
                file_id,
                record.location,
                target,
            )
        return result

    def _relocate_record(  # noqa: WPS231
        self,
        record: FileRecord,
        target: str,
    ) -> LifecycleResult:
        if self.name_taken(record, record.object_name, target):
            logger.warning(
                'File "%s" already exists in %s at %s',
                record.object_name,
                target,
                record.object_path,
            )
            return LifecycleResult.declined(Reason.NAME_CONFLICT, record)

        source = record.location
        resolver = self.resolver_for(record.owner_id)
        source_key = resolver.key_of(record)
        dest_key = resolver.key_of(record, target)
        if not record.is_folder:
            try:
                self._move_blob(source_key, dest_key, record.id)
            except BlobStorageError:
                return LifecycleResult.failed(Reason.STORAGE_ERROR, record)

        try:
            updated = self.metadata.update(record.id, location=target)
        except IntegrityError:
            logger.exception(
                'Move of %s to %s lost a name race',
                record.id,
                target,
            )
            if not record.is_folder:
                self._return_blob(dest_key, source_key)
            return LifecycleResult.declined(Reason.NAME_CONFLICT, record)

        self.invalidator.invalidate_file(
            record.id,
            record.owner_id,
            source,
            target,
        )
        if updated is None:
            logger.error(
                'Record %s vanished during move, blob now at %s',
                record.id,
                dest_key,
            )
            return LifecycleResult.failed(Reason.NOT_FOUND)
        self.track(record.owner_id, 'move', record.id)
        return LifecycleResult.completed(updated)

    def _move_blob(self, source_key: str, dest_key: str, file_id: object) -> None:
        try:
            moved = self.blobs.move_object(source_key, dest_key)
        except BlobStorageError:
            logger.exception(
                'Moving %s -> %s failed, record %s left unchanged',
                source_key,
                dest_key,
                file_id,
            )
            raise
        if not moved:
            logger.warning(
                'Blob %s missing, moving record %s only',
                source_key,
                file_id,
            )

    def _return_blob(self, dest_key: str, source_key: str) -> None:
        try:
            self.blobs.move_object(dest_key, source_key)
        except BlobStorageError:
            logger.exception(
                'Could not move %s back to %s, blob and record disagree',
                dest_key,
                source_key,
            )

    def delete_forever(
        self,
        file_id: object,
        user_id: object,
    ) -> LifecycleResult:
        """Permanently delete a Bin record and its bytes.

        Only reachable through the Bin: Drive records are declined.

        Args:
            file_id: Record ID.
            user_id: Caller; must own the record.

        Returns:
            Completed, declined or failed result.

        Raises:
            DatabaseError: If the metadata store fails.
        """
        with self.locks.hold(file_id):
            record = self.fresh_record(file_id)
            refusal = self.refusal_for(record, user_id)
            if refusal is not None:
                return refusal

            if record.location != Location.BIN:
                logger.warning(
                    'File %s is not in Bin, cannot delete permanently',
                    file_id,
                )
                return LifecycleResult.declined(Reason.NOT_IN_BIN, record)

            if record.is_root_marker:
                return LifecycleResult.declined(Reason.INVALID_PATH, record)

            key = self.resolver_for(record.owner_id).key_of(record)
            try:
                deleted = self.blobs.delete_object(key)
            except BlobStorageError:
                logger.exception(
                    'Deleting %s failed, record %s kept',
                    key,
                    file_id,
                )
                return LifecycleResult.failed(Reason.STORAGE_ERROR, record)
            if not deleted:
                logger.warning('File not found in storage at %s', key)

            self.metadata.delete(record.id)
            self.invalidator.invalidate_file(
                record.id,
                record.owner_id,
                Location.BIN,
            )
            self.quota.sync_usage(record.owner_id)
            self.forget_activity(record.id)
            self.track(record.owner_id, 'delete', record.id)

        logger.info('File %s deleted permanently', file_id)
        return LifecycleResult.completed(record, affected=1)

    def empty_bin(self, owner_id: object) -> LifecycleResult:
        """Permanently delete everything in an owner's Bin.

        Blob deletes are best-effort; the Bin root marker stays.

        Args:
            owner_id: Owning user ID.

        Returns:
            Completed result with the number of removed records.

        Raises:
            DatabaseError: If the metadata store fails.
        """
        with self.locks.hold((owner_id, Location.BIN)):
            records = [
                record
                for record in self.metadata.find_in_location(
                    owner_id,
                    Location.BIN,
                )
                if not record.is_root_marker
            ]
            resolver = self.resolver_for(owner_id)
            for record in records:
                if not record.is_folder:
                    self._discard_best_effort(resolver, record)

            removed = self.metadata.delete_bin_contents(owner_id)
            for record in records:
                self.invalidator.forget_file(record.id)
                self.forget_activity(record.id)
            self.invalidator.invalidate_owner(owner_id, Location.BIN)
            self.quota.sync_usage(owner_id)
            self.track(owner_id, 'empty_bin')

        logger.info('Emptied Bin of user %s: %d records', owner_id, removed)
        return LifecycleResult.completed(affected=removed)

    def _discard_best_effort(
        self,
        resolver: PathResolver,
        record: FileRecord,
    ) -> None:
        key = resolver.key_of(record)
        try:
            if not self.blobs.delete_object(key):
                logger.warning('File not found in storage at %s', key)
        except BlobStorageError:
            logger.exception('Error deleting %s from storage', key)

    def bootstrap_folders(
        self,
        owner_id: object,
        auth_provider: str | None = None,
    ) -> LifecycleResult:
        """Create the blob markers and root records of a new account.

        Safe to re-run: existing markers and root records are kept.
        Sign-up flows that know the provider pass it, so the profile is
        bound to it before any key is derived.

        Args:
            owner_id: Owning user ID.
            auth_provider: 'local' or 'google'; stored provider if None.

        Returns:
            Completed result with the number of root records created.

        Raises:
            ValueError: If auth_provider is not a known provider.
        """
        if auth_provider is None:
            profile = self.users.find_by_id(owner_id)
        elif auth_provider in AuthProvider.values:
            profile = self.users.ensure_profile(owner_id, auth_provider)
        else:
            raise ValueError(f'Unknown auth provider: {auth_provider!r}')

        if profile is None:
            logger.error(
                'User %s not found, using local storage prefix',
                owner_id,
            )
        provider = profile.auth_provider if profile else AuthProvider.LOCAL
        resolver = PathResolver(owner_id, provider)
        markers = [
            resolver.base_prefix,
            resolver.location_prefix(Location.DRIVE),
            resolver.location_prefix(Location.BIN),
        ]
        for marker in markers:
            try:
                self.blobs.create_folder(marker)
            except BlobStorageError:
                logger.exception(
                    'Error creating folder marker %s, continuing',
                    marker,
                )

        is_google = provider == AuthProvider.GOOGLE
        created = 0
        with self.locks.hold((owner_id, 'bootstrap')):
            for location in (Location.DRIVE, Location.BIN):
                if self._ensure_root(owner_id, location, is_google=is_google):
                    created += 1

        logger.info(
            'Verified folder structure for user %s (%d roots created)',
            owner_id,
            created,
        )
        return LifecycleResult.completed(affected=created)

    def _ensure_root(
        self,
        owner_id: object,
        location: str,
        *,
        is_google: bool,
    ) -> bool:
        if self.metadata.find_by_name_and_path(
            owner_id,
            '',
            ROOT_PATH,
            location,
        ):
            logger.debug('%s root already exists for user %s', location, owner_id)
            return False

        try:
            self.metadata.insert(
                owner_id=owner_id,
                object_name='',
                object_path=ROOT_PATH,
                object_type='folder',
                mime_type=FOLDER_MIME_TYPE,
                size=0,
                is_folder=True,
                location=location,
                metadata={
                    'x-amz-meta-object-type': 'folder',
                    'is-google-user': 'true' if is_google else 'false',
                },
            )
        except IntegrityError:
            logger.info('%s root created concurrently for %s', location, owner_id)
            return False
        return True

    def teardown_owner(self, owner_id: object) -> LifecycleResult:
        """Remove every blob, record and cache entry of an account.

        Args:
            owner_id: Owning user ID.

        Returns:
            Completed result with the number of removed records.

        Raises:
            DatabaseError: If the metadata store fails.
        """
        resolver = self.resolver_for(owner_id)
        try:
            keys = list(self.blobs.list_keys(resolver.base_prefix))
            removed_blobs = self.blobs.delete_objects(keys)
        except BlobStorageError:
            logger.exception(
                'Error deleting blobs under %s, continuing',
                resolver.base_prefix,
            )
            removed_blobs = 0

        records = [
            record
            for location in Location
            for record in self.metadata.find_in_location(owner_id, location)
        ]
        removed = self.metadata.delete_by_owner(owner_id)
        for record in records:
            self.invalidator.forget_file(record.id)
            self.forget_activity(record.id)
        self.invalidator.invalidate_owner(owner_id)
        if self.tracker is not None:
            self.tracker.forget_owner(owner_id)
        self.quota.sync_usage(owner_id)

        logger.info(
            'Tore down user %s: %d records, %d blobs',
            owner_id,
            removed,
            removed_blobs,
        )
        return LifecycleResult.completed(affected=removed)
