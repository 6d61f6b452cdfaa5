"""User provider backed by Django auth users and storage profiles."""

import logging
from typing import final

from django.contrib.auth import get_user_model
from django.utils import timezone

from server.apps.drive.models import FileRecord, StorageProfile

logger = logging.getLogger(__name__)


@final
class DjangoUserProvider:
    """Exposes the account fields the lifecycle engine reads.

    Profiles are created on demand the first time an existing user is
    looked up.
    """

    def __init__(self, default_limit: int) -> None:
        """Initialize provider.

        Args:
            default_limit: storage_limit given to new profiles.
        """
        self._default_limit = default_limit

    def find_by_id(self, user_id: object) -> StorageProfile | None:
        """Get the storage profile of a user.

        Args:
            user_id: User primary key.

        Returns:
            StorageProfile, or None if the user does not exist.
        """
        user_model = get_user_model()
        if not user_model.objects.filter(pk=user_id).exists():
            return None

        profile, created = StorageProfile.objects.get_or_create(
            user_id=user_id,
            defaults={'storage_limit': self._default_limit},
        )
        if created:
            logger.info(
                'Created storage profile for user %s: %d bytes',
                user_id,
                profile.storage_limit,
            )
        return profile

    def ensure_profile(
        self,
        user_id: object,
        auth_provider: str,
    ) -> StorageProfile | None:
        """Get or create a profile bound to a known auth provider.

        A profile created earlier with another provider is switched
        over as long as the user owns no records yet; after that the
        stored provider wins, since existing blob keys depend on it.

        Args:
            user_id: User primary key.
            auth_provider: 'local' or 'google'.

        Returns:
            StorageProfile, or None if the user does not exist.
        """
        user_model = get_user_model()
        if not user_model.objects.filter(pk=user_id).exists():
            return None

        profile, created = StorageProfile.objects.get_or_create(
            user_id=user_id,
            defaults={
                'storage_limit': self._default_limit,
                'auth_provider': auth_provider,
            },
        )
        if created:
            logger.info(
                'Created %s storage profile for user %s',
                auth_provider,
                user_id,
            )
            return profile
        if profile.auth_provider == auth_provider:
            return profile

        if FileRecord.objects.filter(owner_id=user_id).exists():
            logger.warning(
                'User %s already stores files as %s, keeping it over %s',
                user_id,
                profile.auth_provider,
                auth_provider,
            )
            return profile

        profile.auth_provider = auth_provider
        profile.save(update_fields=['auth_provider'])
        logger.info('Switched user %s to %s storage', user_id, auth_provider)
        return profile

    def update_storage_used(self, user_id: object, used_bytes: int) -> None:
        """Persist a recomputed storage_used value.

        Args:
            user_id: User primary key.
            used_bytes: Authoritative usage in bytes.
        """
        updated = StorageProfile.objects.filter(user_id=user_id).update(
            storage_used=used_bytes,
            last_storage_update=timezone.now(),
        )
        if not updated:
            logger.warning(
                'No storage profile for user %s, usage not persisted',
                user_id,
            )
