"""Signal handlers for drive app."""

import logging
from typing import Final

from django.conf import settings
from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from server.apps.drive.services import build_lifecycle_engine

# Set on a user before its first save by sign-up flows of external
# providers, e.g. user.auth_provider = AuthProvider.GOOGLE
SIGNUP_PROVIDER_ATTRIBUTE: Final = 'auth_provider'

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def bootstrap_user_drive(
    sender: type,
    instance: object,
    created: bool,
    **kwargs: object,
) -> None:
    """Create the Drive and Bin roots of a newly registered user.

    The storage prefix follows the provider found on the instance
    (see SIGNUP_PROVIDER_ATTRIBUTE), local when there is none.

    Args:
        sender: The user model class.
        instance: The saved user.
        created: Whether the row was inserted.
        **kwargs: Additional signal arguments.
    """
    if not created or not settings.DRIVE_LIFECYCLE_SIGNALS:
        return

    auth_provider = getattr(instance, SIGNUP_PROVIDER_ATTRIBUTE, None)
    logger.info(
        'Bootstrapping drive for new user %s (%s)',
        instance.pk,
        auth_provider or 'local',
    )
    build_lifecycle_engine().bootstrap_folders(instance.pk, auth_provider)


@receiver(pre_delete, sender=settings.AUTH_USER_MODEL)
def teardown_user_drive(
    sender: type,
    instance: object,
    **kwargs: object,
) -> None:
    """Remove all files of a user that is being deleted.

    Runs before the cascade so the auth provider (and with it the blob
    prefix) is still readable.

    Args:
        sender: The user model class.
        instance: The user being deleted.
        **kwargs: Additional signal arguments.
    """
    if not settings.DRIVE_LIFECYCLE_SIGNALS:
        return

    logger.info('Tearing down drive of deleted user %s', instance.pk)
    build_lifecycle_engine().teardown_owner(instance.pk)
