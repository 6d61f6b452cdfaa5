"""Management command to recompute stored storage usage."""

from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.infrastructure.accounts import DjangoUserProvider
from server.apps.drive.infrastructure.metadata_store import (
    DjangoMetadataStore,
)
from server.apps.drive.logic.quota_operations import QuotaAccountant
from server.apps.drive.models import StorageProfile


class Command(BaseCommand):
    """Overwrite storage_used with the sum of live record sizes."""

    help = 'Recompute storage_used for every user or one --user-id'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--user-id',
            type=int,
            default=None,
            help='Only resync this user',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the sync command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If --user-id has no storage profile.
        """
        accountant = QuotaAccountant(
            DjangoMetadataStore(),
            DjangoUserProvider(settings.DRIVE_DEFAULT_STORAGE_LIMIT),
            settings.DRIVE_MAX_FILE_SIZE,
        )

        profiles = StorageProfile.objects.order_by('user_id')
        if options['user_id'] is not None:
            profiles = profiles.filter(user_id=options['user_id'])
            if not profiles.exists():
                raise CommandError(
                    f'No storage profile for user {options["user_id"]}',
                )

        changed = 0
        for profile in profiles:
            old_usage = profile.storage_used
            new_usage = accountant.sync_usage(profile.user_id)
            if new_usage != old_usage:
                changed += 1
                self.stdout.write(
                    f'User {profile.user_id}: {old_usage} -> {new_usage} bytes',
                )

        self.stdout.write(
            self.style.SUCCESS(f'Synced storage usage, {changed} changed'),
        )
