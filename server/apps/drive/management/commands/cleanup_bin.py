"""Management command to purge old files from the Bin."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.drive.models import ROOT_PATH, FileRecord, Location
from server.apps.drive.services import build_lifecycle_engine

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Permanently delete records that sat in the Bin past retention."""

    help = 'Purge Bin records older than DRIVE_BIN_RETENTION_DAYS'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max files to process (default: {_DEFAULT_BATCH_SIZE})',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Override the retention period in days',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        retention_days = options['days'] or settings.DRIVE_BIN_RETENTION_DAYS

        # Moving to the Bin bumps updated_at, so it marks the binning time
        cutoff = timezone.now() - timedelta(days=retention_days)
        self.stdout.write(
            f'Looking for Bin files untouched since {cutoff} '
            f'(older than {retention_days} days)',
        )

        expired = FileRecord.objects.filter(
            location=Location.BIN,
            is_deleted=False,
            updated_at__lte=cutoff,
        ).exclude(
            object_name='',
            object_path=ROOT_PATH,
        ).order_by('updated_at')[:batch_size]

        engine = None if dry_run else build_lifecycle_engine()
        count = 0
        failed = 0

        for record in expired:
            if engine is None:
                self.stdout.write(
                    f'Would delete: {record.object_path}{record.object_name} '
                    f'(user: {record.owner_id}, binned: {record.updated_at})',
                )
                count += 1
                continue

            try:
                result = engine.delete_forever(record.id, record.owner_id)
            except Exception as exc:
                self.stderr.write(f'Failed to delete {record.id}: {exc}')
                logger.exception('Failed to purge Bin record: %s', record.id)
                failed += 1
                continue

            if result.ok:
                count += 1
                logger.info('Purged Bin record %s', record.id)
            else:
                self.stderr.write(
                    f'Failed to delete {record.id}: {result.reason}',
                )
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} files from Bin'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} files from Bin, {failed} failed',
                ),
            )
