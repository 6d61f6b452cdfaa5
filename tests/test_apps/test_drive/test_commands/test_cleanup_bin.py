"""Tests for cleanup_bin management command."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from server.apps.drive.models import FileRecord, Location, StorageProfile


@pytest.fixture
def command_engine(engine, monkeypatch):
    """Make the command use the test engine."""
    monkeypatch.setattr(
        'server.apps.drive.management.commands.cleanup_bin.build_lifecycle_engine',
        lambda: engine,
    )
    return engine


def _binned(engine, owner, name, size, days_ago):
    record = engine.upload_file(owner.id, b'x' * size, name).record
    engine.move_to_bin(record.id, owner.id)
    FileRecord.objects.filter(id=record.id).update(
        updated_at=timezone.now() - timedelta(days=days_ago),
    )
    return record.id


@pytest.mark.django_db
class TestCleanupBinCommand:
    """Tests for cleanup_bin management command."""

    def test_cleanup_deletes_old_files(self, command_engine, user, bucket):
        """Test cleanup deletes Bin files older than 30 days."""
        file_id = _binned(command_engine, user, 'old.txt', 100, 31)

        out = StringIO()
        call_command('cleanup_bin', stdout=out)

        assert not FileRecord.objects.filter(id=file_id).exists()
        assert StorageProfile.objects.get(user=user).storage_used == 0
        assert f'Local Users/{user.id}/Bin/old.txt' not in {
            obj.key for obj in bucket.objects.all()
        }
        assert 'Purged 1 files from Bin, 0 failed' in out.getvalue()

    def test_cleanup_preserves_recent_files(self, command_engine, user):
        """Test cleanup keeps files binned less than 30 days ago."""
        file_id = _binned(command_engine, user, 'recent.txt', 100, 29)

        out = StringIO()
        call_command('cleanup_bin', stdout=out)

        assert FileRecord.objects.filter(id=file_id).exists()
        assert 'Purged 0 files' in out.getvalue()

    def test_cleanup_ignores_drive_and_roots(self, command_engine, bootstrapped_user):
        """Test Drive files and root markers are never purged."""
        drive = command_engine.upload_file(
            bootstrapped_user.id,
            b'data',
            'keep.txt',
        ).record
        FileRecord.objects.filter(owner=bootstrapped_user).update(
            updated_at=timezone.now() - timedelta(days=90),
        )

        out = StringIO()
        call_command('cleanup_bin', stdout=out)

        assert FileRecord.objects.filter(id=drive.id).exists()
        assert FileRecord.objects.filter(
            owner=bootstrapped_user,
            object_name='',
            location=Location.BIN,
        ).exists()
        assert 'Purged 0 files' in out.getvalue()

    def test_cleanup_batch_limit(self, command_engine, user):
        """Test cleanup respects --batch-size option."""
        for index in range(5):
            _binned(command_engine, user, f'file{index}.txt', 10, 31)

        out = StringIO()
        call_command('cleanup_bin', '--batch-size=2', stdout=out)

        assert FileRecord.objects.filter(owner=user).count() == 3
        assert 'Purged 2 files' in out.getvalue()

    def test_cleanup_days_override(self, command_engine, user):
        """Test --days replaces the configured retention."""
        file_id = _binned(command_engine, user, 'a.txt', 10, 8)

        out = StringIO()
        call_command('cleanup_bin', '--days=7', stdout=out)

        assert not FileRecord.objects.filter(id=file_id).exists()

    def test_cleanup_dry_run(self, command_engine, user):
        """Test cleanup --dry-run doesn't delete."""
        file_id = _binned(command_engine, user, 'test.txt', 100, 31)

        out = StringIO()
        call_command('cleanup_bin', '--dry-run', stdout=out)

        assert FileRecord.objects.filter(id=file_id).exists()
        assert 'Would delete: /test.txt' in out.getvalue()
        assert 'Would purge 1 files from Bin' in out.getvalue()

    def test_cleanup_counts_failures(
        self,
        command_engine,
        user,
        monkeypatch,
    ):
        """Test a failing delete is reported and the rest continue."""
        first = _binned(command_engine, user, 'a.txt', 10, 40)
        second = _binned(command_engine, user, 'b.txt', 10, 35)
        original = command_engine.delete_forever

        def flaky_delete(file_id, user_id):
            if file_id == first:
                raise RuntimeError('storage down')
            return original(file_id, user_id)

        monkeypatch.setattr(command_engine, 'delete_forever', flaky_delete)

        out = StringIO()
        err = StringIO()
        call_command('cleanup_bin', stdout=out, stderr=err)

        assert FileRecord.objects.filter(id=first).exists()
        assert not FileRecord.objects.filter(id=second).exists()
        assert 'Purged 1 files from Bin, 1 failed' in out.getvalue()
        assert 'storage down' in err.getvalue()
