"""Tests for activity tracking by lifecycle operations."""

import pytest

from server.apps.drive.logic.lifecycle import FileLifecycleEngine


def _operations(tracker, owner):
    return [entry['operation'] for entry in tracker.recent_operations(owner.id)]


@pytest.mark.django_db
class TestMutationTracking:
    """Tests for the operation history kept per user."""

    def test_lifecycle_history(self, engine, tracker, user):
        """Test each completed mutation is recorded newest first."""
        record = engine.upload_file(user.id, b'data', 'a.txt').record
        engine.rename_file(record.id, user.id, 'b.txt')
        engine.duplicate_file(record.id, user.id)
        engine.move_to_bin(record.id, user.id)
        engine.delete_forever(record.id, user.id)
        engine.empty_bin(user.id)

        assert _operations(tracker, user) == [
            'empty_bin',
            'delete',
            'move',
            'create',
            'update',
            'create',
        ]

    def test_declined_mutations_not_tracked(self, engine, tracker, user):
        """Test refusals leave no history."""
        engine.upload_file(user.id, b'data', 'a.txt')
        engine.upload_file(user.id, b'data', 'a.txt')
        record = engine.create_folder(user.id, 'docs').record
        engine.rename_file(record.id, user.id, 'docs')

        assert _operations(tracker, user) == ['create', 'create']

    def test_teardown_forgets_activity(self, engine, tracker, user, redis_client):
        """Test deleting an account drops its activity keys."""
        record = engine.upload_file(user.id, b'data', 'a.txt').record
        engine.download_file(record.id, user.id)

        engine.teardown_owner(user.id)

        assert redis_client.keys(f'user:{user.id}:*') == []
        assert tracker.file_stats(record.id) == {}

    def test_engine_without_tracker(
        self,
        metadata_store,
        blob_storage,
        cache,
        user_provider,
        user,
    ):
        """Test tracking is optional."""
        bare = FileLifecycleEngine(
            metadata_store,
            blob_storage,
            cache,
            user_provider,
        )

        result = bare.upload_file(user.id, b'data', 'a.txt')
        bare.download_file(result.record.id, user.id)

        assert result.ok


@pytest.mark.django_db
class TestReadCounters:
    """Tests for download, preview and URL counters."""

    def test_download_counts_file_and_user(self, engine, tracker, user):
        """Test downloads bump the file and the user counter."""
        record = engine.upload_file(user.id, b'data', 'a.txt').record

        engine.download_file(record.id, user.id)
        engine.download_file(record.id, user.id)

        assert tracker.file_stats(record.id) == {'downloads': 2}
        assert tracker.user_stats(user.id) == {'file_downloads': 2}

    def test_text_preview_is_not_a_download(self, engine, tracker, user):
        """Test previews have their own counter."""
        record = engine.upload_file(user.id, b'hello', 'a.txt').record

        preview = engine.preview_file(record.id, user.id)

        assert preview.content == 'hello'
        assert tracker.file_stats(record.id) == {'previews': 1}
        assert tracker.user_stats(user.id) == {}

    def test_url_generations(self, engine, tracker, user):
        """Test presigned URLs are counted."""
        record = engine.upload_file(user.id, b'data', 'a.txt').record

        engine.get_file_url(record.id, user.id)

        assert tracker.file_stats(record.id) == {'url_generations': 1}

    def test_permanent_delete_forgets_counters(self, engine, tracker, user):
        """Test counters of deleted files are dropped."""
        record = engine.upload_file(user.id, b'data', 'a.txt').record
        engine.download_file(record.id, user.id)
        engine.move_to_bin(record.id, user.id)

        engine.delete_forever(record.id, user.id)

        assert tracker.file_stats(record.id) == {}
