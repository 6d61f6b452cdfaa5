"""Shared fixtures for drive app tests."""

import boto3
import fakeredis
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.drive.infrastructure.accounts import DjangoUserProvider
from server.apps.drive.infrastructure.cache import RedisCache
from server.apps.drive.infrastructure.metadata_store import (
    DjangoMetadataStore,
)
from server.apps.drive.infrastructure.storage import BlobStorage
from server.apps.drive.infrastructure.tracker import RedisActivityTracker
from server.apps.drive.logic.lifecycle import FileLifecycleEngine
from server.apps.drive.models import (
    DEFAULT_STORAGE_LIMIT,
    AuthProvider,
    StorageProfile,
)

User = get_user_model()

BUCKET_NAME = 'cloud-drive'


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def google_user(db):
    """Create a user that signed up with Google.

    Returns:
        User with a google storage profile.
    """
    google = User.objects.create_user(
        username='googleuser',
        email='google@example.com',
    )
    StorageProfile.objects.create(
        user=google,
        auth_provider=AuthProvider.GOOGLE,
    )
    return google


@pytest.fixture
def mock_s3():
    """Mock S3 service with cloud-drive bucket.

    Yields:
        boto3 S3 resource with cloud-drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)
        yield conn


@pytest.fixture
def bucket(mock_s3):
    """The mocked cloud-drive bucket."""
    return mock_s3.Bucket(BUCKET_NAME)


@pytest.fixture
def blob_storage(mock_s3):
    """BlobStorage pointed at the mocked bucket.

    Returns:
        BlobStorage instance.
    """
    return BlobStorage(
        bucket_name=BUCKET_NAME,
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
    )


@pytest.fixture
def redis_client():
    """In-process fake Redis.

    Returns:
        fakeredis client with decoded responses.
    """
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    """Drive cache over fake Redis."""
    return RedisCache(redis_client)


@pytest.fixture
def tracker(redis_client):
    """Activity tracker over the same fake Redis as the cache."""
    return RedisActivityTracker(redis_client)


@pytest.fixture
def down_cache():
    """Drive cache whose Redis server is unreachable."""
    server = fakeredis.FakeServer()
    server.connected = False
    return RedisCache(fakeredis.FakeRedis(server=server, decode_responses=True))


@pytest.fixture
def metadata_store(db):
    """ORM metadata store."""
    return DjangoMetadataStore()


@pytest.fixture
def user_provider(db):
    """User provider with the default 5 GB limit."""
    return DjangoUserProvider(DEFAULT_STORAGE_LIMIT)


@pytest.fixture
def engine(metadata_store, blob_storage, cache, user_provider, tracker):
    """Lifecycle engine wired to moto S3 and fake Redis.

    Returns:
        FileLifecycleEngine instance.
    """
    return FileLifecycleEngine(
        metadata_store,
        blob_storage,
        cache,
        user_provider,
        tracker=tracker,
    )


@pytest.fixture
def bootstrapped_user(engine, user):
    """User whose Drive and Bin roots exist.

    Returns:
        The user.
    """
    engine.bootstrap_folders(user.id)
    return user
