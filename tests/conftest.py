"""Project-wide test fixtures."""

import pytest


@pytest.fixture(autouse=True)
def _disable_lifecycle_signals(settings):
    """Keep user save/delete from reaching real S3 and Redis.

    Tests that exercise the signal handlers turn them back on.
    """
    settings.DRIVE_LIFECYCLE_SIGNALS = False
