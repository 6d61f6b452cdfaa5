"""Drive lifecycle settings."""

from server.settings.components import config

# Upload caps: 25 MB per file, 5 GB default quota
DRIVE_MAX_FILE_SIZE = config(
    'DRIVE_MAX_FILE_SIZE',
    cast=int,
    default=25 * 1024 * 1024,
)
DRIVE_DEFAULT_STORAGE_LIMIT = config(
    'DRIVE_DEFAULT_STORAGE_LIMIT',
    cast=int,
    default=5 * 1024 * 1024 * 1024,
)

# Cache TTLs in seconds
DRIVE_FILE_CACHE_TTL = config('DRIVE_FILE_CACHE_TTL', cast=int, default=300)
DRIVE_LISTING_CACHE_TTL = config('DRIVE_LISTING_CACHE_TTL', cast=int, default=300)
DRIVE_STATS_CACHE_TTL = config('DRIVE_STATS_CACHE_TTL', cast=int, default=900)

# Presigned download URL expiry in seconds
DRIVE_PRESIGN_TTL = config('DRIVE_PRESIGN_TTL', cast=int, default=3600)

# Bin records older than this are purged by `cleanup_bin`
DRIVE_BIN_RETENTION_DAYS = config('DRIVE_BIN_RETENTION_DAYS', cast=int, default=30)

# Bootstrap on user creation and teardown on user deletion
DRIVE_LIFECYCLE_SIGNALS = config('DRIVE_LIFECYCLE_SIGNALS', cast=bool, default=True)

REDIS_URL = config('REDIS_URL', default='redis://localhost:6379/0')
