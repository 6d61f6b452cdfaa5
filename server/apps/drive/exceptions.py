"""Exceptions for drive app."""


class QuotaExceededError(Exception):
    """Raised when upload would exceed user's storage quota."""

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = quota_bytes - used_bytes
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )


class FileTooLargeError(Exception):
    """Raised when a single upload is bigger than the per-file cap."""

    def __init__(self, limit_bytes: int, size_bytes: int) -> None:
        """Initialize FileTooLargeError.

        Args:
            limit_bytes: Per-file cap in bytes.
            size_bytes: Size of the rejected upload.
        """
        self.limit_bytes = limit_bytes
        self.size_bytes = size_bytes
        super().__init__(
            f'File too large: {size_bytes} bytes (limit: {limit_bytes})',
        )


class InvalidPathError(ValueError):
    """Raised for virtual paths that cannot be normalized safely."""


class InvalidNameError(ValueError):
    """Raised for object names that cannot form a blob key."""


class BlobStorageError(Exception):
    """Raised when the object storage backend call fails."""


class BlobNotFoundError(BlobStorageError):
    """Raised when a blob key does not exist in the bucket."""


class FileRecordNotFoundError(Exception):
    """Raised by read operations for unknown file ids."""


class AccessDeniedError(Exception):
    """Raised when a caller reads a file owned by somebody else."""


class UserNotFoundError(Exception):
    """Raised when storage stats are requested for an unknown user."""
