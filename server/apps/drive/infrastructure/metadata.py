"""Metadata extraction utilities for uploaded content."""

import hashlib
import mimetypes
from typing import Final

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'

_TEXT_MIME_TYPES: Final = frozenset((
    'application/json',
    'application/xml',
    'application/javascript',
    'application/x-yaml',
))


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type of an upload.

    Prefers the type the client declared; otherwise guesses it from
    the filename extension with Python's mimetypes module.

    Args:
        filename: Filename with extension.
        declared: Content-Type sent by the client, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared and declared != _DEFAULT_MIME_TYPE:
        return declared

    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def object_type_for(mime_type: str) -> str:
    """Coarse object type stored next to the MIME type.

    Args:
        mime_type: MIME type string.

    Returns:
        The MIME family ('image', 'text', ...) or 'file'.
    """
    family, _, _ = mime_type.partition('/')
    return family or 'file'


def preview_kind(mime_type: str) -> str:
    """Classify a MIME type for preview.

    Args:
        mime_type: MIME type string.

    Returns:
        One of 'image', 'text', 'pdf', 'audio', 'video', 'other'.
    """
    if mime_type == 'application/pdf':
        return 'pdf'
    if mime_type.startswith('text/') or mime_type in _TEXT_MIME_TYPES:
        return 'text'

    family = mime_type.partition('/')[0]
    if family in {'image', 'audio', 'video'}:
        return family
    return 'other'


def calculate_checksum(content: bytes) -> str:
    """Calculate SHA256 checksum of content.

    Args:
        content: Raw bytes.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    return hashlib.sha256(content).hexdigest()
