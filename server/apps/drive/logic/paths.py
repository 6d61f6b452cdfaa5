"""Translation between virtual drive paths and blob-store keys.

Virtual paths are what users see: /documents/reports/
Blob keys carry the account prefix and the location:
Local Users/{user_id}/Drive/documents/reports/file.pdf

Everything here is pure: no storage, database or cache access.
"""

from typing import Final, final

from server.apps.drive.exceptions import InvalidNameError, InvalidPathError
from server.apps.drive.models import AuthProvider, FileRecord, Location

# Character used to split virtual paths and blob keys
_PATH_SEPARATOR: Final = '/'

_ROOT_PATH: Final = '/'

_PARENT_SEGMENT: Final = '..'
_CURRENT_SEGMENT: Final = '.'

_FORBIDDEN_CHARACTERS: Final = ('\x00', '\\')

_NAME_MAX_LENGTH: Final = 255

_PROVIDER_FOLDERS: Final = {
    AuthProvider.GOOGLE: 'Google Users',
    AuthProvider.LOCAL: 'Local Users',
}


def normalize_path(path: str | None) -> str:
    """Normalize a virtual directory path.

    Adds the leading and trailing slash, collapses duplicate slashes
    and drops '.' segments.

    Args:
        path: Raw directory path (e.g., 'docs//reports').

    Returns:
        Normalized path (e.g., '/docs/reports/'), '/' for the root.

    Raises:
        InvalidPathError: If the path contains '..', NUL or backslash.
    """
    if not path:
        return _ROOT_PATH

    if any(char in path for char in _FORBIDDEN_CHARACTERS):
        raise InvalidPathError(f'Path contains forbidden characters: {path!r}')

    segments = [
        segment
        for segment in path.split(_PATH_SEPARATOR)
        if segment and segment != _CURRENT_SEGMENT
    ]
    if _PARENT_SEGMENT in segments:
        raise InvalidPathError(f'Path traversal is not allowed: {path!r}')

    if not segments:
        return _ROOT_PATH

    joined = _PATH_SEPARATOR.join(segments)
    return f'{_PATH_SEPARATOR}{joined}{_PATH_SEPARATOR}'


def is_normalized(path: str) -> bool:
    """Check whether a path is already in normalized form.

    Args:
        path: Virtual directory path.

    Returns:
        True if normalize_path() would return it unchanged.
    """
    try:
        return normalize_path(path) == path
    except InvalidPathError:
        return False


def validate_object_name(name: str) -> str:
    """Validate a leaf file or folder name.

    Args:
        name: Proposed object name.

    Returns:
        The same name, for chaining.

    Raises:
        InvalidNameError: If the name is empty, too long, a dot segment
            or contains a separator.
    """
    if not name or not name.strip():
        raise InvalidNameError('Name cannot be empty')

    if len(name) > _NAME_MAX_LENGTH:
        raise InvalidNameError(f'Name longer than {_NAME_MAX_LENGTH} chars')

    if name in {_CURRENT_SEGMENT, _PARENT_SEGMENT}:
        raise InvalidNameError(f'Reserved name: {name!r}')

    if _PATH_SEPARATOR in name or any(
        char in name for char in _FORBIDDEN_CHARACTERS
    ):
        raise InvalidNameError(f'Name contains forbidden characters: {name!r}')

    return name


def split_extension(name: str) -> tuple[str, str]:
    """Split a file name into base name and extension.

    Only a dot that is neither the first nor the last character starts
    an extension, so '.bashrc' and 'archive.' have none.

    Args:
        name: File name (e.g., 'report.pdf').

    Returns:
        Tuple of base and extension with dot (e.g., ('report', '.pdf')).
    """
    dot_index = name.rfind(_CURRENT_SEGMENT)
    if 0 < dot_index < len(name) - 1:
        return name[:dot_index], name[dot_index:]
    return name, ''


def provider_folder(auth_provider: str) -> str:
    """Top-level bucket folder for an auth provider.

    Args:
        auth_provider: 'local' or 'google'.

    Returns:
        'Google Users' for Google accounts, 'Local Users' otherwise.
    """
    return _PROVIDER_FOLDERS.get(
        auth_provider,
        _PROVIDER_FOLDERS[AuthProvider.LOCAL],
    )


def user_base_prefix(owner_id: object, auth_provider: str) -> str:
    """Blob prefix that holds everything a user owns.

    Args:
        owner_id: Owning user ID.
        auth_provider: 'local' or 'google'.

    Returns:
        Prefix like 'Local Users/42/'.
    """
    return f'{provider_folder(auth_provider)}/{owner_id}/'


def resolve_key(  # noqa: WPS211
    owner_id: object,
    auth_provider: str,
    location: str,
    object_path: str,
    object_name: str,
    *,
    is_folder: bool = False,
) -> str:
    """Compute the blob key of a record.

    Args:
        owner_id: Owning user ID.
        auth_provider: 'local' or 'google'.
        location: 'Drive' or 'Bin'.
        object_path: Normalized virtual directory.
        object_name: Leaf name (empty only for root markers).
        is_folder: Folder keys get a trailing slash.

    Returns:
        Key like 'Local Users/42/Drive/docs/file.pdf'.

    Raises:
        InvalidPathError: If object_path is not normalized or the
            location is unknown.
    """
    if location not in Location.values:
        raise InvalidPathError(f'Unknown location: {location!r}')

    if not is_normalized(object_path):
        raise InvalidPathError(f'Path is not normalized: {object_path!r}')

    relative_dir = object_path.lstrip(_PATH_SEPARATOR)
    key = (
        f'{user_base_prefix(owner_id, auth_provider)}'
        f'{location}{_PATH_SEPARATOR}{relative_dir}{object_name}'
    )
    if is_folder and object_name:
        return key + _PATH_SEPARATOR
    return key


@final
class PathResolver:
    """Resolves blob keys for a single user.

    Binds owner and auth provider once so callers only pass the
    per-record parts.
    """

    def __init__(self, owner_id: object, auth_provider: str) -> None:
        """Initialize resolver for a user.

        Args:
            owner_id: Owning user ID.
            auth_provider: 'local' or 'google'.
        """
        self._owner_id = owner_id
        self._auth_provider = auth_provider

    @property
    def owner_id(self) -> object:
        """Get the user ID for this resolver."""
        return self._owner_id

    @property
    def base_prefix(self) -> str:
        """Get the user's blob prefix."""
        return user_base_prefix(self._owner_id, self._auth_provider)

    def location_prefix(self, location: str) -> str:
        """Get the folder marker key of a location.

        Args:
            location: 'Drive' or 'Bin'.

        Returns:
            Key like 'Local Users/42/Bin/'.
        """
        return resolve_key(
            self._owner_id,
            self._auth_provider,
            location,
            _ROOT_PATH,
            '',
            is_folder=True,
        )

    def key_for(
        self,
        location: str,
        object_path: str,
        object_name: str,
        *,
        is_folder: bool = False,
    ) -> str:
        """Resolve the key for explicit record parts.

        Args:
            location: 'Drive' or 'Bin'.
            object_path: Normalized virtual directory.
            object_name: Leaf name.
            is_folder: Whether the key is a folder marker.

        Returns:
            Blob key.
        """
        return resolve_key(
            self._owner_id,
            self._auth_provider,
            location,
            object_path,
            object_name,
            is_folder=is_folder,
        )

    def key_of(self, record: FileRecord, location: str | None = None) -> str:
        """Resolve the key of a record, optionally in another location.

        Args:
            record: File record.
            location: Override for the record's own location.

        Returns:
            Blob key.
        """
        return self.key_for(
            location or record.location,
            record.object_path,
            record.object_name,
            is_folder=record.is_folder,
        )
