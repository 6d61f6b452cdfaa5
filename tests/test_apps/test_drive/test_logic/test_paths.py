"""Tests for virtual path normalization and blob key resolution."""

import pytest

from server.apps.drive.exceptions import InvalidNameError, InvalidPathError
from server.apps.drive.logic.paths import (
    PathResolver,
    is_normalized,
    normalize_path,
    provider_folder,
    resolve_key,
    split_extension,
    user_base_prefix,
    validate_object_name,
)
from server.apps.drive.models import FileRecord, Location


class TestNormalizePath:
    """Tests for normalize_path function."""

    @pytest.mark.parametrize(('raw', 'expected'), [
        ('', '/'),
        (None, '/'),
        ('/', '/'),
        ('//', '/'),
        ('docs', '/docs/'),
        ('/docs', '/docs/'),
        ('docs/', '/docs/'),
        ('//docs///reports//', '/docs/reports/'),
        ('/docs/./reports', '/docs/reports/'),
    ])
    def test_normalizes(self, raw, expected):
        """Test leading/trailing slashes and duplicate slashes."""
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize('raw', [
        '..',
        '/docs/../secret',
        '../etc/passwd',
        'docs\\reports',
        'docs\x00',
    ])
    def test_rejects_unsafe_paths(self, raw):
        """Test traversal, backslash and NUL are refused."""
        with pytest.raises(InvalidPathError):
            normalize_path(raw)

    def test_dotted_names_are_not_traversal(self):
        """Test names containing dots are kept."""
        assert normalize_path('/v1..2/') == '/v1..2/'

    def test_is_normalized(self):
        """Test is_normalized only accepts canonical paths."""
        assert is_normalized('/')
        assert is_normalized('/docs/')
        assert not is_normalized('/docs')
        assert not is_normalized('docs/')
        assert not is_normalized('/a/../b/')


class TestValidateObjectName:
    """Tests for validate_object_name function."""

    def test_accepts_regular_names(self):
        """Test ordinary names pass and are returned."""
        assert validate_object_name('report.pdf') == 'report.pdf'
        assert validate_object_name('.bashrc') == '.bashrc'

    @pytest.mark.parametrize('name', [
        '',
        '   ',
        '.',
        '..',
        'a/b',
        'a\\b',
        'a\x00b',
        'x' * 256,
    ])
    def test_rejects_invalid_names(self, name):
        """Test empty, reserved, separator and overlong names."""
        with pytest.raises(InvalidNameError):
            validate_object_name(name)


@pytest.mark.parametrize(('name', 'expected'), [
    ('report.pdf', ('report', '.pdf')),
    ('archive.tar.gz', ('archive.tar', '.gz')),
    ('README', ('README', '')),
    ('.bashrc', ('.bashrc', '')),
    ('trailing.', ('trailing.', '')),
])
def test_split_extension(name, expected):
    """Test only an inner dot starts an extension."""
    assert split_extension(name) == expected


class TestProviderPrefix:
    """Tests for user base prefixes."""

    def test_local_prefix(self):
        """Test local accounts live under Local Users."""
        assert user_base_prefix(42, 'local') == 'Local Users/42/'

    def test_google_prefix(self):
        """Test Google accounts live under Google Users."""
        assert user_base_prefix(42, 'google') == 'Google Users/42/'

    def test_unknown_provider_falls_back_to_local(self):
        """Test unknown providers use the local folder."""
        assert provider_folder('github') == 'Local Users'


class TestResolveKey:
    """Tests for resolve_key function."""

    def test_root_file(self):
        """Test a file in the Drive root."""
        key = resolve_key(7, 'local', Location.DRIVE, '/', 'notes.txt')

        assert key == 'Local Users/7/Drive/notes.txt'

    def test_nested_file_in_bin(self):
        """Test a nested Bin file keeps its directory."""
        key = resolve_key(7, 'google', Location.BIN, '/docs/q1/', 'a.pdf')

        assert key == 'Google Users/7/Bin/docs/q1/a.pdf'

    def test_folder_gets_trailing_slash(self):
        """Test folder keys end with a slash."""
        key = resolve_key(
            7,
            'local',
            Location.DRIVE,
            '/docs/',
            'reports',
            is_folder=True,
        )

        assert key == 'Local Users/7/Drive/docs/reports/'

    def test_root_marker_key(self):
        """Test the location root marker key."""
        key = resolve_key(7, 'local', Location.BIN, '/', '', is_folder=True)

        assert key == 'Local Users/7/Bin/'

    def test_refuses_unnormalized_path(self):
        """Test the resolver never guesses a normalization."""
        with pytest.raises(InvalidPathError):
            resolve_key(7, 'local', Location.DRIVE, 'docs', 'a.txt')

    def test_refuses_unknown_location(self):
        """Test only Drive and Bin resolve."""
        with pytest.raises(InvalidPathError):
            resolve_key(7, 'local', 'Trash', '/', 'a.txt')

    def test_is_deterministic(self):
        """Test equal inputs always give equal keys."""
        first = resolve_key(7, 'local', Location.DRIVE, '/a/', 'b.txt')
        second = resolve_key(7, 'local', Location.DRIVE, '/a/', 'b.txt')

        assert first == second

    def test_distinct_identities_never_collide(self):
        """Test different (location, path, name) give different keys."""
        identities = [
            (Location.DRIVE, '/', 'a'),
            (Location.BIN, '/', 'a'),
            (Location.DRIVE, '/a/', 'b'),
            (Location.DRIVE, '/', 'b'),
            (Location.DRIVE, '/a/b/', 'c'),
            (Location.DRIVE, '/a/', 'b c'),
        ]

        keys = {
            resolve_key(7, 'local', location, path, name)
            for location, path, name in identities
        }

        assert len(keys) == len(identities)


class TestPathResolver:
    """Tests for PathResolver class."""

    def test_location_prefix(self):
        """Test location marker keys."""
        resolver = PathResolver(3, 'local')

        assert resolver.base_prefix == 'Local Users/3/'
        assert resolver.location_prefix(Location.DRIVE) == 'Local Users/3/Drive/'

    def test_key_of_record(self):
        """Test key derivation from an unsaved record."""
        resolver = PathResolver(3, 'google')
        record = FileRecord(
            owner_id=3,
            object_name='photo.jpg',
            object_path='/trips/',
            location=Location.DRIVE,
        )

        assert resolver.key_of(record) == 'Google Users/3/Drive/trips/photo.jpg'
        assert resolver.key_of(record, Location.BIN) == (
            'Google Users/3/Bin/trips/photo.jpg'
        )
