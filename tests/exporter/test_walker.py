"""Tests for the resource tree walk filters."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from cms_export.exporter.model import Resource, ResourceState
from cms_export.exporter.session import ExportSession
from cms_export.exporter.walker import ResourceTreeWalker


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_walker(online=False, **options):
    repository = MagicMock()
    repository.is_online_project = online
    return ResourceTreeWalker(repository, MagicMock(), ExportSession(), **options)


def make_file(path="/a/f.txt", state=ResourceState.UNCHANGED, modified=utc(2024, 1, 1)):
    return Resource(path=path, resource_id="id", type_id=1, state=state, date_last_modified=modified)


class TestShouldExportFile:
    """Tests for the file inclusion filter."""

    def test_deleted_file_never_exported(self):
        """Test deleted files are skipped even online."""
        walker = make_walker(online=True)
        assert not walker.should_export_file(make_file(state=ResourceState.DELETED))

    def test_companion_named_file_never_exported(self):
        """Test names starting with '~' are skipped."""
        walker = make_walker(online=True)
        assert not walker.should_export_file(make_file(path="/a/~page.html"))

    def test_online_ignores_age_and_state(self):
        """Test the online project exports regardless of age and state."""
        walker = make_walker(online=True, content_age=utc(2030, 1, 1), exclude_unchanged=True)
        assert walker.should_export_file(make_file())

    def test_age_threshold(self):
        """Test files older than the threshold are skipped."""
        walker = make_walker(content_age=utc(2024, 1, 1))

        assert walker.should_export_file(make_file(modified=utc(2024, 1, 1)))
        assert walker.should_export_file(make_file(modified=utc(2024, 6, 1)))
        assert not walker.should_export_file(make_file(modified=utc(2023, 12, 31)))

    @pytest.mark.parametrize("state,expected", [
        (ResourceState.NEW, True),
        (ResourceState.CHANGED, True),
        (ResourceState.UNCHANGED, False),
    ])
    def test_exclude_unchanged(self, state, expected):
        """Test only new and changed files pass when unchanged ones are excluded."""
        walker = make_walker(exclude_unchanged=True)
        assert walker.should_export_file(make_file(state=state)) is expected


class TestShouldWalkFolder:
    """Tests for the subfolder policy."""

    @pytest.mark.parametrize("path", [
        "/system/", "/SYSTEM/", "/system/bodies/", "/system/bodies/a/",
        "/system/galleries/", "/sites/default/",
    ])
    def test_walked_with_exclusion(self, path):
        """Test folders that are walked even when /system/ is excluded."""
        assert make_walker(exclude_system=True).should_walk_folder(path)

    @pytest.mark.parametrize("path", ["/system/modules/", "/system/workplace/x/"])
    def test_skipped_with_exclusion(self, path):
        """Test other system folders are skipped when excluded."""
        assert not make_walker(exclude_system=True).should_walk_folder(path)

    def test_system_walked_without_exclusion(self):
        """Test nothing is skipped by default."""
        assert make_walker().should_walk_folder("/system/modules/")
