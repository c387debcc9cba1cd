"""Tests for user and group export."""

import pickle
import threading
import zipfile

import pytest

from cms_export.exporter.errors import ImportExportError, ManifestError
from cms_export.exporter.model import Group, User
from cms_export.exporter.principals import (
    encode_password, serialize_additional_info, userinfo_entry_name
)
from cms_export.exporter.report import ReportFormat
from cms_export.exporter.repository import InMemoryRepository


@pytest.fixture
def principal_repository():
    repo = InMemoryRepository()
    repo.add_file("/a.txt", b"a")
    repo.add_group(Group("g1", "Users"))
    repo.add_group(Group("g2", "Editors", description="Edit content", flags=4, parent_id="g1"))
    repo.add_user(
        User("u1", "jdoe", password="secret", first_name="Jane", last_name="Doe",
             email="jdoe@example.com", additional_info={"lang": "en"}),
        ["Editors", "Users"],
    )
    repo.add_user(User("u2", "locked", additional_info={"lock": threading.Lock()}), ["Users"])
    return repo


class TestSidecar:
    """Tests for additional info serialization."""

    def test_entry_name(self):
        """Test side-car entries live in the userinfo folder."""
        assert userinfo_entry_name(User("u1", "jdoe")) == "~userinfo/jdoe.dat"
        assert userinfo_entry_name(User("u2", "j.doe@example.com")) == "~userinfo/j.doe@example.com.dat"

    @pytest.mark.parametrize("name,expected", [
        ("ou/jdoe", "~userinfo/ou_jdoe_u9.dat"),
        ("../../etc", "~userinfo/_.._etc_u9.dat"),
        ("..", "~userinfo/_u9.dat"),
        ("", "~userinfo/_u9.dat"),
        ("a b", "~userinfo/a_b_u9.dat"),
    ])
    def test_entry_name_sanitized(self, name, expected):
        """Test names that are not plain file names stay flat and unique."""
        entry_name = userinfo_entry_name(User("u9", name))

        assert entry_name == expected
        assert entry_name.count("/") == 1

    def test_serializable(self):
        """Test a plain mapping is serialized."""
        result = serialize_additional_info(User("u1", "jdoe", additional_info={"a": 1}))

        assert result.ok
        assert pickle.loads(result.data) == {"a": 1}

    def test_unserializable(self):
        """Test an unserializable value yields an error result."""
        result = serialize_additional_info(User("u2", "x", additional_info={"lock": threading.Lock()}))

        assert not result.ok
        assert result.data is None
        assert isinstance(result.error, TypeError)

    def test_encode_password(self):
        """Test password encoding is reversible base64."""
        assert encode_password("secret") == "c2VjcmV0"


class TestPrincipalExport:
    """Tests for the principal section of a full export."""

    def test_groups(self, principal_repository, run_export):
        """Test group records with parent names."""
        result, manifest = run_export(principal_repository, ["/a.txt"], export_userdata=True)

        assert result.groups == 2
        assert manifest.groups == [
            {"name": "Users", "description": "", "flags": "0", "parentgroup": ""},
            {"name": "Editors", "description": "Edit content", "flags": "4", "parentgroup": "Users"},
        ]

    def test_users(self, principal_repository, run_export):
        """Test user records, memberships and side-car entries."""
        result, manifest = run_export(principal_repository, ["/a.txt"], export_userdata=True)

        assert result.users == 2
        jdoe, locked = manifest.users
        assert jdoe["name"] == "jdoe"
        assert jdoe["password"] == "c2VjcmV0"
        assert jdoe["email"] == "jdoe@example.com"
        assert jdoe["usergroups"] == ["Editors", "Users"]
        assert jdoe["userinfo"] == "~userinfo/jdoe.dat"
        with zipfile.ZipFile(result.export_file) as zf:
            assert pickle.loads(zf.read("~userinfo/jdoe.dat")) == {"lang": "en"}

        assert locked["name"] == "locked"
        assert "userinfo" not in locked
        assert locked["usergroups"] == ["Users"]

    def test_sidecar_failure_reported(self, principal_repository, run_export, report):
        """Test a side-car failure is reported without aborting."""
        result, _ = run_export(principal_repository, ["/a.txt"], export_userdata=True)

        assert result.sidecar_failures == 1
        warnings = [line.text for line in report.lines if line.format is ReportFormat.WARNING]
        assert warnings == ["Error exporting the additional info of user locked"]
        assert len(report.errors()) == 1

    def test_disabled_by_default(self, principal_repository, run_export):
        """Test no principal section without export_userdata."""
        result, manifest = run_export(principal_repository, ["/a.txt"])

        assert manifest.groups == []
        assert manifest.users == []
        assert result.users == 0

    def test_unknown_parent_group(self, run_export):
        """Test an unresolvable parent group aborts the export."""
        repo = InMemoryRepository()
        repo.add_file("/a.txt", b"a")
        repo.add_group(Group("g3", "Orphans", parent_id="missing"))

        with pytest.raises(ImportExportError) as exc_info:
            run_export(repo, ["/a.txt"], export_userdata=True)

        assert exc_info.value.message_key == "ERR_READING_PARENT_GROUP_1"

    def test_illegal_character_in_user_field(self, run_export):
        """Test a user field XML cannot carry aborts the export."""
        repo = InMemoryRepository()
        repo.add_file("/a.txt", b"a")
        repo.add_user(User("u1", "jdoe", description="line\x07feed"))

        with pytest.raises(ManifestError) as exc_info:
            run_export(repo, ["/a.txt"], export_userdata=True)

        assert exc_info.value.message_key == "ERR_WRITING_MANIFEST_0"
        assert exc_info.value.context["element"] == "description"
