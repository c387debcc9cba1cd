"""Tests for the manifest writer and reader."""

import io
import xml.etree.ElementTree as ET
import zipfile
from datetime import datetime, timedelta, timezone

import pytest

from cms_export.exporter.errors import ManifestError
from cms_export.exporter.manifest import (
    StreamingXmlWriter, add_text_element, default_property_filter, format_header_date, zip_date_time
)
from cms_export.exporter.manifest_reader import ManifestAccessEntry, parse_manifest, read_manifest
from cms_export.exporter.model import (
    ACCESS_FLAG_GROUP, AccessControlEntry, Group, Property, PropertyScope, User
)
from cms_export.exporter.repository import InMemoryRepository


class TestHelpers:
    """Tests for date and filter helpers."""

    def test_format_header_date(self):
        """Test RFC 1123 formatting in GMT."""
        value = datetime(2024, 3, 5, 14, 2, 11, tzinfo=timezone.utc)
        assert format_header_date(value) == "Tue, 05 Mar 2024 14:02:11 GMT"

    def test_format_header_date_converts_to_gmt(self):
        """Test other offsets are converted."""
        value = datetime(2024, 3, 5, 16, 2, 11, tzinfo=timezone(timedelta(hours=2)))
        assert format_header_date(value) == "Tue, 05 Mar 2024 14:02:11 GMT"

    def test_zip_date_time_clamped(self):
        """Test dates before 1980 are clamped."""
        assert zip_date_time(datetime(1970, 1, 1, tzinfo=timezone.utc)) == (1980, 1, 1, 0, 0, 0)
        assert zip_date_time(datetime(2024, 3, 5, 14, 2, 10)) == (2024, 3, 5, 14, 2, 10)

    def test_default_property_filter(self):
        """Test every existing property passes."""
        assert default_property_filter(Property("Title", "x"))
        assert not default_property_filter(None)

    def test_add_text_element(self):
        """Test text children, with None written as empty text."""
        parent = ET.Element("file")

        add_text_element(parent, "name", "Title")
        add_text_element(parent, "value", None)

        assert [(child.tag, child.text) for child in parent] == [("name", "Title"), ("value", "")]

    @pytest.mark.parametrize("text", ["bad\x0bvalue", "\x00", "tab\tok\x1f", "\ufffe"])
    def test_add_text_element_rejects_illegal_characters(self, text):
        """Test characters XML cannot carry are rejected before serializing."""
        parent = ET.Element("file")

        with pytest.raises(ManifestError) as exc_info:
            add_text_element(parent, "value", text)

        assert exc_info.value.message_key == "ERR_WRITING_MANIFEST_0"
        assert exc_info.value.context["element"] == "value"
        assert len(parent) == 0

    def test_add_text_element_keeps_whitespace(self):
        """Test tab, newline and carriage return are accepted."""
        parent = ET.Element("file")
        add_text_element(parent, "value", "a\tb\nc\rd")
        assert parent[0].text == "a\tb\nc\rd"


class TestStreamingXmlWriter:
    """Tests for StreamingXmlWriter."""

    def test_document(self):
        """Test sections and elements form one document."""
        stream = io.StringIO()
        writer = StreamingXmlWriter(stream)
        writer.start_document()
        writer.write_open("export")
        element = ET.Element("file")
        ET.SubElement(element, "destination").text = "a & b"
        writer.write_element(element)
        writer.write_close("export")
        writer.end_document()

        root = ET.fromstring(stream.getvalue().encode("utf-8"))
        assert root.tag == "export"
        assert root.find("file/destination").text == "a & b"
        assert writer.depth == 0

    def test_element_outside_root(self):
        """Test elements need an open section."""
        writer = StreamingXmlWriter(io.StringIO())
        with pytest.raises(ManifestError):
            writer.write_element(ET.Element("file"))

    def test_mismatched_close(self):
        """Test closing the wrong section fails."""
        writer = StreamingXmlWriter(io.StringIO())
        writer.write_open("export")
        writer.write_open("files")
        with pytest.raises(ManifestError):
            writer.write_close("export")

    def test_unclosed_section(self):
        """Test the document cannot end with open sections."""
        writer = StreamingXmlWriter(io.StringIO())
        writer.write_open("export")
        with pytest.raises(ManifestError):
            writer.end_document()


class TestPropertiesAndAccess:
    """Tests for properties and access control in manifest entries."""

    @pytest.fixture
    def repository(self):
        repo = InMemoryRepository()
        repo.add_group(Group("g1", "Editors"))
        repo.add_user(User("u1", "jdoe"))
        repo.add_file("/a/doc.txt", b"x", flags=6, user_last_modified="u1", user_created="ghost")
        repo.set_properties("/a/doc.txt", [
            Property("Title", "Hello"),
            Property("Template", "/t.jsp", PropertyScope.SHARED),
            Property("Empty", None),
            Property("Blank", ""),
        ])
        repo.set_acl("/a/doc.txt", [
            AccessControlEntry("g1", allowed_permissions=3, flags=ACCESS_FLAG_GROUP),
            AccessControlEntry("u1", allowed_permissions=1, denied_permissions=2),
        ])
        return repo

    def test_properties(self, repository, run_export):
        """Test property scopes and omission of empty values."""
        _, manifest = run_export(repository, ["/a/doc.txt"])

        assert manifest.entry("a/doc.txt").properties == [
            Property("Title", "Hello", PropertyScope.INDIVIDUAL),
            Property("Template", "/t.jsp", PropertyScope.SHARED),
        ]

    def test_access_entries(self, repository, run_export):
        """Test principals are written with their kind prefix."""
        _, manifest = run_export(repository, ["/a/doc.txt"])

        assert manifest.entry("a/doc.txt").access_entries == [
            ManifestAccessEntry("group.Editors", ACCESS_FLAG_GROUP, 3, 0),
            ManifestAccessEntry("user.jdoe", 0, 1, 2),
        ]

    def test_users_and_flags(self, repository, run_export):
        """Test unknown users fall back to Admin and the label link flag is dropped."""
        _, manifest = run_export(repository, ["/a/doc.txt"])

        entry = manifest.entry("a/doc.txt")
        assert entry.user_last_modified == "jdoe"
        assert entry.user_created == "Admin"
        assert entry.flags == 4

    def test_custom_property_filter(self, repository, tmp_path):
        """Test a property filter removes properties from the manifest."""
        from cms_export.exporter.config import ExportConfig
        from cms_export.exporter.exporter import ResourceExporter
        from cms_export.exporter.report import MemoryReport

        config = ExportConfig(export_file=str(tmp_path / "f.zip"), resources=["/a/doc.txt"])
        exporter = ResourceExporter(
            repository, config, report=MemoryReport(),
            property_filter=lambda prop: prop is not None and prop.name != "Title",
        )
        manifest = read_manifest(exporter.run().export_file)

        assert [prop.name for prop in manifest.entry("a/doc.txt").properties] == ["Template"]


class TestManifestReader:
    """Tests for reading manifests back."""

    def test_malformed_xml(self):
        """Test broken XML raises ManifestError."""
        with pytest.raises(ManifestError):
            parse_manifest("<export><files>")

    def test_missing_manifest(self, tmp_path):
        """Test an archive without manifest raises ManifestError."""
        archive = tmp_path / "empty.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("a.txt", b"a")

        with pytest.raises(ManifestError):
            read_manifest(archive)

    def test_entry_lookup(self):
        """Test entries are found by destination."""
        manifest = parse_manifest(
            "<export><files><file><destination>a</destination><type>folder</type></file></files></export>"
        )

        assert manifest.entry("a").type_name == "folder"
        with pytest.raises(KeyError):
            manifest.entry("b")
