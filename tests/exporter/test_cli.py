"""Tests for the export command line."""

import argparse
import zipfile
from datetime import datetime
from unittest.mock import patch

import pytest

from cms_export.exporter.cli import APP_NAME, export_command, main, parse_content_age
from cms_export.exporter.config import CmsExportConfig
from cms_export.exporter.manifest_reader import read_manifest


@pytest.fixture
def content_tree(tmp_path):
    root = tmp_path / "content"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "readme.txt").write_text("hello", encoding="utf-8")
    (root / "index.html").write_text("<html/>", encoding="utf-8")
    return root


class TestExportCommand:
    """Tests for export_command."""

    def test_app_name(self):
        """Test the application name is derived from the package."""
        assert APP_NAME == "cms-export"

    def test_exports_tree(self, content_tree, tmp_path):
        """Test a local tree is exported."""
        exit_code = export_command(
            CmsExportConfig(),
            source_dir_override=content_tree,
            export_file_override=str(tmp_path / "out"),
            resources_override=["/docs/", "/index.html"],
        )

        assert exit_code == 0
        manifest = read_manifest(tmp_path / "out.zip")
        assert [entry.destination for entry in manifest.entries] == [
            "docs", "docs/readme.txt", "index.html",
        ]
        with zipfile.ZipFile(tmp_path / "out.zip") as zf:
            assert zf.read("docs/readme.txt") == b"hello"

    def test_config_values_used(self, content_tree, tmp_path):
        """Test settings come from the config when not overridden."""
        config = CmsExportConfig(export={
            "source_dir": str(content_tree),
            "export_file": str(tmp_path / "from-config.zip"),
            "resources": ["/index.html"],
        })

        assert export_command(config) == 0
        assert (tmp_path / "from-config.zip").exists()

    def test_missing_source_dir(self, tmp_path):
        """Test a missing source directory fails."""
        exit_code = export_command(
            CmsExportConfig(),
            source_dir_override=tmp_path / "missing",
            export_file_override=str(tmp_path / "out.zip"),
            resources_override=["/"],
        )
        assert exit_code == 1

    def test_no_source_dir(self, tmp_path):
        """Test a source directory is required."""
        assert export_command(CmsExportConfig(), resources_override=["/"]) == 1

    def test_invalid_selection(self, content_tree, tmp_path):
        """Test an empty selection fails without an archive."""
        exit_code = export_command(
            CmsExportConfig(),
            source_dir_override=content_tree,
            export_file_override=str(tmp_path / "out.zip"),
        )

        assert exit_code == 1
        assert not (tmp_path / "out.zip").exists()

    def test_aborted_export(self, content_tree, tmp_path):
        """Test a missing selected file fails the command."""
        exit_code = export_command(
            CmsExportConfig(),
            source_dir_override=content_tree,
            export_file_override=str(tmp_path / "out.zip"),
            resources_override=["/nope.txt"],
        )
        assert exit_code == 1


class TestMain:
    """Tests for argument parsing."""

    def test_parse_content_age(self):
        """Test ISO dates are accepted."""
        assert parse_content_age("2024-03-05") == datetime(2024, 3, 5)
        with pytest.raises(argparse.ArgumentTypeError):
            parse_content_age("yesterday")

    def test_main_passes_overrides(self, content_tree, tmp_path):
        """Test command line options reach export_command."""
        argv = [
            "--source-dir", str(content_tree),
            "--export-file", str(tmp_path / "cli"),
            "--resource", "/docs/",
            "--resource", "/index.html",
            "--exclude-system",
            "--content-age", "2024-01-01",
        ]
        with patch("cms_export.exporter.cli.ConfigLoader") as loader_class, \
             patch("cms_export.exporter.cli.setup_logging") as setup, \
             patch("cms_export.exporter.cli.export_command", return_value=0) as command:
            loader_class.return_value.load.return_value = CmsExportConfig()

            assert main(argv) == 0

        setup.assert_called_once_with(
            level="INFO",
            format="simple",
            log_file=None,
            max_file_size_mb=10,
            backup_count=5,
            logger_levels={"cms_export.report": "INFO"},
        )
        kwargs = command.call_args.kwargs
        assert kwargs["source_dir_override"] == content_tree
        assert kwargs["export_file_override"] == str(tmp_path / "cli")
        assert kwargs["resources_override"] == ["/docs/", "/index.html"]
        assert kwargs["exclude_system_override"] is True
        assert kwargs["exclude_unchanged_override"] is None
        assert kwargs["content_age_override"] == datetime(2024, 1, 1)

    def test_main_end_to_end(self, content_tree, tmp_path):
        """Test a full run through main."""
        argv = [
            "--source-dir", str(content_tree),
            "--export-file", str(tmp_path / "full.zip"),
            "--resource", "/",
        ]
        with patch("cms_export.exporter.cli.ConfigLoader") as loader_class, \
             patch("cms_export.exporter.cli.setup_logging"):
            loader_class.return_value.load.return_value = CmsExportConfig()

            assert main(argv) == 0

        manifest = read_manifest(tmp_path / "full.zip")
        assert "docs/readme.txt" in [entry.destination for entry in manifest.entries]
