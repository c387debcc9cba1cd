"""Shared fixtures for exporter tests."""

import pytest

from cms_export.exporter.config import ExportConfig
from cms_export.exporter.exporter import ResourceExporter
from cms_export.exporter.manifest_reader import read_manifest
from cms_export.exporter.model import Group, User
from cms_export.exporter.report import MemoryReport
from cms_export.exporter.repository import InMemoryRepository
from cms_export.exporter.resource_types import IMAGE, PAGE, PLAIN


@pytest.fixture
def site_repository():
    """Small site tree in the online project.

    /sites/default/index.html is a page whose companion lives in
    /system/bodies/index.html.
    """
    repo = InMemoryRepository()
    repo.add_group(Group("g-users", "Users"))
    repo.add_user(User("u-admin", "Admin"), ["Users"])
    repo.add_file("/sites/default/index.html", b"<html>index</html>", type_id=PAGE.type_id,
                  user_last_modified="u-admin", user_created="u-admin")
    repo.add_file("/sites/default/about/team.html", b"<html>team</html>", type_id=PLAIN.type_id)
    repo.add_file("/system/bodies/index.html", b"<p>body</p>", type_id=PLAIN.type_id)
    repo.add_file("/system/modules/demo/module.xml", b"<module/>", type_id=PLAIN.type_id)
    repo.add_file("/system/galleries/pics/logo.png", b"\x89PNG", type_id=IMAGE.type_id)
    return repo


@pytest.fixture
def report():
    return MemoryReport()


@pytest.fixture
def run_export(tmp_path, report):
    """Run an export into tmp_path and return (result, manifest)."""

    def _run(repository, resources, **settings):
        config = ExportConfig(export_file=str(tmp_path / "export.zip"), resources=resources, **settings)
        result = ResourceExporter(repository, config, report=report).run()
        return result, read_manifest(result.export_file)

    return _run
