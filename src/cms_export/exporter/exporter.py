"""Export orchestration.

Validates the parameters, then runs one export session: info header,
optional module descriptor, resource walk, companion resolution,
optional principal section, and finalization of the archive.
"""

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from cms_export.common import CmsExportError, LogContext, normalize_path
from .companions import DependencyResolver
from .config import ExportConfig
from .errors import ImportExportError, InvalidExportFileError, InvalidSelectionError
from .manifest import ManifestWriter, Tags, default_property_filter
from .model import Property
from .principals import PrincipalExporter
from .report import LoggingReport, Report, ReportFormat
from .repository import Repository
from .selection import ExportSelection
from .session import ExportSession
from .walker import ResourceTreeWalker

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Summary of a finished export."""
    export_file: Path
    manifest_entries: int
    content_entries: int
    companions: int = 0
    groups: int = 0
    users: int = 0
    sidecar_failures: int = 0
    elapsed_seconds: float = 0.0


class ResourceExporter:
    """Exports a selection of repository resources into a ZIP archive.

    Args:
        repository: Content repository to read from
        config: Export parameters
        report: Progress sink, logs through ``logging`` by default
        property_filter: Predicate deciding which properties are written
        module_element: Optional module descriptor written after the info header
    """

    def __init__(
        self,
        repository: Repository,
        config: ExportConfig,
        report: Optional[Report] = None,
        property_filter: Callable[[Optional[Property]], bool] = default_property_filter,
        module_element: Optional[ET.Element] = None,
    ):
        self.repository = repository
        self.config = config
        self.report = report or LoggingReport()
        self.property_filter = property_filter
        self.module_element = module_element

    def validate(self) -> tuple[Path, ExportSelection]:
        """Check destination and selection before anything is written.

        Raises:
            InvalidExportFileError: Destination is not writable
            InvalidSelectionError: Selection is empty or malformed
        """
        export_file = Path(self.config.export_file)
        parent = export_file.parent
        if not parent.is_dir():
            raise InvalidExportFileError(export_file, "target directory does not exist")
        if not os.access(parent, os.W_OK):
            raise InvalidExportFileError(export_file, "target directory is not writable")
        if export_file.is_dir():
            raise InvalidExportFileError(export_file, "target is a directory")
        if export_file.exists() and not os.access(export_file, os.W_OK):
            raise InvalidExportFileError(export_file, "target file is not writable")

        paths = self._selected_paths()
        selection = ExportSelection.from_paths(paths)
        if not selection:
            raise InvalidSelectionError("nothing selected")
        return export_file, selection

    def _selected_paths(self) -> List[str]:
        paths = []
        for raw in self.config.resources:
            path = normalize_path(raw.strip())
            if not path.startswith("/"):
                raise InvalidSelectionError(f"path is not absolute: {raw!r}", path=raw)
            paths.append(path)
        return paths

    def run(self) -> ExportResult:
        """Run the export.

        Raises:
            ConfigurationError: Invalid parameters, nothing was written
            ImportExportError: The export was aborted; the archive is invalid
        """
        export_file, selection = self.validate()
        session = ExportSession()
        writer = ManifestWriter(
            self.repository,
            self.report,
            session,
            export_file,
            chunk_size=self.config.manifest_chunk_size,
            compression=self.config.zip_compression,
            property_filter=self.property_filter,
        )

        with LogContext(export_file=str(export_file)):
            logger.info(
                f"Export started: {{'folders': {len(selection.folders)}, 'files': {len(selection.files)}, "
                f"'project': {self.repository.project_name!r}}}"
            )
            self.report.println(self.report.key("report.export_begin", export_file), ReportFormat.HEADLINE)
            try:
                result = self._export(writer, session, selection, export_file)
            except ImportExportError as e:
                self._fail(writer, e)
                raise
            except (CmsExportError, OSError, ValueError) as e:
                self._fail(writer, e)
                raise ImportExportError(
                    "ERR_EXPORTING_TO_FILE_1", export_file, cause=e, export_file=str(export_file)
                ) from e

            result.elapsed_seconds = self.report.elapsed_seconds()
            logger.info(
                f"Export complete: {{'manifest_entries': {result.manifest_entries}, "
                f"'content_entries': {result.content_entries}, 'companions': {result.companions}}}"
            )
            self.report.println(self.report.key("report.export_end", export_file), ReportFormat.HEADLINE)
            return result

    def _export(
        self,
        writer: ManifestWriter,
        session: ExportSession,
        selection: ExportSelection,
        export_file: Path,
    ) -> ExportResult:
        writer.open()
        if self.module_element is not None:
            writer.write_element(self.module_element)

        writer.open_section(Tags.FILES)
        walker = ResourceTreeWalker(
            self.repository,
            writer,
            session,
            content_age=self.config.content_age,
            exclude_system=self.config.exclude_system,
            exclude_unchanged=self.config.exclude_unchanged,
        )
        walker.export_selection(selection)
        companions = DependencyResolver(walker, session, self.report).resolve()
        writer.close_section(Tags.FILES)

        result = ExportResult(
            export_file=export_file,
            manifest_entries=session.manifest_entries,
            content_entries=session.content_entries,
            companions=companions,
        )

        if self.config.export_userdata:
            principals = PrincipalExporter(self.repository, writer, self.report)
            principals.export()
            result.groups = principals.groups_exported
            result.users = principals.users_exported
            result.sidecar_failures = principals.sidecar_failures

        writer.close()
        return result

    def _fail(self, writer: ManifestWriter, error: BaseException) -> None:
        writer.abort()
        self.report.println_error(error)
        logger.error(f"Export aborted: {error}")
        logger.debug("Export failure details", exc_info=error)
