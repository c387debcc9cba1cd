"""Companion file resolution.

Resources of a type with a companion file (the legacy page type) keep
their body in a parallel tree under ``/system/bodies/``. The walk only
records such pages; once the explicit selection is done, the resolver
exports each page's companion through the single-file path.
"""

import logging
from typing import List, Optional

from .model import VFS_FOLDER_SITES, VFS_PATH_BODIES
from .report import Report, ReportFormat
from .session import ExportSession
from .walker import ResourceTreeWalker

logger = logging.getLogger(__name__)


def companion_path(page_path: str) -> Optional[str]:
    """Path of the companion of a page.

    '/folder/page.html' -> '/system/bodies/folder/page.html'. A page
    under the sites namespace loses the namespace and exactly one tenant
    segment first: '/sites/default/folder/page.html' ->
    '/system/bodies/folder/page.html'. Only a leading '/sites/' counts;
    later occurrences are part of the page's own path.

    Returns:
        The companion path, or None for a sites path with nothing below
        the tenant segment
    """
    path = page_path
    if path.startswith(VFS_FOLDER_SITES):
        below_namespace = path[len(VFS_FOLDER_SITES):]
        separator = below_namespace.find("/")
        if separator < 0 or separator == len(below_namespace) - 1:
            return None
        path = below_namespace[separator:]
    return VFS_PATH_BODIES.rstrip("/") + path


class DependencyResolver:
    """Exports companions of the pages recorded during the walk."""

    def __init__(self, walker: ResourceTreeWalker, session: ExportSession, report: Report):
        self.walker = walker
        self.session = session
        self.report = report

    def pending_companions(self) -> List[str]:
        """Companion paths of all recorded pages, sorted."""
        companions = []
        for page in sorted(self.session.page_files):
            companion = companion_path(page)
            if companion is None:
                logger.warning(f"No companion path for page outside a site: {page}")
                continue
            if companion not in companions:
                companions.append(companion)
        return companions

    def resolve(self) -> int:
        """Export all pending companions.

        Returns:
            Number of companions handed to the writer
        """
        companions = self.pending_companions()
        if not companions:
            return 0

        self.report.println(self.report.key("report.exporting_companions"), ReportFormat.HEADLINE)
        exported = 0
        for companion in companions:
            if self.walker.export_single_file(companion, required=False):
                exported += 1
            else:
                self.report.println(
                    f"{companion}{self.report.key('report.dots')}{self.report.key('report.skipped')}",
                    ReportFormat.WARNING,
                )
        logger.info(f"Exported {exported}/{len(companions)} companion file(s)")
        return exported
