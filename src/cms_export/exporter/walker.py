"""Resource tree walk.

Visits the normalized selection in order and hands every resource that
passes the inclusion filters to the manifest writer:

- for each selected folder: its ancestors (top-down), then the files in
  the folder, then each subfolder followed by its own contents;
- for each selected file: its ancestors, then the file.
"""

import logging
from datetime import datetime
from typing import List

from cms_export.common.errors import RepositoryError, ResourceDeletedError
from cms_export.common.path_utils import ancestor_folders
from .errors import ImportExportError
from .manifest import ManifestWriter
from .model import (
    EPOCH,
    VFS_PATH_BODIES,
    VFS_PATH_GALLERIES,
    VFS_PATH_SYSTEM,
    Resource,
    ResourceCapability,
    ResourceState,
)
from .repository import Repository
from .selection import ExportSelection
from .session import ExportSession

logger = logging.getLogger(__name__)


class ResourceTreeWalker:
    """Recursive traversal feeding the manifest writer.

    Args:
        repository: Content repository to read from
        writer: Open manifest writer
        session: State of the current export
        content_age: Resources modified before this are skipped
        exclude_system: Skip the system subtree (except bodies and galleries)
        exclude_unchanged: Only export new or changed files
    """

    def __init__(
        self,
        repository: Repository,
        writer: ManifestWriter,
        session: ExportSession,
        content_age: datetime = EPOCH,
        exclude_system: bool = False,
        exclude_unchanged: bool = False,
    ):
        self.repository = repository
        self.writer = writer
        self.session = session
        self.content_age = content_age
        self.exclude_system = exclude_system
        self.exclude_unchanged = exclude_unchanged

    def export_selection(self, selection: ExportSelection) -> None:
        for folder in selection.folders:
            if self.add_ancestors(folder):
                self.walk_folder(folder)
        for path in selection.files:
            self.export_single_file(path)

    # Filters

    def should_export_file(self, resource: Resource) -> bool:
        """Inclusion test for a file found in a folder listing."""
        if resource.is_deleted or resource.is_companion:
            return False
        if self.repository.is_online_project:
            # no unchanged baseline to compare against online
            return True
        if self.exclude_unchanged and resource.state not in (ResourceState.NEW, ResourceState.CHANGED):
            return False
        return resource.date_last_modified >= self.content_age

    def should_walk_folder(self, path: str) -> bool:
        """Inclusion test for a subfolder."""
        if path.lower() == VFS_PATH_SYSTEM:
            return True
        if path.startswith(VFS_PATH_BODIES) or path.startswith(VFS_PATH_GALLERIES):
            return True
        return not (self.exclude_system and path.startswith(VFS_PATH_SYSTEM))

    # Traversal

    def walk_folder(self, folder_path: str) -> None:
        """Export the files of a folder, then recurse into its subfolders."""
        try:
            subfolders, files = self.repository.read_children(folder_path)
        except ResourceDeletedError:
            logger.debug(f"Folder vanished during export: {folder_path}")
            return
        except RepositoryError as e:
            raise ImportExportError(
                "ERR_ADDING_CHILD_RESOURCES_1", folder_path, cause=e, path=folder_path
            ) from e

        for resource in files:
            if self.should_export_file(resource):
                self._export_file(resource)

        for folder in subfolders:
            if folder.is_deleted or not self.should_walk_folder(folder.path):
                continue
            if folder.path not in self.session.emitted_folders and folder.date_last_modified >= self.content_age:
                self.writer.append_resource(folder, write_source=False)
                self.session.emitted_folders.add(folder.path)
            # nested content may be newer than its folder
            self.walk_folder(folder.path)

    def export_single_file(self, path: str, required: bool = True) -> bool:
        """Export one file with its ancestor folders.

        Args:
            path: File path
            required: If False, a missing file is reported and skipped
                instead of aborting the export

        Returns:
            True if the file was handed to the writer
        """
        try:
            resource = self.repository.read_resource(path)
        except ResourceDeletedError:
            logger.debug(f"File vanished during export: {path}")
            return False
        except RepositoryError as e:
            if not required:
                logger.warning(f"Skipping missing file {path}: {e}")
                return False
            raise ImportExportError("ERR_ADDING_FILE_1", path, cause=e, path=path) from e

        if resource.is_deleted or resource.is_companion:
            return False
        if resource.is_folder:
            raise ImportExportError("ERR_ADDING_FILE_1", path, path=path)

        if not self.add_ancestors(path):
            return False
        return self._export_file(resource)

    def _export_file(self, resource: Resource) -> bool:
        try:
            self.writer.append_resource(resource)
        except ResourceDeletedError:
            logger.debug(f"File vanished during export: {resource.path}")
            return False

        try:
            resource_type = self.repository.read_resource_type(resource.type_id)
        except RepositoryError as e:
            raise ImportExportError("ERR_ADDING_FILE_1", resource.path, cause=e, path=resource.path) from e
        if resource_type.has(ResourceCapability.HAS_COMPANION_FILE):
            self.session.page_files.add(resource.path)
        return True

    def add_ancestors(self, path: str) -> bool:
        """Declare the folders above a resource, root-adjacent first.

        Each folder is written at most once per session. The repository
        root itself is never written.

        Returns:
            False if one of the folders is deleted or vanished, in which
            case nothing is written and the resource must be skipped
        """
        pending: List[Resource] = []
        for folder_path in ancestor_folders(path):
            if folder_path in self.session.emitted_folders:
                continue
            try:
                folder = self.repository.read_resource(folder_path)
            except ResourceDeletedError:
                logger.debug(f"Folder vanished during export: {folder_path}")
                return False
            except RepositoryError as e:
                raise ImportExportError(
                    "ERR_ADDING_PARENT_FOLDERS_1", path, cause=e, path=folder_path
                ) from e
            if folder.is_deleted:
                logger.debug(f"Skipping {path}: folder {folder_path} is deleted")
                return False
            pending.append(folder)

        for folder in pending:
            self.writer.append_resource(folder, write_source=False)
            self.session.emitted_folders.add(folder.path)
        return True
