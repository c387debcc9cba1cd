"""Selection normalization.

Turns a caller's list of resource paths into a disjoint folder set and
file set, so no resource is reached twice by independent walks.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from cms_export.common.path_utils import is_folder_path, is_under

logger = logging.getLogger(__name__)


@dataclass
class ExportSelection:
    """Folder paths (trailing '/') and file paths to export, in caller order."""
    folders: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "ExportSelection":
        """Split paths by their trailing separator and normalize the result."""
        selection = cls()
        for path in paths:
            if is_folder_path(path):
                selection.folders.append(path)
            else:
                selection.files.append(path)
        check_redundancies(selection.folders, selection.files)
        return selection

    def __bool__(self) -> bool:
        return bool(self.folders or self.files)


def check_redundancies(folders: Optional[List[str]], files: List[str]) -> None:
    """Remove redundant selections, in place.

    1. A folder lying inside another selected folder is dropped; of two
       nested folders the shorter path is kept. Exact duplicates collapse
       to their first occurrence.
    2. A file lying inside any surviving folder is dropped, the folder
       walk reaches it anyway.

    Prefix tests work on whole path segments, so '/ab/' never counts as
    inside '/a/'. Surviving entries keep their relative order.

    Args:
        folders: Folder paths, each ending with '/'; None is a no-op
        files: File paths
    """
    if not folders:
        return

    redundant = [False] * len(folders)
    for i in range(len(folders)):
        for j in range(i + 1, len(folders)):
            if redundant[i] or redundant[j]:
                continue
            shorter, longer = (i, j) if len(folders[i]) <= len(folders[j]) else (j, i)
            if is_under(folders[longer], folders[shorter]):
                # equal paths: keep the first occurrence
                redundant[j if folders[i] == folders[j] else longer] = True

    for index in range(len(folders) - 1, -1, -1):
        if redundant[index]:
            logger.debug(f"Dropping nested folder selection: {folders[index]}")
            del folders[index]

    for index in range(len(files) - 1, -1, -1):
        if any(is_under(files[index], folder) for folder in folders):
            logger.debug(f"Dropping file selection covered by a folder: {files[index]}")
            del files[index]
