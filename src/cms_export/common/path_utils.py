"""Path utilities for repository paths.

Repository paths are absolute, '/'-separated and case-sensitive.
Folder paths carry a trailing separator, file paths do not.
"""

import unicodedata
from pathlib import Path
from typing import List

FOLDER_SEPARATOR = "/"


def normalize_path(path: Path | str) -> str:
    """
    Normalize a path for consistent storage and comparison.
    
    Applies Unicode NFC normalization and converts backslashes to
    forward slashes.
    
    Args:
        path: Path object or string to normalize
        
    Returns:
        Normalized path string
        
    Examples:
        >>> normalize_path(r"sites\\default\\index.html")
        'sites/default/index.html'
    """
    normalized = unicodedata.normalize('NFC', str(path))
    return normalized.replace('\\', '/')


def is_folder_path(path: str) -> bool:
    """True if the path names a folder (trailing separator)."""
    return path.endswith(FOLDER_SEPARATOR)


def as_folder_path(path: str) -> str:
    """Append the trailing separator if missing."""
    return path if is_folder_path(path) else path + FOLDER_SEPARATOR


def trim_resource_name(path: str) -> str:
    """Strip one leading and one trailing separator.

    This is the form used for archive entry names and manifest
    destinations: '/a/b/' -> 'a/b', '/a/c.txt' -> 'a/c.txt'.
    """
    if path.startswith(FOLDER_SEPARATOR):
        path = path[1:]
    if path.endswith(FOLDER_SEPARATOR):
        path = path[:-1]
    return path


def resource_name(path: str) -> str:
    """Last path segment, without separators."""
    return trim_resource_name(path).rsplit(FOLDER_SEPARATOR, 1)[-1]


def is_under(path: str, folder: str) -> bool:
    """True if path lies inside folder (or is the folder itself).

    The comparison works on whole segments: '/ab/x' is not under '/a/'.
    """
    return path.startswith(as_folder_path(folder))


def containing_folder(path: str) -> str:
    """Folder path containing the given resource.

    A folder path is returned unchanged, '/a/b.txt' -> '/a/'.
    """
    if is_folder_path(path):
        return path
    return path[:path.rfind(FOLDER_SEPARATOR) + 1]


def ancestor_folders(path: str) -> List[str]:
    """Folders from the root-adjacent one down to the containing folder.

    The repository root itself is excluded:
    '/a/b/c.txt' -> ['/a/', '/a/b/'], '/a/b/' -> ['/a/', '/a/b/'].
    """
    folder = containing_folder(path)
    chain = []
    while len(folder) > len(FOLDER_SEPARATOR):
        chain.append(folder)
        folder = folder[:-1]
        folder = folder[:folder.rfind(FOLDER_SEPARATOR) + 1]
    chain.reverse()
    return chain
