"""Common utilities for cms-export packages."""

from .config import ConfigLoader
from .logging import setup_logging, LogContext
from .logging_config import LoggingConfig
from .errors import (
    CmsExportError, ConfigurationError, RepositoryError,
    ResourceNotFoundError, ResourceDeletedError, PrincipalNotFoundError
)
from .path_utils import (
    FOLDER_SEPARATOR, normalize_path, is_folder_path, as_folder_path,
    trim_resource_name, resource_name, is_under, containing_folder, ancestor_folders
)

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'setup_logging',
    'LogContext',
    'CmsExportError',
    'ConfigurationError',
    'RepositoryError',
    'ResourceNotFoundError',
    'ResourceDeletedError',
    'PrincipalNotFoundError',
    'FOLDER_SEPARATOR',
    'normalize_path',
    'is_folder_path',
    'as_folder_path',
    'trim_resource_name',
    'resource_name',
    'is_under',
    'containing_folder',
    'ancestor_folders',
]
