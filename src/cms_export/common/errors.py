"""Base error definitions for cms_export packages."""

from typing import Any, Dict


class CmsExportError(Exception):
    """Base exception for all cms_export errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigurationError(CmsExportError):
    """Export parameters are invalid (destination, selection)."""
    pass


class RepositoryError(CmsExportError):
    """Base exception for content repository read failures."""
    pass


class ResourceNotFoundError(RepositoryError):
    """Resource does not exist at the requested path."""
    pass


class ResourceDeletedError(RepositoryError):
    """Resource vanished between listing and reading."""
    pass


class PrincipalNotFoundError(RepositoryError):
    """User or group id can no longer be resolved."""
    pass
