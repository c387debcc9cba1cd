"""Export-specific errors."""

from typing import Any, Optional

from cms_export.common import CmsExportError, ConfigurationError
from .messages import message


class ImportExportError(CmsExportError):
    """An export was aborted.

    Carries the catalogue key of the message and the underlying cause
    so callers can localize the text and diagnose the failure.
    """

    def __init__(
        self,
        message_key: str,
        *args: Any,
        cause: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        super().__init__(message(message_key, *args), **context)
        self.message_key = message_key
        self.message_args = args
        self.cause = cause


class ManifestError(ImportExportError):
    """The manifest document is structurally broken."""
    pass


class InvalidExportFileError(ConfigurationError):
    """The export destination cannot be written."""

    message_key = "ERR_INVALID_EXPORT_FILE_1"

    def __init__(self, export_file: Any, reason: str) -> None:
        super().__init__(
            f"{message(self.message_key, export_file)}: {reason}",
            export_file=str(export_file),
            reason=reason,
        )


class InvalidSelectionError(ConfigurationError):
    """The resource selection is empty or malformed."""

    message_key = "ERR_INVALID_SELECTION_1"

    def __init__(self, reason: str, **context: Any) -> None:
        super().__init__(message(self.message_key, reason), reason=reason, **context)
