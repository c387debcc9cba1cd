"""Logging section of the export configuration."""

from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

# Logger receiving the per-resource progress lines of an export
REPORT_LOGGER = "cms_export.report"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class LoggingConfig(BaseModel):
    """Console and log file settings.

    The log file is always written as JSON and rotated by size. Progress
    lines go to their own logger so a long export can be run with
    ``report_level = "WARNING"`` and only show skipped or failed
    resources.
    """

    model_config = ConfigDict(extra='forbid')

    level: LogLevel = Field(default="INFO", description="Root log level")
    format: Literal["simple", "detailed", "json"] = Field(
        default="simple",
        description="Console format type"
    )
    report_level: LogLevel = Field(
        default="INFO",
        description="Level of the export progress lines"
    )
    file: Optional[Path] = Field(default=None, description="Optional JSON log file")
    max_file_size_mb: int = Field(default=10, ge=1, description="Log file size before rotation")
    backup_count: int = Field(default=5, ge=0, description="Rotated log files to keep")

    @field_validator('level', 'report_level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator('file', mode='before')
    @classmethod
    def empty_file_is_none(cls, v):
        # An empty environment override disables the log file
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('file')
    @classmethod
    def validate_file(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return v
        v = v.expanduser()
        if v.is_dir():
            raise ValueError(f"log file is a directory: {v}")
        if v.suffix.lower() == ".zip":
            raise ValueError(f"log file must not be a zip archive: {v}")
        return v

    @property
    def logger_levels(self) -> Dict[str, str]:
        """Per-logger level overrides for ``setup_logging``."""
        return {REPORT_LOGGER: self.report_level}
