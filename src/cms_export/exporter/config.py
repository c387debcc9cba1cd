"""Configuration models for the exporter."""

import zipfile
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from cms_export.common import LoggingConfig
from .model import EPOCH

ARCHIVE_SUFFIX = ".zip"


class ExportConfig(BaseModel):
    """Parameters of one export run."""

    model_config = ConfigDict(extra='forbid')

    source_dir: Optional[str] = Field(
        default=None,
        description="Local directory served as the content tree by the command line tool"
    )
    export_file: str = Field(
        default="export.zip",
        description="Archive to write; '.zip' is appended when missing"
    )
    resources: List[str] = Field(
        default_factory=list,
        description="Repository paths to export, folders end with '/'"
    )
    exclude_system: bool = Field(
        default=False,
        description="Skip /system/ except bodies and galleries"
    )
    exclude_unchanged: bool = Field(
        default=False,
        description="Outside the online project, export only new or changed files"
    )
    export_userdata: bool = Field(
        default=False,
        description="Also export users and groups"
    )
    content_age: datetime = Field(
        default=EPOCH,
        description="Skip resources last modified before this time"
    )
    manifest_chunk_size: int = Field(
        default=4096,
        ge=256,
        description="Size of the chunks the manifest is copied into the archive with"
    )
    compression: Literal["deflated", "stored"] = Field(
        default="deflated",
        description="ZIP compression method"
    )

    @field_validator('export_file')
    @classmethod
    def ensure_zip_suffix(cls, v: str) -> str:
        """Append '.zip' unless the name already ends with it (any case)."""
        if not v.lower().endswith(ARCHIVE_SUFFIX):
            return v + ARCHIVE_SUFFIX
        return v

    @field_validator('content_age')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator('compression', mode='before')
    @classmethod
    def normalize_compression(cls, v: str) -> str:
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def zip_compression(self) -> int:
        return zipfile.ZIP_DEFLATED if self.compression == "deflated" else zipfile.ZIP_STORED


class CmsExportConfig(BaseModel):
    """Root configuration for the exporter."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
