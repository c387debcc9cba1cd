"""Content export engine: resource walk, manifest and archive assembly."""

from .config import CmsExportConfig, ExportConfig
from .errors import ImportExportError, ManifestError, InvalidExportFileError, InvalidSelectionError
from .exporter import ResourceExporter, ExportResult
from .manifest_reader import Manifest, ManifestEntry, read_manifest, parse_manifest
from .model import (
    AccessControlEntry, Group, Property, PropertyScope, Resource, ResourceCapability,
    ResourceState, ResourceType, User
)
from .report import Report, ReportFormat, LoggingReport, MemoryReport
from .repository import Repository, InMemoryRepository, FilesystemRepository
from .resource_types import ResourceTypeRegistry
from .selection import ExportSelection, check_redundancies

__all__ = [
    "CmsExportConfig",
    "ExportConfig",
    "ImportExportError",
    "ManifestError",
    "InvalidExportFileError",
    "InvalidSelectionError",
    "ResourceExporter",
    "ExportResult",
    "Manifest",
    "ManifestEntry",
    "read_manifest",
    "parse_manifest",
    "AccessControlEntry",
    "Group",
    "Property",
    "PropertyScope",
    "Resource",
    "ResourceCapability",
    "ResourceState",
    "ResourceType",
    "User",
    "Report",
    "ReportFormat",
    "LoggingReport",
    "MemoryReport",
    "Repository",
    "InMemoryRepository",
    "FilesystemRepository",
    "ResourceTypeRegistry",
    "ExportSelection",
    "check_redundancies",
]
