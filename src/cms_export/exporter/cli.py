"""CLI command for exporting a content tree."""

import logging
import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .config import CmsExportConfig, ExportConfig
from .errors import ImportExportError
from .exporter import ResourceExporter
from .report import LoggingReport
from .repository import FilesystemRepository
from cms_export.common import setup_logging, ConfigLoader, ConfigurationError

# Application name derived from package name
_package = __package__ or "cms_export.exporter"
APP_NAME = _package.split('.')[0].replace('_', '-')


def parse_content_age(value: str) -> datetime:
    """Parse an ISO date or date-time for --content-age."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not an ISO date: {value!r}") from None


def export_command(
    config: 'CmsExportConfig',
    source_dir_override: Optional[Path] = None,
    export_file_override: Optional[str] = None,
    resources_override: Optional[List[str]] = None,
    exclude_system_override: Optional[bool] = None,
    exclude_unchanged_override: Optional[bool] = None,
    content_age_override: Optional[datetime] = None,
) -> int:
    """Export resources of a local content tree.

    Args:
        config: Configuration object
        source_dir_override: Optional override for the content tree root
        export_file_override: Optional override for the archive path
        resources_override: Optional override for the selected paths
        exclude_system_override: Optional override for skipping /system/
        exclude_unchanged_override: Optional override for skipping unchanged files
        content_age_override: Optional override for the age threshold

    Returns:
        Exit code (0 for success)
    """
    logger_name = __package__ or __name__
    logger = logging.getLogger(logger_name)

    overrides = {
        "source_dir": str(source_dir_override) if source_dir_override else None,
        "export_file": export_file_override,
        "resources": resources_override or None,
        "exclude_system": exclude_system_override,
        "exclude_unchanged": exclude_unchanged_override,
        "content_age": content_age_override,
    }
    settings = config.export.model_dump()
    settings.update({key: value for key, value in overrides.items() if value is not None})

    try:
        export_config = ExportConfig(**settings)

        if not export_config.source_dir:
            logger.error("No source directory given (--source-dir or export.source_dir)")
            return 1
        source_dir = Path(export_config.source_dir)
        if not source_dir.is_dir():
            logger.error(f"Source directory does not exist: {source_dir}")
            return 1

        logger.info(f"Source directory: {source_dir}")
        logger.info(f"Export file: {export_config.export_file}")

        repository = FilesystemRepository(source_dir)
        exporter = ResourceExporter(repository, export_config, report=LoggingReport())
        result = exporter.run()

        logger.info(
            f"Export complete: {result.manifest_entries} manifest entries, "
            f"{result.content_entries} files archived in {result.elapsed_seconds:.1f}s"
        )
        return 0

    except ConfigurationError as e:
        logger.error(f"Invalid export parameters: {e}")
        return 1
    except ImportExportError as e:
        logger.error(f"Export failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Export failed: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for export command."""
    parser = argparse.ArgumentParser(
        description="Export content repository resources into a ZIP archive"
    )
    parser.add_argument(
        "--source-dir",
        type=Path,
        required=False,
        help="Directory served as the content tree (overrides config)"
    )
    parser.add_argument(
        "--export-file",
        required=False,
        help="Archive to write, '.zip' is appended when missing (overrides config)"
    )
    parser.add_argument(
        "--resource",
        action="append",
        dest="resources",
        help="Repository path to export, folders end with '/'; may be repeated"
    )
    parser.add_argument(
        "--exclude-system",
        action="store_true",
        help="Skip /system/ except bodies and galleries"
    )
    parser.add_argument(
        "--exclude-unchanged",
        action="store_true",
        help="Only export new or changed files"
    )
    parser.add_argument(
        "--content-age",
        type=parse_content_age,
        help="Skip resources last modified before this ISO date"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )

    args = parser.parse_args(argv)

    # Load config
    loader = ConfigLoader(
        app_name=APP_NAME,
        config_class=CmsExportConfig
    )

    config = loader.load(defaults_path=args.config)

    setup_logging(
        level=config.logging.level,
        format=config.logging.format,
        log_file=config.logging.file,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
        logger_levels=config.logging.logger_levels,
    )

    return export_command(
        config=config,
        source_dir_override=args.source_dir,
        export_file_override=args.export_file,
        resources_override=args.resources,
        exclude_system_override=True if args.exclude_system else None,
        exclude_unchanged_override=True if args.exclude_unchanged else None,
        content_age_override=args.content_age,
    )


if __name__ == "__main__":
    sys.exit(main())
