"""Manifest writer and archive assembler.

The archive is a ZIP file holding one entry per exported content plus
the XML manifest describing every exported resource. The manifest is
generated as a stream: each finished entry element is serialized and
dropped right away, so only the chain of open sections is kept in
memory. The text is spooled to a temporary file and copied into the
archive in fixed-size chunks when the export is closed.
"""

import logging
import re
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Callable, List, Optional, TextIO, Tuple

from cms_export import __version__
from cms_export.common.errors import PrincipalNotFoundError, RepositoryError, ResourceDeletedError
from cms_export.common.path_utils import trim_resource_name
from .errors import ImportExportError, ManifestError
from .model import (
    DEFAULT_ADMIN_USER,
    PRINCIPAL_GROUP,
    PRINCIPAL_USER,
    RESOURCE_FLAG_LABELLINK,
    Property,
    Resource,
)
from .report import Report, ReportFormat
from .repository import Repository
from .session import ExportSession

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.xml"
EXPORT_VERSION = "4"
MANIFEST_CHUNK_SIZE = 4096
SPOOL_MAX_SIZE = 1024 * 1024

# ZIP timestamps cannot predate 1980
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

# Characters XML 1.0 cannot represent, escaped or not
_XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


class Tags:
    """Element and attribute names of the manifest."""
    EXPORT = "export"
    INFO = "info"
    CREATOR = "creator"
    PRODUCT_VERSION = "product_version"
    CREATEDATE = "createdate"
    PROJECT = "project"
    EXPORT_VERSION = "export_version"
    FILES = "files"
    FILE = "file"
    SOURCE = "source"
    DESTINATION = "destination"
    TYPE = "type"
    UUIDRESOURCE = "uuidresource"
    DATELASTMODIFIED = "datelastmodified"
    USERLASTMODIFIED = "userlastmodified"
    DATECREATED = "datecreated"
    USERCREATED = "usercreated"
    DATERELEASED = "datereleased"
    DATEEXPIRED = "dateexpired"
    FLAGS = "flags"
    PROPERTIES = "properties"
    PROPERTY = "property"
    PROPERTY_ATTRIB_TYPE = "type"
    PROPERTY_ATTRIB_TYPE_SHARED = "shared"
    NAME = "name"
    VALUE = "value"
    ACCESSCONTROL_ENTRIES = "accesscontrol"
    ACCESSCONTROL_ENTRY = "accessentry"
    ACCESSCONTROL_PRINCIPAL = "uuidprincipal"
    ACCESSCONTROL_PERMISSIONSET = "permissionset"
    ACCESSCONTROL_ALLOWED = "allowed"
    ACCESSCONTROL_DENIED = "denied"
    USERGROUPDATA = "usergroupdata"
    GROUPDATA = "groupdata"
    DESCRIPTION = "description"
    PARENTGROUP = "parentgroup"
    USERDATA = "userdata"
    PASSWORD = "password"
    FIRSTNAME = "firstname"
    LASTNAME = "lastname"
    EMAIL = "email"
    ADDRESS = "address"
    USERINFO = "userinfo"
    USERGROUPS = "usergroups"
    GROUPNAME = "groupname"


def default_property_filter(prop: Optional[Property]) -> bool:
    """Export every property that exists."""
    return prop is not None


def format_header_date(value: datetime) -> str:
    """RFC 1123 date, e.g. 'Tue, 05 Mar 2024 14:02:11 GMT'. Naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def zip_date_time(value: datetime) -> Tuple[int, int, int, int, int, int]:
    """ZIP entry timestamp (UTC) for a resource date."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    stamp = value.astimezone(timezone.utc).timetuple()[:6]
    return max(stamp, _ZIP_EPOCH)


def add_text_element(parent: ET.Element, tag: str, text: Optional[str]) -> ET.Element:
    """Append a text child.

    Raises:
        ManifestError: The text holds a character XML 1.0 cannot carry
    """
    text = "" if text is None else str(text)
    match = _XML_ILLEGAL_CHARS.search(text)
    if match:
        raise ManifestError(
            "ERR_WRITING_MANIFEST_0", element=tag, character=hex(ord(match.group())), position=match.start()
        )
    child = ET.SubElement(parent, tag)
    child.text = text
    return child


class StreamingXmlWriter:
    """Writes an XML document section by section.

    Structural sections are opened and closed explicitly; finished leaf
    elements are serialized immediately and not retained.
    """

    def __init__(self, stream: TextIO, indent: str = "  "):
        self.stream = stream
        self.indent = indent
        self._open: List[str] = []

    @property
    def depth(self) -> int:
        return len(self._open)

    def start_document(self) -> None:
        self.stream.write('<?xml version="1.0" encoding="UTF-8"?>\n')

    def write_open(self, tag: str) -> None:
        self.stream.write(f"{self.indent * self.depth}<{tag}>\n")
        self._open.append(tag)

    def write_element(self, element: ET.Element) -> None:
        """Serialize a finished element at the current depth."""
        if not self._open:
            raise ManifestError("ERR_WRITING_MANIFEST_0", element=element.tag)
        ET.indent(element, space=self.indent, level=self.depth)
        self.stream.write(self.indent * self.depth)
        self.stream.write(ET.tostring(element, encoding="unicode"))
        self.stream.write("\n")

    def write_close(self, tag: str) -> None:
        if not self._open or self._open[-1] != tag:
            raise ManifestError("ERR_WRITING_MANIFEST_0", expected=tag, open=list(self._open))
        self._open.pop()
        self.stream.write(f"{self.indent * self.depth}</{tag}>\n")

    def end_document(self) -> None:
        if self._open:
            raise ManifestError("ERR_WRITING_MANIFEST_0", unclosed=list(self._open))
        self.stream.flush()


class ManifestWriter:
    """Owns the archive and the manifest stream of one export.

    Both are finalized together by ``close``; an archive closed through
    ``abort`` has no manifest and must be discarded.
    """

    def __init__(
        self,
        repository: Repository,
        report: Report,
        session: ExportSession,
        export_file: Path,
        chunk_size: int = MANIFEST_CHUNK_SIZE,
        compression: int = zipfile.ZIP_DEFLATED,
        property_filter: Callable[[Optional[Property]], bool] = default_property_filter,
    ):
        self.repository = repository
        self.report = report
        self.session = session
        self.export_file = Path(export_file)
        self.chunk_size = chunk_size
        self.compression = compression
        self.property_filter = property_filter

        self._zip: Optional[zipfile.ZipFile] = None
        self._spool: Optional[tempfile.SpooledTemporaryFile] = None
        self._xml: Optional[StreamingXmlWriter] = None

    def open(self) -> None:
        """Create the archive and start the manifest with its info header."""
        logger.info(f"Opening export archive: {self.export_file}")
        try:
            self._zip = zipfile.ZipFile(self.export_file, "w", compression=self.compression)
        except OSError as e:
            raise ImportExportError(
                "ERR_EXPORTING_TO_FILE_1", self.export_file, cause=e, export_file=str(self.export_file)
            ) from e

        self._spool = tempfile.SpooledTemporaryFile(
            max_size=SPOOL_MAX_SIZE, mode="w+", encoding="utf-8", newline="\n"
        )
        self._xml = StreamingXmlWriter(self._spool)
        self._xml.start_document()
        self._xml.write_open(Tags.EXPORT)

        info = ET.Element(Tags.INFO)
        add_text_element(info, Tags.CREATOR, self.repository.current_user_name)
        add_text_element(info, Tags.PRODUCT_VERSION, __version__)
        add_text_element(info, Tags.CREATEDATE, datetime.now().strftime("%Y-%m-%d %H:%M"))
        add_text_element(info, Tags.PROJECT, self.repository.project_name)
        add_text_element(info, Tags.EXPORT_VERSION, EXPORT_VERSION)
        self._xml.write_element(info)

    # Sections

    def write_element(self, element: ET.Element) -> None:
        """Write a caller-built element (e.g. a module descriptor)."""
        self._xml.write_element(element)

    def open_section(self, tag: str) -> None:
        self._xml.write_open(tag)

    def close_section(self, tag: str) -> None:
        self._xml.write_close(tag)

    # Resources

    def append_resource(self, resource: Resource, write_source: bool = True) -> None:
        """Export one resource.

        For a file whose content identity was not archived yet, the
        content is written as an archive entry and the manifest entry
        carries the source tag. Every call appends a manifest entry and
        one progress line.

        Raises:
            ResourceDeletedError: The file vanished before its content was
                read; nothing has been written for it
            ImportExportError: Any other read or write failure
        """
        content = None
        if resource.is_file and resource.resource_id not in self.session.exported_ids:
            content = self._read_content(resource)

        count = self.session.next_count()
        self.report.print(f" ( {count} ) ", ReportFormat.NOTE)
        self.report.print(self.report.key("report.exporting"), ReportFormat.NOTE)
        self.report.print(resource.path)
        self.report.print(self.report.key("report.dots"))

        source = None
        if content is not None:
            self.session.claim_content(resource.resource_id)
            self.write_archive_entry(
                trim_resource_name(resource.path), content, zip_date_time(resource.date_last_modified)
            )
            self.session.content_entries += 1
            if write_source:
                source = trim_resource_name(resource.path)

        try:
            entry = self._build_entry(resource, source)
        except RepositoryError as e:
            raise ImportExportError(
                "ERR_APPENDING_RESOURCE_TO_MANIFEST_1", resource.path, cause=e, path=resource.path
            ) from e

        self._xml.write_element(entry)
        self.session.manifest_entries += 1

        logger.info(f"( {count} ) Exported {resource.path}")
        self.report.println(self.report.key("report.ok"), ReportFormat.OK)

    def _read_content(self, resource: Resource) -> bytes:
        try:
            return self.repository.read_file_bytes(resource.path)
        except ResourceDeletedError:
            raise
        except RepositoryError as e:
            raise ImportExportError("ERR_ADDING_FILE_1", resource.path, cause=e, path=resource.path) from e

    def write_archive_entry(
        self,
        name: str,
        data: bytes,
        date_time: Optional[Tuple[int, int, int, int, int, int]] = None,
    ) -> None:
        """Store raw bytes as an archive entry.

        Raises:
            ImportExportError: The name is reserved for the manifest
        """
        if name == MANIFEST_FILENAME:
            raise ImportExportError("ERR_RESERVED_ENTRY_NAME_1", name, entry=name)
        info = zipfile.ZipInfo(name, date_time=date_time or zip_date_time(datetime.now(timezone.utc)))
        info.compress_type = self.compression
        self._zip.writestr(info, data)
        logger.debug(f"Archived {name} ({len(data)} bytes)")

    def _principal_name(self, principal_id: str) -> str:
        try:
            return self.repository.resolve_principal(principal_id)
        except PrincipalNotFoundError:
            logger.debug(f"Unknown principal {principal_id!r}, using {DEFAULT_ADMIN_USER}")
            return DEFAULT_ADMIN_USER

    def _build_entry(self, resource: Resource, source: Optional[str]) -> ET.Element:
        entry = ET.Element(Tags.FILE)
        if source is not None:
            add_text_element(entry, Tags.SOURCE, source)
        add_text_element(entry, Tags.DESTINATION, trim_resource_name(resource.path))
        add_text_element(entry, Tags.TYPE, self.repository.read_resource_type(resource.type_id).name)
        if resource.is_file:
            add_text_element(entry, Tags.UUIDRESOURCE, resource.resource_id)

        add_text_element(entry, Tags.DATELASTMODIFIED, format_header_date(resource.date_last_modified))
        add_text_element(entry, Tags.USERLASTMODIFIED, self._principal_name(resource.user_last_modified))
        add_text_element(entry, Tags.DATECREATED, format_header_date(resource.date_created))
        add_text_element(entry, Tags.USERCREATED, self._principal_name(resource.user_created))
        if resource.date_released is not None:
            add_text_element(entry, Tags.DATERELEASED, format_header_date(resource.date_released))
        if resource.date_expired is not None:
            add_text_element(entry, Tags.DATEEXPIRED, format_header_date(resource.date_expired))
        add_text_element(entry, Tags.FLAGS, str(resource.flags & ~RESOURCE_FLAG_LABELLINK))

        properties = ET.SubElement(entry, Tags.PROPERTIES)
        for prop in self.repository.read_properties(resource.path):
            if not self.property_filter(prop) or not prop.value:
                continue
            element = ET.SubElement(properties, Tags.PROPERTY)
            if prop.is_shared:
                element.set(Tags.PROPERTY_ATTRIB_TYPE, Tags.PROPERTY_ATTRIB_TYPE_SHARED)
            add_text_element(element, Tags.NAME, prop.name)
            add_text_element(element, Tags.VALUE, prop.value)

        acl = ET.SubElement(entry, Tags.ACCESSCONTROL_ENTRIES)
        for ace in self.repository.read_acl(resource.path):
            if ace.is_group:
                principal = f"{PRINCIPAL_GROUP}.{self.repository.resolve_principal(ace.principal_id, group=True)}"
            else:
                principal = f"{PRINCIPAL_USER}.{self.repository.resolve_principal(ace.principal_id)}"
            element = ET.SubElement(acl, Tags.ACCESSCONTROL_ENTRY)
            add_text_element(element, Tags.ACCESSCONTROL_PRINCIPAL, principal)
            add_text_element(element, Tags.FLAGS, str(ace.flags))
            permissions = ET.SubElement(element, Tags.ACCESSCONTROL_PERMISSIONSET)
            add_text_element(permissions, Tags.ACCESSCONTROL_ALLOWED, str(ace.allowed_permissions))
            add_text_element(permissions, Tags.ACCESSCONTROL_DENIED, str(ace.denied_permissions))

        return entry

    # Finalization

    def close(self) -> None:
        """Close the root element and store the manifest in the archive."""
        self._xml.write_close(Tags.EXPORT)
        self._xml.end_document()

        info = zipfile.ZipInfo(MANIFEST_FILENAME, date_time=zip_date_time(datetime.now(timezone.utc)))
        info.compress_type = self.compression
        self._spool.seek(0)
        with self._zip.open(info, "w") as target:
            while chunk := self._spool.read(self.chunk_size):
                target.write(chunk.encode("utf-8"))

        self._zip.close()
        self._spool.close()
        self._zip = None
        self._spool = None
        logger.info(f"Closed export archive: {self.export_file}")

    def abort(self) -> None:
        """Release the archive and manifest stream without a manifest entry."""
        for handle in (self._zip, self._spool):
            if handle is None:
                continue
            try:
                handle.close()
            except (OSError, ValueError) as e:
                logger.warning(f"Error while closing aborted export: {e}")
        self._zip = None
        self._spool = None

