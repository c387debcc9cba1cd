"""Reads the manifest of a finished export archive.

Used to inspect and verify archives; it does not import anything.
"""

import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ManifestError
from .manifest import MANIFEST_FILENAME, Tags
from .model import Property, PropertyScope


@dataclass
class ManifestAccessEntry:
    principal: str
    flags: int
    allowed_permissions: int
    denied_permissions: int


@dataclass
class ManifestEntry:
    """One resource entry as written to the manifest."""
    destination: str
    type_name: str
    source: Optional[str] = None
    resource_id: Optional[str] = None
    date_last_modified: Optional[datetime] = None
    user_last_modified: str = ""
    date_created: Optional[datetime] = None
    user_created: str = ""
    date_released: Optional[datetime] = None
    date_expired: Optional[datetime] = None
    flags: int = 0
    properties: List[Property] = field(default_factory=list)
    access_entries: List[ManifestAccessEntry] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.resource_id is None


@dataclass
class Manifest:
    info: Dict[str, str]
    entries: List[ManifestEntry]
    groups: List[Dict[str, str]] = field(default_factory=list)
    users: List[Dict[str, object]] = field(default_factory=list)
    module: Optional[ET.Element] = None

    def entry(self, destination: str) -> ManifestEntry:
        """First entry for a destination."""
        for candidate in self.entries:
            if candidate.destination == destination:
                return candidate
        raise KeyError(destination)


def _text(element: ET.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None:
        return None
    return child.text or ""


def _date(element: ET.Element, tag: str) -> Optional[datetime]:
    text = _text(element, tag)
    return parsedate_to_datetime(text) if text else None


def _parse_entry(element: ET.Element) -> ManifestEntry:
    entry = ManifestEntry(
        destination=_text(element, Tags.DESTINATION) or "",
        type_name=_text(element, Tags.TYPE) or "",
        source=_text(element, Tags.SOURCE),
        resource_id=_text(element, Tags.UUIDRESOURCE),
        date_last_modified=_date(element, Tags.DATELASTMODIFIED),
        user_last_modified=_text(element, Tags.USERLASTMODIFIED) or "",
        date_created=_date(element, Tags.DATECREATED),
        user_created=_text(element, Tags.USERCREATED) or "",
        date_released=_date(element, Tags.DATERELEASED),
        date_expired=_date(element, Tags.DATEEXPIRED),
        flags=int(_text(element, Tags.FLAGS) or 0),
    )
    for prop in element.iterfind(f"{Tags.PROPERTIES}/{Tags.PROPERTY}"):
        shared = prop.get(Tags.PROPERTY_ATTRIB_TYPE) == Tags.PROPERTY_ATTRIB_TYPE_SHARED
        entry.properties.append(Property(
            name=_text(prop, Tags.NAME) or "",
            value=_text(prop, Tags.VALUE),
            scope=PropertyScope.SHARED if shared else PropertyScope.INDIVIDUAL,
        ))
    for ace in element.iterfind(f"{Tags.ACCESSCONTROL_ENTRIES}/{Tags.ACCESSCONTROL_ENTRY}"):
        permissions = ace.find(Tags.ACCESSCONTROL_PERMISSIONSET)
        entry.access_entries.append(ManifestAccessEntry(
            principal=_text(ace, Tags.ACCESSCONTROL_PRINCIPAL) or "",
            flags=int(_text(ace, Tags.FLAGS) or 0),
            allowed_permissions=int(_text(permissions, Tags.ACCESSCONTROL_ALLOWED) or 0),
            denied_permissions=int(_text(permissions, Tags.ACCESSCONTROL_DENIED) or 0),
        ))
    return entry


def parse_manifest(xml_text: Union[bytes, str]) -> Manifest:
    """Parse manifest XML."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ManifestError("ERR_READING_MANIFEST_1", "<document>", cause=e) from e

    info_element = root.find(Tags.INFO)
    info = {child.tag: child.text or "" for child in info_element} if info_element is not None else {}
    entries = [_parse_entry(element) for element in root.iterfind(f"{Tags.FILES}/{Tags.FILE}")]

    known = {Tags.INFO, Tags.FILES, Tags.USERGROUPDATA}
    module = next((child for child in root if child.tag not in known), None)

    groups = []
    for group in root.iterfind(f"{Tags.USERGROUPDATA}/{Tags.GROUPDATA}"):
        groups.append({child.tag: child.text or "" for child in group})

    users = []
    for user in root.iterfind(f"{Tags.USERGROUPDATA}/{Tags.USERDATA}"):
        record: Dict[str, object] = {
            child.tag: child.text or "" for child in user if child.tag != Tags.USERGROUPS
        }
        record[Tags.USERGROUPS] = [
            _text(group, Tags.NAME) or ""
            for group in user.iterfind(f"{Tags.USERGROUPS}/{Tags.GROUPNAME}")
        ]
        users.append(record)

    return Manifest(info=info, entries=entries, groups=groups, users=users, module=module)


def read_manifest(archive: Path) -> Manifest:
    """Read and parse the manifest of an export archive."""
    with zipfile.ZipFile(archive) as zf:
        try:
            data = zf.read(MANIFEST_FILENAME)
        except KeyError:
            raise ManifestError("ERR_READING_MANIFEST_1", archive, archive=str(archive)) from None
    return parse_manifest(data)
