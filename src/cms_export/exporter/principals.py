"""User and group export.

Writes the principal section of the manifest. Each user's additional
info is serialized into a side-car archive entry; a side-car that cannot
be serialized is reported and left out, the user record is still
written.
"""

import base64
import logging
import pickle
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

from cms_export.common.errors import RepositoryError
from .errors import ImportExportError
from .manifest import ManifestWriter, Tags, add_text_element
from .model import COMPANION_PREFIX, Group, User
from .report import Report, ReportFormat
from .repository import Repository

logger = logging.getLogger(__name__)

USERINFO_FOLDER = f"{COMPANION_PREFIX}{Tags.USERINFO}"

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.@-]")


def encode_password(password: str) -> str:
    """Reversible text-safe encoding of a stored password."""
    return base64.b64encode(password.encode("utf-8")).decode("ascii")


def userinfo_entry_name(user: User) -> str:
    """Side-car entry name of a user.

    A name that is not a plain file name is sanitized and suffixed with
    the user id, so the entry stays flat and unique.
    """
    stem = user.name
    if not stem or stem.startswith(".") or _UNSAFE_NAME_CHARS.search(stem):
        stem = _UNSAFE_NAME_CHARS.sub("_", f"{stem.lstrip('.')}_{user.user_id}")
    return f"{USERINFO_FOLDER}/{stem}.dat"


@dataclass
class SidecarResult:
    """Outcome of serializing a user's additional info.

    Exactly one of ``data`` and ``error`` is set.
    """
    entry_name: str
    data: Optional[bytes] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def serialize_additional_info(user: User) -> SidecarResult:
    """Serialize a user's additional info into an opaque blob."""
    entry_name = userinfo_entry_name(user)
    try:
        data = pickle.dumps(dict(user.additional_info), protocol=pickle.HIGHEST_PROTOCOL)
    except (pickle.PicklingError, TypeError, AttributeError) as e:
        return SidecarResult(entry_name, error=e)
    return SidecarResult(entry_name, data=data)


class PrincipalExporter:
    """Serializes all groups, then all users, into the open manifest."""

    def __init__(self, repository: Repository, writer: ManifestWriter, report: Report):
        self.repository = repository
        self.writer = writer
        self.report = report
        self.groups_exported = 0
        self.users_exported = 0
        self.sidecar_failures = 0

    def export(self) -> None:
        self.report.println(self.report.key("report.exporting_principals"), ReportFormat.HEADLINE)
        self.writer.open_section(Tags.USERGROUPDATA)
        self.export_groups()
        self.export_users()
        self.writer.close_section(Tags.USERGROUPDATA)

    def export_groups(self) -> None:
        try:
            groups = self.repository.read_groups()
        except RepositoryError as e:
            raise ImportExportError("ERR_READING_ALL_GROUPS_0", cause=e) from e

        total = len(groups)
        for index, group in enumerate(groups, start=1):
            self._progress(index, total, "report.exporting_group", group.name)
            self.writer.write_element(self._group_element(group))
            self.groups_exported += 1
            self.report.println(self.report.key("report.ok"), ReportFormat.OK)

    def _group_element(self, group: Group) -> ET.Element:
        parent_name = ""
        if group.parent_id:
            try:
                parent_name = self.repository.read_group(group.parent_id).name
            except RepositoryError as e:
                raise ImportExportError(
                    "ERR_READING_PARENT_GROUP_1", group.name, cause=e, group=group.name
                ) from e

        element = ET.Element(Tags.GROUPDATA)
        add_text_element(element, Tags.NAME, group.name)
        add_text_element(element, Tags.DESCRIPTION, group.description)
        add_text_element(element, Tags.FLAGS, str(group.flags))
        add_text_element(element, Tags.PARENTGROUP, parent_name)
        return element

    def export_users(self) -> None:
        try:
            users = self.repository.read_users()
        except RepositoryError as e:
            raise ImportExportError("ERR_READING_ALL_USERS_0", cause=e) from e

        total = len(users)
        for index, user in enumerate(users, start=1):
            self._progress(index, total, "report.exporting_user", user.name)
            self.writer.write_element(self._user_element(user))
            self.users_exported += 1
            self.report.println(self.report.key("report.ok"), ReportFormat.OK)

    def _user_element(self, user: User) -> ET.Element:
        element = ET.Element(Tags.USERDATA)
        add_text_element(element, Tags.NAME, user.name)
        add_text_element(element, Tags.PASSWORD, encode_password(user.password))
        add_text_element(element, Tags.DESCRIPTION, user.description)
        add_text_element(element, Tags.FIRSTNAME, user.first_name)
        add_text_element(element, Tags.LASTNAME, user.last_name)
        add_text_element(element, Tags.EMAIL, user.email)
        add_text_element(element, Tags.FLAGS, str(user.flags))
        add_text_element(element, Tags.ADDRESS, user.address)
        add_text_element(element, Tags.TYPE, str(user.user_type))

        sidecar = serialize_additional_info(user)
        if sidecar.ok:
            add_text_element(element, Tags.USERINFO, sidecar.entry_name)
            self.writer.write_archive_entry(sidecar.entry_name, sidecar.data)
        else:
            self.sidecar_failures += 1
            logger.error(
                f"Cannot serialize additional info of user {user.name}: {sidecar.error}",
                exc_info=sidecar.error,
            )
            self.report.println(
                self.report.key("ERR_EXPORTING_USER_1", user.name), ReportFormat.WARNING
            )
            self.report.println_error(sidecar.error)

        try:
            groups = self.repository.read_direct_groups_of_user(user.name)
        except RepositoryError as e:
            raise ImportExportError(
                "ERR_READING_GROUPS_OF_USER_1", user.name, cause=e, user=user.name
            ) from e

        memberships = ET.SubElement(element, Tags.USERGROUPS)
        for group in groups:
            add_text_element(ET.SubElement(memberships, Tags.GROUPNAME), Tags.NAME, group.name)
        return element

    def _progress(self, index: int, total: int, label_key: str, name: str) -> None:
        self.report.print(f" ( {index} / {total} ) ", ReportFormat.NOTE)
        self.report.print(self.report.key(label_key), ReportFormat.NOTE)
        self.report.print(name)
        self.report.print(self.report.key("report.dots"))
