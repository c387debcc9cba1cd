"""Content repository interface and implementations.

The exporter only reads from the repository. ``Repository`` lists the
operations it relies on; ``InMemoryRepository`` is a dict-backed tree
and ``FilesystemRepository`` serves a local directory.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from cms_export.common.errors import (
    PrincipalNotFoundError,
    RepositoryError,
    ResourceDeletedError,
    ResourceNotFoundError,
)
from cms_export.common.path_utils import (
    FOLDER_SEPARATOR,
    ancestor_folders,
    as_folder_path,
    containing_folder,
    is_folder_path,
    trim_resource_name,
)
from .model import (
    AccessControlEntry,
    Group,
    Property,
    Resource,
    ResourceState,
    ResourceType,
    User,
)
from .resource_types import FOLDER, PLAIN, ResourceTypeRegistry

logger = logging.getLogger(__name__)

ONLINE_PROJECT_NAME = "Online"


class Repository(ABC):
    """Read side of a content repository.

    All read operations ignore validity windows (release/expire dates).
    """

    @property
    @abstractmethod
    def project_name(self) -> str:
        """Name of the project the reads happen in."""

    @property
    @abstractmethod
    def is_online_project(self) -> bool:
        """True when reading the canonical online project."""

    @property
    @abstractmethod
    def current_user_name(self) -> str:
        """Name of the user running the export."""

    @abstractmethod
    def read_resource(self, path: str) -> Resource:
        """Read one resource's metadata.

        Raises:
            ResourceNotFoundError: Nothing exists at path
            ResourceDeletedError: The resource vanished
        """

    @abstractmethod
    def read_children(self, folder_path: str) -> Tuple[List[Resource], List[Resource]]:
        """Return (subfolders, files) directly inside a folder."""

    @abstractmethod
    def read_file_bytes(self, path: str) -> bytes:
        """Return a file's content."""

    @abstractmethod
    def read_properties(self, path: str) -> List[Property]:
        """Return the ordered property list of a resource."""

    @abstractmethod
    def read_acl(self, path: str) -> List[AccessControlEntry]:
        """Return the ordered access control entries of a resource."""

    @abstractmethod
    def resolve_principal(self, principal_id: str, group: bool = False) -> str:
        """Return a user's (or group's) name.

        Raises:
            PrincipalNotFoundError: The id no longer resolves
        """

    @abstractmethod
    def read_resource_type(self, type_id: int) -> ResourceType:
        """Resolve a type id to its type."""

    @abstractmethod
    def read_groups(self) -> List[Group]:
        """Return all groups."""

    @abstractmethod
    def read_group(self, group_id: str) -> Group:
        """Return one group by id."""

    @abstractmethod
    def read_users(self) -> List[User]:
        """Return all users."""

    @abstractmethod
    def read_direct_groups_of_user(self, user_name: str) -> List[Group]:
        """Return the groups a user is directly assigned to."""


class InMemoryRepository(Repository):
    """Repository kept entirely in dictionaries.

    Missing ancestor folders are created when a resource is added.
    """

    def __init__(
        self,
        project_name: str = ONLINE_PROJECT_NAME,
        online: Optional[bool] = None,
        current_user: str = "Admin",
        type_registry: Optional[ResourceTypeRegistry] = None,
    ):
        self._project_name = project_name
        self._online = (project_name == ONLINE_PROJECT_NAME) if online is None else online
        self._current_user = current_user
        self.type_registry = type_registry or ResourceTypeRegistry()

        self._resources: Dict[str, Resource] = {}
        self._contents: Dict[str, bytes] = {}  # resource_id -> bytes
        self._properties: Dict[str, List[Property]] = {}
        self._acls: Dict[str, List[AccessControlEntry]] = {}
        self._purged: Set[str] = set()

        self._users: Dict[str, User] = {}
        self._groups: Dict[str, Group] = {}
        self._memberships: Dict[str, List[str]] = {}  # user name -> group ids

        self._resources[FOLDER_SEPARATOR] = Resource(
            path=FOLDER_SEPARATOR,
            resource_id=str(uuid.uuid4()),
            type_id=FOLDER.type_id,
            is_folder=True,
        )

    @property
    def project_name(self) -> str:
        return self._project_name

    @property
    def is_online_project(self) -> bool:
        return self._online

    @property
    def current_user_name(self) -> str:
        return self._current_user

    # Building the tree

    def add_folder(self, path: str, **attributes) -> Resource:
        """Add a folder; attributes are passed to ``Resource``."""
        path = as_folder_path(path)
        self._ensure_ancestors(path)
        attributes.setdefault("resource_id", str(uuid.uuid4()))
        attributes.setdefault("type_id", FOLDER.type_id)
        folder = Resource(path=path, is_folder=True, **attributes)
        self._resources[path] = folder
        return folder

    def add_file(self, path: str, content: bytes = b"", **attributes) -> Resource:
        """Add a file.

        Passing the ``resource_id`` of an existing file creates a sibling
        sharing that content.
        """
        if is_folder_path(path):
            raise ValueError(f"File path must not end with '{FOLDER_SEPARATOR}': {path}")
        self._ensure_ancestors(path)
        attributes.setdefault("resource_id", str(uuid.uuid4()))
        attributes.setdefault("type_id", PLAIN.type_id)
        resource = Resource(path=path, is_folder=False, **attributes)
        self._resources[path] = resource
        self._contents.setdefault(resource.resource_id, content)
        return resource

    def set_properties(self, path: str, properties: List[Property]) -> None:
        self._properties[path] = list(properties)

    def set_acl(self, path: str, entries: List[AccessControlEntry]) -> None:
        self._acls[path] = list(entries)

    def add_group(self, group: Group) -> Group:
        self._groups[group.group_id] = group
        return group

    def add_user(self, user: User, group_names: Optional[List[str]] = None) -> User:
        self._users[user.user_id] = user
        by_name = {g.name: g.group_id for g in self._groups.values()}
        self._memberships[user.name] = [by_name[name] for name in (group_names or [])]
        return user

    def purge(self, path: str) -> None:
        """Drop a resource while keeping it in its parent's listing.

        Reading it afterwards raises ``ResourceDeletedError``, which is
        how a resource vanishing mid-export looks.
        """
        self._purged.add(path)

    def _ensure_ancestors(self, path: str) -> None:
        for folder in ancestor_folders(path):
            if folder == path or folder in self._resources:
                continue
            self._resources[folder] = Resource(
                path=folder,
                resource_id=str(uuid.uuid4()),
                type_id=FOLDER.type_id,
                is_folder=True,
            )

    # Repository interface

    def _lookup(self, path: str) -> Resource:
        if path in self._purged:
            raise ResourceDeletedError(f"Resource was deleted: {path}", path=path)
        try:
            return self._resources[path]
        except KeyError:
            raise ResourceNotFoundError(f"Resource not found: {path}", path=path) from None

    def read_resource(self, path: str) -> Resource:
        return self._lookup(path)

    def read_children(self, folder_path: str) -> Tuple[List[Resource], List[Resource]]:
        folder_path = as_folder_path(folder_path)
        folder = self._lookup(folder_path)
        if not folder.is_folder:
            raise RepositoryError(f"Not a folder: {folder_path}", path=folder_path)

        subfolders: List[Resource] = []
        files: List[Resource] = []
        for path in sorted(self._resources):
            if path == folder_path or containing_folder(path.rstrip(FOLDER_SEPARATOR)) != folder_path:
                continue
            resource = self._resources[path]
            (subfolders if resource.is_folder else files).append(resource)
        return subfolders, files

    def read_file_bytes(self, path: str) -> bytes:
        resource = self._lookup(path)
        if resource.is_folder:
            raise RepositoryError(f"Folders have no content: {path}", path=path)
        return self._contents[resource.resource_id]

    def read_properties(self, path: str) -> List[Property]:
        self._lookup(path)
        return list(self._properties.get(path, []))

    def read_acl(self, path: str) -> List[AccessControlEntry]:
        self._lookup(path)
        return list(self._acls.get(path, []))

    def resolve_principal(self, principal_id: str, group: bool = False) -> str:
        principals = self._groups if group else self._users
        principal = principals.get(principal_id)
        if principal is None:
            kind = "group" if group else "user"
            raise PrincipalNotFoundError(f"Unknown {kind} id: {principal_id}", principal_id=principal_id)
        return principal.name

    def read_resource_type(self, type_id: int) -> ResourceType:
        return self.type_registry.get(type_id)

    def read_groups(self) -> List[Group]:
        return list(self._groups.values())

    def read_group(self, group_id: str) -> Group:
        try:
            return self._groups[group_id]
        except KeyError:
            raise PrincipalNotFoundError(f"Unknown group id: {group_id}", principal_id=group_id) from None

    def read_users(self) -> List[User]:
        return list(self._users.values())

    def read_direct_groups_of_user(self, user_name: str) -> List[Group]:
        if user_name not in self._memberships:
            raise PrincipalNotFoundError(f"Unknown user: {user_name}", user=user_name)
        return [self._groups[group_id] for group_id in self._memberships[user_name]]


class FilesystemRepository(Repository):
    """Serves a local directory as a content tree in the online project.

    Content identity is derived from (device, inode), so hard links to
    the same file share one archive entry. There are no properties,
    access control entries, users or groups.
    """

    def __init__(
        self,
        root_dir: Path,
        type_registry: Optional[ResourceTypeRegistry] = None,
        current_user: str = "Admin",
    ):
        self.root_dir = Path(root_dir)
        if not self.root_dir.exists():
            raise FileNotFoundError(f"Source directory not found: {root_dir}")
        if not self.root_dir.is_dir():
            raise NotADirectoryError(f"Source path is not a directory: {root_dir}")
        self.type_registry = type_registry or ResourceTypeRegistry()
        self._current_user = current_user

    @property
    def project_name(self) -> str:
        return ONLINE_PROJECT_NAME

    @property
    def is_online_project(self) -> bool:
        return True

    @property
    def current_user_name(self) -> str:
        return self._current_user

    def _local_path(self, path: str) -> Path:
        relative = trim_resource_name(path)
        local = (self.root_dir / relative) if relative else self.root_dir
        if ".." in Path(relative).parts:
            raise RepositoryError(f"Path escapes repository root: {path}", path=path)
        return local

    def _to_resource(self, path: str, local: Path, stat: os.stat_result) -> Resource:
        is_folder = local.is_dir()
        if is_folder:
            path = as_folder_path(path)
            type_id = FOLDER.type_id
        else:
            type_id = self.type_registry.type_for_file_name(local.name).type_id
        return Resource(
            path=path,
            resource_id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"inode:{stat.st_dev}:{stat.st_ino}")),
            type_id=type_id,
            is_folder=is_folder,
            state=ResourceState.UNCHANGED,
            date_last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            user_last_modified=str(getattr(stat, "st_uid", "")),
            date_created=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            user_created=str(getattr(stat, "st_uid", "")),
        )

    def read_resource(self, path: str) -> Resource:
        local = self._local_path(path)
        try:
            stat = local.stat()
        except FileNotFoundError:
            raise ResourceNotFoundError(f"Resource not found: {path}", path=path) from None
        except OSError as e:
            raise RepositoryError(f"Cannot read {path}: {e}", path=path) from e
        return self._to_resource(path, local, stat)

    def read_children(self, folder_path: str) -> Tuple[List[Resource], List[Resource]]:
        folder_path = as_folder_path(folder_path)
        local = self._local_path(folder_path)
        subfolders: List[Resource] = []
        files: List[Resource] = []
        try:
            entries = sorted(os.scandir(local), key=lambda entry: entry.name)
        except FileNotFoundError:
            raise ResourceDeletedError(f"Folder was deleted: {folder_path}", path=folder_path) from None
        except OSError as e:
            raise RepositoryError(f"Cannot list {folder_path}: {e}", path=folder_path) from e

        for entry in entries:
            child_path = folder_path + entry.name
            try:
                resource = self._to_resource(child_path, Path(entry.path), entry.stat())
            except FileNotFoundError:
                logger.debug(f"Skipping vanished entry: {child_path}")
                continue
            (subfolders if resource.is_folder else files).append(resource)
        return subfolders, files

    def read_file_bytes(self, path: str) -> bytes:
        try:
            return self._local_path(path).read_bytes()
        except FileNotFoundError:
            raise ResourceDeletedError(f"File was deleted: {path}", path=path) from None
        except OSError as e:
            raise RepositoryError(f"Cannot read {path}: {e}", path=path) from e

    def read_properties(self, path: str) -> List[Property]:
        return []

    def read_acl(self, path: str) -> List[AccessControlEntry]:
        return []

    def resolve_principal(self, principal_id: str, group: bool = False) -> str:
        if os.name != "posix" or not principal_id.isdigit():
            raise PrincipalNotFoundError(f"Cannot resolve principal: {principal_id}", principal_id=principal_id)

        import grp
        import pwd

        try:
            if group:
                return grp.getgrgid(int(principal_id)).gr_name
            return pwd.getpwuid(int(principal_id)).pw_name
        except KeyError:
            raise PrincipalNotFoundError(f"Unknown principal id: {principal_id}", principal_id=principal_id) from None

    def read_resource_type(self, type_id: int) -> ResourceType:
        return self.type_registry.get(type_id)

    def read_groups(self) -> List[Group]:
        return []

    def read_group(self, group_id: str) -> Group:
        raise PrincipalNotFoundError(f"Unknown group id: {group_id}", principal_id=group_id)

    def read_users(self) -> List[User]:
        return []

    def read_direct_groups_of_user(self, user_name: str) -> List[Group]:
        return []
