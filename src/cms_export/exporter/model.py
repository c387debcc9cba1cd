"""Data model of the content repository as seen by the exporter."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional

from cms_export.common.path_utils import resource_name

# Reserved repository locations
VFS_PATH_SYSTEM = "/system/"
VFS_PATH_BODIES = "/system/bodies/"
VFS_PATH_GALLERIES = "/system/galleries/"
VFS_FOLDER_SITES = "/sites/"

# Names starting with this marker are companions or side-car files
COMPANION_PREFIX = "~"

# Runtime-only hint, never exported
RESOURCE_FLAG_LABELLINK = 2

ACCESS_FLAG_GROUP = 32

PRINCIPAL_GROUP = "group"
PRINCIPAL_USER = "user"

DEFAULT_ADMIN_USER = "Admin"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ResourceState(IntEnum):
    """Lifecycle state of a resource in the current project."""
    UNCHANGED = 0
    CHANGED = 1
    NEW = 2
    DELETED = 3


class PropertyScope(Enum):
    """Where a property value is attached."""
    INDIVIDUAL = "individual"  # per-resource (structure) value
    SHARED = "shared"  # shared default for all siblings of the content


class ResourceCapability(Enum):
    """Behaviour tags a resource type may carry."""
    HAS_COMPANION_FILE = "has-companion-file"


@dataclass(frozen=True)
class ResourceType:
    """A resource type known to the type registry."""
    type_id: int
    name: str
    capabilities: FrozenSet[ResourceCapability] = frozenset()

    def has(self, capability: ResourceCapability) -> bool:
        return capability in self.capabilities


@dataclass
class Property:
    """One property value with its scope."""
    name: str
    value: Optional[str]
    scope: PropertyScope = PropertyScope.INDIVIDUAL

    @property
    def is_shared(self) -> bool:
        return self.scope is PropertyScope.SHARED


@dataclass
class AccessControlEntry:
    """Permission bits granted to or withheld from one principal."""
    principal_id: str
    allowed_permissions: int = 0
    denied_permissions: int = 0
    flags: int = 0

    @property
    def is_group(self) -> bool:
        return bool(self.flags & ACCESS_FLAG_GROUP)


@dataclass
class Resource:
    """A file or folder node of the content tree.

    Attributes:
        path: Absolute repository path, folders end with '/'
        resource_id: Content identity, shared by siblings of the same content
        type_id: Resource type id, resolved through the type registry
        is_folder: True for folders
        state: Lifecycle state in the current project
        date_last_modified / date_created: Timezone-aware timestamps
        user_last_modified / user_created: Principal ids
        date_released / date_expired: Validity window, None means unbounded
        flags: Resource flag bits
    """
    path: str
    resource_id: str
    type_id: int
    is_folder: bool = False
    state: ResourceState = ResourceState.UNCHANGED
    date_last_modified: datetime = EPOCH
    user_last_modified: str = ""
    date_created: datetime = EPOCH
    user_created: str = ""
    date_released: Optional[datetime] = None
    date_expired: Optional[datetime] = None
    flags: int = 0

    @property
    def name(self) -> str:
        return resource_name(self.path)

    @property
    def is_file(self) -> bool:
        return not self.is_folder

    @property
    def is_deleted(self) -> bool:
        return self.state is ResourceState.DELETED

    @property
    def is_companion(self) -> bool:
        return self.name.startswith(COMPANION_PREFIX)


@dataclass
class Group:
    """A principal group."""
    group_id: str
    name: str
    description: str = ""
    flags: int = 0
    parent_id: Optional[str] = None


@dataclass
class User:
    """A principal user."""
    user_id: str
    name: str
    password: str = ""
    description: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    flags: int = 0
    address: str = ""
    user_type: int = 0
    additional_info: Dict[str, Any] = field(default_factory=dict)
