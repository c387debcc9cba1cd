"""Resource type registry.

Maps numeric type ids to named types and their behaviour tags. The
exporter asks the registry whether a type has a companion file instead
of comparing type names.
"""

import logging
from pathlib import PurePosixPath
from typing import Dict, Iterable, Optional

from cms_export.common.errors import RepositoryError
from .model import ResourceCapability, ResourceType

logger = logging.getLogger(__name__)

FOLDER = ResourceType(0, "folder")
PLAIN = ResourceType(1, "plain")
BINARY = ResourceType(2, "binary")
IMAGE = ResourceType(3, "image")
JSP = ResourceType(4, "jsp")
PAGE = ResourceType(6, "page", frozenset({ResourceCapability.HAS_COMPANION_FILE}))
XMLPAGE = ResourceType(10, "xmlpage")
XMLCONTENT = ResourceType(11, "xmlcontent")

DEFAULT_TYPES = (FOLDER, PLAIN, BINARY, IMAGE, JSP, PAGE, XMLPAGE, XMLCONTENT)

# Extension lookup for repositories without stored type ids
EXTENSION_TYPES: Dict[str, ResourceType] = {
    '.txt': PLAIN,
    '.html': PLAIN,
    '.htm': PLAIN,
    '.css': PLAIN,
    '.js': PLAIN,
    '.xml': PLAIN,
    '.jsp': JSP,
    '.jpg': IMAGE,
    '.jpeg': IMAGE,
    '.png': IMAGE,
    '.gif': IMAGE,
    '.svg': IMAGE,
}


class ResourceTypeRegistry:
    """Lookup of resource types by id."""

    def __init__(self, types: Optional[Iterable[ResourceType]] = None):
        self._types: Dict[int, ResourceType] = {}
        for resource_type in (DEFAULT_TYPES if types is None else types):
            self.register(resource_type)

    def register(self, resource_type: ResourceType) -> None:
        if resource_type.type_id in self._types:
            logger.debug(
                f"Replacing resource type {self._types[resource_type.type_id].name} "
                f"with {resource_type.name} (id {resource_type.type_id})"
            )
        self._types[resource_type.type_id] = resource_type

    def get(self, type_id: int) -> ResourceType:
        """Resolve a type id.

        Raises:
            RepositoryError: If the id is unknown
        """
        try:
            return self._types[type_id]
        except KeyError:
            raise RepositoryError(f"Unknown resource type id: {type_id}", type_id=type_id) from None

    def type_for_file_name(self, file_name: str) -> ResourceType:
        """Guess a file's type from its extension, binary if unknown."""
        return EXTENSION_TYPES.get(PurePosixPath(file_name).suffix.lower(), BINARY)

    def __contains__(self, type_id: int) -> bool:
        return type_id in self._types

    def __len__(self) -> int:
        return len(self._types)
