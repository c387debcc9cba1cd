"""Per-export bookkeeping."""

from dataclasses import dataclass, field
from typing import Set


@dataclass
class ExportSession:
    """Mutable state of one export run.

    Created when an export starts and dropped when it ends; it is passed
    explicitly to every traversal call and never shared between threads.

    Attributes:
        exported_ids: Content identities already written to the archive
        page_files: Exported paths of resources whose type has a companion
        emitted_folders: Ancestor folders already declared in the manifest
        export_count: Running number shown in progress lines
        manifest_entries: Resource entries written to the manifest
        content_entries: File contents written to the archive
    """
    exported_ids: Set[str] = field(default_factory=set)
    page_files: Set[str] = field(default_factory=set)
    emitted_folders: Set[str] = field(default_factory=set)
    export_count: int = 0
    manifest_entries: int = 0
    content_entries: int = 0

    def next_count(self) -> int:
        self.export_count += 1
        return self.export_count

    def claim_content(self, resource_id: str) -> bool:
        """Record a content identity; False if it was already archived."""
        if resource_id in self.exported_ids:
            return False
        self.exported_ids.add(resource_id)
        return True
