"""Business logic services."""

from .document_service import DocumentService
from .snapshot_service import SnapshotService
from .import_service import ImportService
from .ingestion_service import IngestionService
from .hierarchy_repair import HierarchyRepairService
from .link_service import LinkService

__all__ = [
    "DocumentService",
    "SnapshotService",
    "ImportService",
    "IngestionService",
    "HierarchyRepairService",
    "LinkService",
]
