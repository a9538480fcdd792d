"""History repository for snapshot storage and pruning."""

from typing import List, Optional

from ..models import DocumentHistory
from ..exceptions import SnapshotNotFoundError
from .base import BaseRepository


class HistoryRepository(BaseRepository[DocumentHistory]):
    """Repository for the append-only document history log."""

    model_class = DocumentHistory
    not_found_error = SnapshotNotFoundError

    def create(
        self,
        document_id: str,
        action_type: str,
        description: str,
        snapshot: Optional[list] = None,
        metadata: Optional[dict] = None,
    ) -> DocumentHistory:
        entry = DocumentHistory(
            document_id=document_id,
            action_type=action_type,
            description=description,
            snapshot=snapshot,
            meta=metadata or {},
        )
        self.db.add(entry)
        self.db.flush()
        self.db.refresh(entry)
        return entry

    def get_by_document(self, document_id: str, skip: int = 0, limit: int = 100) -> List[DocumentHistory]:
        """History entries, newest first."""
        return (
            self.db.query(DocumentHistory)
            .filter(DocumentHistory.document_id == document_id)
            .order_by(DocumentHistory.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_latest_snapshot(self, document_id: str) -> Optional[DocumentHistory]:
        return (
            self.db.query(DocumentHistory)
            .filter(
                DocumentHistory.document_id == document_id,
                DocumentHistory.snapshot.isnot(None),
            )
            .order_by(DocumentHistory.id.desc())
            .first()
        )

    def count(self, document_id: str) -> int:
        return (
            self.db.query(DocumentHistory)
            .filter(DocumentHistory.document_id == document_id)
            .count()
        )

    def prune(self, document_id: str, keep: int) -> int:
        """Delete all but the newest *keep* entries of a document."""
        keep_ids = [
            row[0]
            for row in self.db.query(DocumentHistory.id)
            .filter(DocumentHistory.document_id == document_id)
            .order_by(DocumentHistory.id.desc())
            .limit(keep)
            .all()
        ]
        if not keep_ids:
            return 0
        deleted = (
            self.db.query(DocumentHistory)
            .filter(
                DocumentHistory.document_id == document_id,
                DocumentHistory.id.notin_(keep_ids),
            )
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted
