"""Block repository.

Every default query excludes soft-deleted blocks; pass
``include_deleted=True`` to see the whole table for a document.
"""

from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query

from ..models import DocumentBlock
from ..exceptions import BlockNotFoundError
from .base import BaseRepository

# Rows inserted per flush when bulk-loading parsed documents.
INSERT_BATCH_SIZE = 100


class BlockRepository(BaseRepository[DocumentBlock]):
    """Repository for document block queries and bulk writes."""

    model_class = DocumentBlock
    not_found_error = BlockNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(DocumentBlock).filter(DocumentBlock.is_deleted.is_(False))

    def get_by_document(self, document_id: str, include_deleted: bool = False) -> List[DocumentBlock]:
        """Blocks of a document in reading order."""
        query = self.db.query(DocumentBlock) if include_deleted else self._base_query()
        return (
            query.filter(DocumentBlock.document_id == document_id)
            .order_by(DocumentBlock.order_index, DocumentBlock.created_at)
            .all()
        )

    def get_many(self, block_ids: Iterable[str]) -> List[DocumentBlock]:
        ids = list(block_ids)
        if not ids:
            return []
        return self._base_query().filter(DocumentBlock.id.in_(ids)).all()

    def count(self, document_id: Optional[str] = None) -> int:
        query = self._base_query()
        if document_id:
            query = query.filter(DocumentBlock.document_id == document_id)
        return query.count()

    def max_order_index(self, document_id: str) -> int:
        """Highest order_index in the document, or -1 when empty."""
        value = (
            self.db.query(func.max(DocumentBlock.order_index))
            .filter(DocumentBlock.document_id == document_id)
            .scalar()
        )
        return -1 if value is None else value

    def bulk_insert(self, rows: List[dict]) -> int:
        """Insert pre-built rows (with ids) in batches. Returns rows written."""
        for start in range(0, len(rows), INSERT_BATCH_SIZE):
            batch = rows[start:start + INSERT_BATCH_SIZE]
            self.db.add_all(DocumentBlock(**row) for row in batch)
            self.db.flush()
        return len(rows)

    def delete_all_for_document(self, document_id: str) -> int:
        """Hard-delete every block of a document, soft-deleted ones included."""
        # Detach parent pointers first so row order inside the DELETE never matters.
        self.db.query(DocumentBlock).filter(
            DocumentBlock.document_id == document_id
        ).update({DocumentBlock.parent_block_id: None}, synchronize_session=False)
        deleted = self.db.query(DocumentBlock).filter(
            DocumentBlock.document_id == document_id
        ).delete(synchronize_session=False)
        self.db.flush()
        self.db.expire_all()
        return deleted

    def hard_delete(self, block_ids: List[str]) -> int:
        if not block_ids:
            return 0
        self.db.query(DocumentBlock).filter(
            DocumentBlock.parent_block_id.in_(block_ids)
        ).update({DocumentBlock.parent_block_id: None}, synchronize_session=False)
        deleted = self.db.query(DocumentBlock).filter(
            DocumentBlock.id.in_(block_ids)
        ).delete(synchronize_session=False)
        self.db.flush()
        self.db.expire_all()
        return deleted
