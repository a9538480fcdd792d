"""Document service: documents, their block trees and block editing.

Destructive block operations (batch delete) take a ``pre_delete``
snapshot first, and block edits write a periodic ``auto_save``
snapshot, both through SnapshotService in the same transaction.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import HierarchyError, ValidationError
from ..models import Document, DocumentBlock
from ..repositories import BlockRepository, DocumentRepository
from ..schemas.block import BlockCreate, BlockTreeNode, BlockUpdate
from ..schemas.document import DocumentCreate, DocumentUpdate
from .snapshot_service import SnapshotService, build_restore_rows, serialize_block, snapshot_description
from .text_analysis import extract_keywords

logger = logging.getLogger(__name__)


def build_tree(blocks: List[DocumentBlock]) -> List[BlockTreeNode]:
    """Nest blocks under their parents, children sorted by order_index.

    Blocks whose parent is not in *blocks* (deleted or from another
    document) are returned as roots.
    """
    nodes: Dict[str, BlockTreeNode] = {}
    for block in blocks:
        nodes[block.id] = BlockTreeNode(
            id=block.id,
            title=block.title,
            content=block.content,
            block_type=block.block_type,
            order_index=block.order_index,
            tags=list(block.tags or []),
        )

    roots: List[BlockTreeNode] = []
    for block in sorted(blocks, key=lambda b: b.order_index):
        node = nodes[block.id]
        parent = nodes.get(block.parent_block_id) if block.parent_block_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


class DocumentService:
    """Document and block operations.

    Public methods commit their own transaction unless called with
    ``commit=False`` by another service composing a larger operation.
    """

    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.block_repo = BlockRepository(db)
        self.snapshots = SnapshotService(db)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, data: DocumentCreate, commit: bool = True) -> Document:
        document = self.doc_repo.create(
            title=data.title,
            project_id=data.project_id,
            category=data.category,
            status=data.status,
        )
        if commit:
            self.db.commit()
            self.db.refresh(document)
        logger.info("Document created", extra={"document_id": document.id})
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.doc_repo.get_by_id_optional(document_id)

    def require_document(self, document_id: str) -> Document:
        return self.doc_repo.get_by_id(document_id)

    def list_documents(self, project_id: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[dict]:
        documents = self.doc_repo.get_all(project_id=project_id, skip=skip, limit=limit)
        return [
            {
                "id": doc.id,
                "title": doc.title,
                "project_id": doc.project_id,
                "category": doc.category,
                "status": doc.status,
                "block_count": self.block_repo.count(doc.id),
                "created_at": doc.created_at,
                "updated_at": doc.updated_at,
            }
            for doc in documents
        ]

    def update_document(self, document_id: str, data: DocumentUpdate) -> Document:
        document = self.doc_repo.get_by_id(document_id)
        for field_name in ("title", "status", "category"):
            value = getattr(data, field_name)
            if value is not None:
                setattr(document, field_name, value.strip() if field_name == "title" else value)
        self.db.commit()
        self.db.refresh(document)
        return document

    def delete_document(self, document_id: str) -> None:
        """Delete a document; its blocks, history and links cascade."""
        self.doc_repo.delete(document_id)
        self.db.commit()
        logger.info("Document deleted", extra={"document_id": document_id})

    def duplicate_document(self, document_id: str, new_title: Optional[str] = None) -> Document:
        """Copy a document and its live blocks, keeping the tree shape."""
        source = self.doc_repo.get_by_id(document_id)
        copy = self.doc_repo.create(
            title=new_title or f"{source.title} (Copy)",
            project_id=source.project_id,
            category=source.category,
            status=source.status,
        )

        blocks = self.block_repo.get_by_document(document_id)
        rows = build_restore_rows([serialize_block(block) for block in blocks], copy.id)
        self.block_repo.bulk_insert(rows)
        self.db.commit()
        self.db.refresh(copy)

        logger.info(
            "Document duplicated",
            extra={"document_id": document_id, "copy_id": copy.id, "block_count": len(rows)},
        )
        return copy

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def list_blocks(self, document_id: str, include_deleted: bool = False) -> List[DocumentBlock]:
        self.doc_repo.get_by_id(document_id)
        return self.block_repo.get_by_document(document_id, include_deleted=include_deleted)

    def get_block(self, block_id: str) -> DocumentBlock:
        return self.block_repo.get_by_id(block_id)

    def get_tree(self, document_id: str) -> List[BlockTreeNode]:
        return build_tree(self.list_blocks(document_id))

    def create_block(self, document_id: str, data: BlockCreate, commit: bool = True) -> DocumentBlock:
        self.doc_repo.get_by_id(document_id)
        if data.parent_block_id:
            self._check_parent(document_id, None, data.parent_block_id)

        order_index = data.order_index
        if order_index is None:
            order_index = self.block_repo.max_order_index(document_id) + 1

        block = self.block_repo.add(DocumentBlock(
            document_id=document_id,
            parent_block_id=data.parent_block_id,
            title=data.title,
            content=data.content,
            block_type=data.block_type,
            order_index=order_index,
            tags=data.tags if data.tags is not None else extract_keywords(data.content),
        ))
        if commit:
            self.db.commit()
            self.db.refresh(block)
        return block

    def update_block(self, block_id: str, data: BlockUpdate) -> DocumentBlock:
        block = self.block_repo.get_by_id(block_id)
        self.snapshots.auto_snapshot(block.document_id, commit=False)

        if data.content is not None:
            block.content = data.content
        if data.title is not None:
            block.title = data.title
        if data.tags is not None:
            block.tags = list(data.tags)

        self.db.commit()
        self.db.refresh(block)
        return block

    def move_block(self, block_id: str, parent_block_id: Optional[str], order_index: Optional[int] = None) -> DocumentBlock:
        """Re-parent a block (None makes it a root) and optionally reposition it."""
        block = self.block_repo.get_by_id(block_id)
        if parent_block_id is not None:
            self._check_parent(block.document_id, block.id, parent_block_id)

        block.parent_block_id = parent_block_id
        if order_index is not None:
            block.order_index = order_index
        self.db.commit()
        self.db.refresh(block)
        return block

    def reorder_blocks(self, document_id: str, block_ids: List[str]) -> List[DocumentBlock]:
        """Assign order_index 0..n-1 following *block_ids*."""
        self.doc_repo.get_by_id(document_id)
        if len(set(block_ids)) != len(block_ids):
            raise ValidationError("Duplicate block ids in reorder request", field="block_ids")

        blocks = {b.id: b for b in self.block_repo.get_by_document(document_id)}
        unknown = [bid for bid in block_ids if bid not in blocks]
        if unknown:
            raise ValidationError(
                f"Blocks not in document {document_id}: {unknown}", field="block_ids"
            )

        for index, block_id in enumerate(block_ids):
            blocks[block_id].order_index = index
        self.db.commit()
        return self.block_repo.get_by_document(document_id)

    def delete_blocks(self, document_id: str, block_ids: List[str], soft: bool = True) -> dict:
        """Delete blocks after taking a ``pre_delete`` snapshot of the document."""
        self.doc_repo.get_by_id(document_id)
        targets = [b for b in self.block_repo.get_many(block_ids) if b.document_id == document_id]
        if not targets:
            return {"deleted": 0, "snapshot_id": None}

        snapshot = self.snapshots.create_snapshot(
            document_id,
            snapshot_description("pre_delete", {"count": len(targets)}),
            self.block_repo.get_by_document(document_id),
            action_type="pre_delete",
            commit=False,
        )

        target_ids = [b.id for b in targets]
        if soft:
            for block in targets:
                block.is_deleted = True
            self.db.flush()
            deleted = len(targets)
        else:
            deleted = self.block_repo.hard_delete(target_ids)

        self.db.commit()
        logger.info(
            "Blocks deleted",
            extra={"document_id": document_id, "count": deleted, "soft": soft, "snapshot_id": snapshot.id},
        )
        return {"deleted": deleted, "snapshot_id": snapshot.id}

    def _check_parent(self, document_id: str, block_id: Optional[str], parent_id: str) -> None:
        if block_id is not None and parent_id == block_id:
            raise HierarchyError(block_id, parent_id, "a block cannot be its own parent")

        parent = self.block_repo.get_by_id(parent_id)
        if parent.document_id != document_id:
            raise HierarchyError(block_id or "new", parent_id, "parent belongs to another document")

        if block_id is None:
            return
        # Walk up from the new parent; meeting the block means a cycle.
        seen = set()
        current = parent
        while current is not None and current.id not in seen:
            if current.id == block_id:
                raise HierarchyError(block_id, parent_id, "move would create a cycle")
            seen.add(current.id)
            current = (
                self.block_repo.get_by_id_optional(current.parent_block_id)
                if current.parent_block_id else None
            )

