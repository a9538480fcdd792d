"""Import service: bulk insertion of externally produced block trees.

Two entry points:

* ``import_items``: items from the deterministic splitters or the import
  dialog, routed by target (active document or a new support document),
  merged after the existing blocks or replacing them.
* ``batch_import_blocks``: the librarian's three-level tree plus the
  relational agent's index-based links.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..repositories import BlockRepository, DocumentRepository, LinkRepository
from ..schemas.imports import AIBlock, AILink, ImportItem
from .snapshot_service import SnapshotService
from .text_analysis import extract_keywords

logger = logging.getLogger(__name__)

TARGET_LABELS = {
    "linked_ref": "Referencia Vinculada",
    "unlinked_ref": "Referencia Externa",
    "version": "Versión",
}

LEVEL_TAGS = ("TÍTULO", "CAPÍTULO", "ARTÍCULO")
MAX_AI_DEPTH = len(LEVEL_TAGS) - 1

LINK_CONFIDENCE = 0.8


def support_document_title(target: str, today: Optional[date] = None) -> str:
    label = TARGET_LABELS.get(target, "Referencia")
    today = today or date.today()
    return f"Importado: {label} ({today.strftime('%d/%m/%Y')})"


def support_document_category(target: str) -> str:
    return "linked_ref" if target == "note" else target


class ImportService:
    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.block_repo = BlockRepository(db)
        self.link_repo = LinkRepository(db)
        self.snapshots = SnapshotService(db)

    def import_items(
        self,
        project_id: Optional[str],
        document_id: str,
        items: Sequence[ImportItem],
        mode: str = "merge",
    ) -> dict:
        """Insert *items* (and their children) as blocks.

        ``replace`` snapshots and removes the document's current blocks
        first; ``merge`` appends after them. Items whose target is not
        ``active_version`` go to a new support document per target.
        """
        document = self.doc_repo.get_by_id(document_id)
        project_id = project_id or document.project_id

        try:
            if mode == "replace":
                existing = self.block_repo.get_by_document(document_id, include_deleted=True)
                if existing:
                    self.snapshots.create_snapshot(
                        document_id,
                        f"Sustitución de contenido: {len(existing)} bloques reemplazados.",
                        existing,
                        action_type="import_replace",
                        commit=False,
                    )
                self.block_repo.delete_all_for_document(document_id)
            else:
                self.snapshots.log_action(
                    document_id,
                    "import_merge",
                    "Importación parcial (fusión): Se añadirán nuevos bloques al final.",
                    metadata={"items_to_import": len(items)},
                    commit=False,
                )

            grouped: dict = {}
            for item in items:
                grouped.setdefault(item.target or "active_version", []).append(item)

            count = 0
            created_documents: List[str] = []
            for target, target_items in grouped.items():
                target_document_id = document_id
                if target != "active_version":
                    support = self.doc_repo.create(
                        title=support_document_title(target),
                        project_id=project_id,
                        category=support_document_category(target),
                        status="draft",
                    )
                    target_document_id = support.id
                    created_documents.append(support.id)

                rows: List[dict] = []
                next_order = self.block_repo.max_order_index(target_document_id) + 1
                self._collect_items(target_items, target_document_id, None, rows, next_order)
                count += self.block_repo.bulk_insert(rows)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Items imported",
            extra={
                "document_id": document_id,
                "mode": mode,
                "count": count,
                "support_documents": created_documents,
            },
        )
        return {"success": True, "count": count, "created_document_ids": created_documents}

    def _collect_items(
        self,
        items: Sequence[ImportItem],
        document_id: str,
        parent_id: Optional[str],
        rows: List[dict],
        first_order: int,
    ) -> None:
        for item in items:
            block_id = str(uuid.uuid4())
            rows.append({
                "id": block_id,
                "document_id": document_id,
                "parent_block_id": parent_id,
                "title": item.title,
                "content": item.content,
                "block_type": "section",
                "order_index": first_order + len(rows),
                "tags": extract_keywords(item.content),
            })
            if item.children:
                self._collect_items(item.children, document_id, block_id, rows, first_order)

    def batch_import_blocks(
        self,
        document_id: str,
        blocks: Sequence[AIBlock],
        links: Sequence[AILink] = (),
    ) -> dict:
        """Insert a TÍTULO/CAPÍTULO/ARTÍCULO tree and its semantic links.

        Link indexes refer to the pre-order position of each inserted
        block. Links pointing outside the tree are skipped. Children below
        the third level are ignored.
        """
        self.doc_repo.get_by_id(document_id)
        rows: List[dict] = []
        next_order = self.block_repo.max_order_index(document_id) + 1

        def collect(items: Sequence[AIBlock], parent_id: Optional[str], level: int) -> None:
            for item in items:
                block_id = str(uuid.uuid4())
                rows.append({
                    "id": block_id,
                    "document_id": document_id,
                    "parent_block_id": parent_id,
                    "title": item.title,
                    "content": item.content,
                    "block_type": "section",
                    "order_index": next_order + len(rows),
                    "tags": [LEVEL_TAGS[level]],
                })
                if item.children and level < MAX_AI_DEPTH:
                    collect(item.children, block_id, level + 1)

        try:
            collect(blocks, None, 0)
            self.block_repo.bulk_insert(rows)

            links_created = 0
            for link in links:
                if not (0 <= link.source_index < len(rows) and 0 <= link.target_index < len(rows)):
                    logger.debug("Skipping out-of-range link", extra={"link": link.model_dump()})
                    continue
                self.link_repo.create(
                    source_block_id=rows[link.source_index]["id"],
                    target_block_id=rows[link.target_index]["id"],
                    target_document_id=document_id,
                    link_type="semantic_similarity",
                    metadata={"reason": link.reason, "type": link.type, "confidence": LINK_CONFIDENCE},
                )
                links_created += 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Batch import finished",
            extra={"document_id": document_id, "count": len(rows), "links_created": links_created},
        )
        return {"success": True, "count": len(rows), "links_created": links_created}
