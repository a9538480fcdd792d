"""Rebuilds parent links of legal documents from their block titles.

Imports that lost the tree (flat rows, or rows whose parent pointers were
remapped wrongly) can be repaired by walking the blocks in reading order
and re-attaching each one to the innermost open TÍTULO / CAPÍTULO.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import DocumentBlock
from ..repositories import BlockRepository, DocumentRepository
from .legal_parser import repair_heading_typos
from .snapshot_service import SnapshotService

logger = logging.getLogger(__name__)

# Anchored on the first letter so TÍTULO and CAPÍTULO never match each
# other; the ``.*`` absorbs doubled syllables such as TÍTÍTULO.
_TITULO_RE = re.compile(r"^\s*T[IÍ].*T[UÚ]LO", re.IGNORECASE)
_CAPITULO_RE = re.compile(r"^\s*CA.*T[UÚ]LO", re.IGNORECASE)
_ARTICULO_RE = re.compile(r"^\s*ART[IÍ].*CULO", re.IGNORECASE)


def classify_heading(title: str) -> str:
    """Return titulo, capitulo, articulo, preamble, disposition or body."""
    title = (title or "").strip()
    if _TITULO_RE.match(title):
        return "titulo"
    if _CAPITULO_RE.match(title):
        return "capitulo"
    if _ARTICULO_RE.match(title):
        return "articulo"
    if title.startswith("[Pre&aacute;mbulo]") or title.startswith("Preámbulo"):
        return "preamble"
    upper = title.upper()
    if "DISPOSICIÓN" in upper or "DISPOSICION" in upper:
        return "disposition"
    return "body"


@dataclass
class PlannedChange:
    block_id: str
    title: str
    old_parent_id: Optional[str]
    new_parent_id: Optional[str]
    tags: Optional[List[str]]


def plan_repair(blocks: List[DocumentBlock]) -> List[PlannedChange]:
    """Compute new parents for *blocks*, which must be in reading order.

    Only blocks whose parent changes are returned. Tags are set for
    headings and left alone (``None``) for everything else.
    """
    changes: List[PlannedChange] = []
    current_titulo: Optional[str] = None
    current_capitulo: Optional[str] = None

    for block in blocks:
        kind = classify_heading(block.title)
        tags: Optional[List[str]] = None

        if kind == "titulo":
            new_parent = None
            current_titulo = block.id
            current_capitulo = None
            tags = ["TÍTULO"]
        elif kind == "capitulo":
            new_parent = current_titulo
            current_capitulo = block.id
            tags = ["CAPÍTULO"]
        elif kind == "articulo":
            new_parent = current_capitulo or current_titulo
            tags = ["ARTÍCULO"]
        elif kind == "preamble":
            new_parent = None
        elif kind == "disposition":
            new_parent = None
            current_titulo = None
            current_capitulo = None
        else:
            new_parent = current_capitulo or current_titulo

        if block.parent_block_id != new_parent:
            changes.append(PlannedChange(
                block_id=block.id,
                title=block.title,
                old_parent_id=block.parent_block_id,
                new_parent_id=new_parent,
                tags=tags,
            ))

    return changes


class HierarchyRepairService:
    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.block_repo = BlockRepository(db)
        self.snapshots = SnapshotService(db)

    def repair(self, document_id: str, dry_run: bool = False) -> dict:
        """Re-parent the document's live blocks from their titles.

        A ``pre_migration`` snapshot is written before any change, so the
        repair can be undone from the history.
        """
        self.doc_repo.get_by_id(document_id)
        blocks = self.block_repo.get_by_document(document_id)
        changes = plan_repair(blocks)

        if changes and not dry_run:
            by_id = {block.id: block for block in blocks}
            try:
                self.snapshots.create_snapshot(
                    document_id, None, blocks, action_type="pre_migration", commit=False
                )
                for change in changes:
                    block = by_id[change.block_id]
                    block.parent_block_id = change.new_parent_id
                    if change.tags:
                        block.tags = list(change.tags)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Hierarchy repair finished",
            extra={
                "document_id": document_id,
                "examined": len(blocks),
                "updated": len(changes),
                "dry_run": dry_run,
            },
        )
        return {
            "document_id": document_id,
            "examined": len(blocks),
            "updated": 0 if dry_run else len(changes),
            "dry_run": dry_run,
            "changes": [change.__dict__ for change in changes],
        }

    def cleanup_titles(self, document_id: Optional[str] = None) -> int:
        """Fix TÍTÍTULO / CAPÍTÍTULO style typos in stored block titles."""
        query = self.db.query(DocumentBlock)
        if document_id:
            self.doc_repo.get_by_id(document_id)
            query = query.filter(DocumentBlock.document_id == document_id)

        fixed = 0
        for block in query.all():
            new_title = repair_heading_typos(block.title)
            if new_title != block.title:
                block.title = new_title
                fixed += 1
        self.db.commit()

        logger.info("Title cleanup finished", extra={"document_id": document_id, "fixed": fixed})
        return fixed
