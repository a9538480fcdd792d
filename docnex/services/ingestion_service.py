"""Legal HTML ingestion: replaces a document's blocks with a parsed law."""

import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from ..repositories import BlockRepository, DocumentRepository
from .legal_parser import decode_html_bytes, extract_paragraphs, flatten_tree, parse_legal_lines
from .snapshot_service import SnapshotService

logger = logging.getLogger(__name__)


class IngestionService:
    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.block_repo = BlockRepository(db)
        self.snapshots = SnapshotService(db)

    def ingest_html(
        self,
        document_id: str,
        raw: Union[bytes, str],
        start_marker: Optional[str] = None,
        title: Optional[str] = None,
    ) -> dict:
        """Parse *raw* HTML and make it the document's only content.

        Existing blocks are kept in a ``pre_migration`` snapshot before
        they are deleted.
        """
        document = self.doc_repo.get_by_id(document_id)
        html = decode_html_bytes(raw) if isinstance(raw, bytes) else raw

        lines = extract_paragraphs(html)
        roots = parse_legal_lines(lines, start_marker=start_marker)
        rows = flatten_tree(roots, document_id)
        if not rows:
            raise ValidationError("No <p> paragraphs with text found in the HTML", field="html")

        logger.info(
            "Legal HTML parsed",
            extra={"document_id": document_id, "lines": len(lines), "blocks": len(rows)},
        )

        try:
            self.snapshots.snapshot_document(
                document_id, "pre_migration", include_deleted=True, commit=False
            )
            self.block_repo.delete_all_for_document(document_id)
            self.block_repo.bulk_insert(rows)
            if title:
                document.title = title
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        counts = {block_type: 0 for block_type in ("titulo", "capitulo", "articulo")}
        for row in rows:
            counts[row["block_type"]] += 1

        logger.info(
            "Legal document ingested",
            extra={"document_id": document_id, "block_count": len(rows), **counts},
        )
        return {
            "document_id": document_id,
            "block_count": len(rows),
            "titles": counts["titulo"],
            "chapters": counts["capitulo"],
            "articles": counts["articulo"],
        }
