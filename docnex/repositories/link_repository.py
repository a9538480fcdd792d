"""Semantic link repository."""

from typing import List, Optional

from ..models import DocumentBlock, SemanticLink
from ..exceptions import LinkNotFoundError
from .base import BaseRepository


class LinkRepository(BaseRepository[SemanticLink]):
    model_class = SemanticLink
    not_found_error = LinkNotFoundError

    def create(
        self,
        source_block_id: str,
        target_block_id: str,
        link_type: str = "semantic_similarity",
        target_document_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> SemanticLink:
        link = SemanticLink(
            source_block_id=source_block_id,
            target_block_id=target_block_id,
            target_document_id=target_document_id,
            link_type=link_type,
            meta=metadata or {},
        )
        self.db.add(link)
        self.db.flush()
        self.db.refresh(link)
        return link

    def get_for_block(self, block_id: str) -> List[SemanticLink]:
        """Outgoing links of the block."""
        return (
            self.db.query(SemanticLink)
            .filter(SemanticLink.source_block_id == block_id)
            .order_by(SemanticLink.created_at)
            .all()
        )

    def get_backlinks(self, block_id: str) -> List[SemanticLink]:
        return (
            self.db.query(SemanticLink)
            .filter(SemanticLink.target_block_id == block_id)
            .order_by(SemanticLink.created_at)
            .all()
        )

    def get_for_document(self, document_id: str) -> List[SemanticLink]:
        """Links whose source block belongs to the document."""
        return (
            self.db.query(SemanticLink)
            .join(DocumentBlock, DocumentBlock.id == SemanticLink.source_block_id)
            .filter(DocumentBlock.document_id == document_id)
            .order_by(SemanticLink.created_at)
            .all()
        )

    def delete(self, link_id: str) -> None:
        self.db.delete(self.get_by_id(link_id))
        self.db.flush()
