"""Semantic links between blocks."""

import logging
from typing import List

from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from ..models import SemanticLink
from ..repositories import BlockRepository, DocumentRepository, LinkRepository
from ..schemas.link import LinkCreate

logger = logging.getLogger(__name__)


class LinkService:
    def __init__(self, db: Session):
        self.db = db
        self.link_repo = LinkRepository(db)
        self.block_repo = BlockRepository(db)
        self.doc_repo = DocumentRepository(db)

    def create_link(self, source_block_id: str, data: LinkCreate) -> SemanticLink:
        if source_block_id == data.target_block_id:
            raise ValidationError("A block cannot link to itself", field="target_block_id")
        self.block_repo.get_by_id(source_block_id)
        target = self.block_repo.get_by_id(data.target_block_id)

        link = self.link_repo.create(
            source_block_id=source_block_id,
            target_block_id=target.id,
            link_type=data.link_type,
            target_document_id=data.target_document_id or target.document_id,
            metadata=data.metadata,
        )
        self.db.commit()
        logger.info(
            "Link created",
            extra={"link_id": link.id, "source": source_block_id, "target": target.id, "type": link.link_type},
        )
        return link

    def links_for_block(self, block_id: str) -> List[SemanticLink]:
        self.block_repo.get_by_id(block_id)
        return self.link_repo.get_for_block(block_id)

    def backlinks(self, block_id: str) -> List[SemanticLink]:
        self.block_repo.get_by_id(block_id)
        return self.link_repo.get_backlinks(block_id)

    def links_for_document(self, document_id: str) -> List[SemanticLink]:
        self.doc_repo.get_by_id(document_id)
        return self.link_repo.get_for_document(document_id)

    def delete_link(self, link_id: str) -> None:
        self.link_repo.delete(link_id)
        self.db.commit()
