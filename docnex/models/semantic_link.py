"""Semantic link model."""

from sqlalchemy import Column, Index, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from ..database import Base
from .document import new_id


class SemanticLink(Base):
    """Typed edge between two blocks, usually proposed by the relational agent."""

    __tablename__ = "semantic_links"
    __table_args__ = (
        Index("ix_semantic_links_source", "source_block_id"),
        Index("ix_semantic_links_target", "target_block_id"),
        Index("ix_semantic_links_target_document", "target_document_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    source_block_id = Column(
        String(36), ForeignKey("document_blocks.id", ondelete="CASCADE"), nullable=False
    )
    target_block_id = Column(
        String(36), ForeignKey("document_blocks.id", ondelete="CASCADE"), nullable=False
    )
    target_document_id = Column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=True
    )
    # semantic_similarity | contradice | amplía | requiere | cita | ...
    link_type = Column(String(50), nullable=False, default="semantic_similarity")
    meta = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
