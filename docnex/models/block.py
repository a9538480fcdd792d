"""Document block model."""

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .document import new_id


class DocumentBlock(Base):
    """One node of a document tree.

    ``parent_block_id`` is null for roots. ``order_index`` is the reading
    order across the whole document, not among siblings.
    """

    __tablename__ = "document_blocks"
    __table_args__ = (
        Index("ix_document_blocks_document_order", "document_id", "order_index"),
        Index("ix_document_blocks_parent", "parent_block_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    parent_block_id = Column(
        String(36), ForeignKey("document_blocks.id", ondelete="SET NULL"), nullable=True
    )

    title = Column(String(500), nullable=False, default="New Block")
    content = Column(Text, nullable=False, default="")
    # section | titulo | capitulo | articulo | ...
    block_type = Column(String(50), nullable=False, default="section")
    order_index = Column(Integer, nullable=False, default=0)
    tags = Column(JSON, default=list)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    document = relationship("Document", back_populates="blocks")
