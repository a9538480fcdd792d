"""Document model."""

import uuid

from sqlalchemy import Column, Index, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Document(Base):
    """A document owns an ordered tree of blocks and a history log."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_project_id", "project_id"),
        Index("ix_documents_updated_at", "updated_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), nullable=True)
    title = Column(String(500), nullable=False)

    # main | version | linked_ref | unlinked_ref
    category = Column(String(50), nullable=False, default="main")
    status = Column(String(50), nullable=False, default="draft")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    blocks = relationship(
        "DocumentBlock",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentBlock.order_index",
    )
    history = relationship(
        "DocumentHistory",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
