"""Document history model."""

from sqlalchemy import Column, Index, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class DocumentHistory(Base):
    """Append-only history log.

    Rows with a ``snapshot`` hold a full copy of the document's blocks at
    that moment and can be restored. Rows without one only record an
    action (e.g. ``import_merge``).
    """

    __tablename__ = "document_history"
    __table_args__ = (
        Index("ix_document_history_document_id", "document_id", "id"),
    )

    # Autoincrement id doubles as insertion order; created_at can tie.
    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)

    # auto_save | pre_delete | pre_merge | pre_migration | manual | import_replace | import_merge | restore
    action_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False, default="")
    # none_as_null: entries without a snapshot hold SQL NULL, not JSON "null"
    snapshot = Column(JSON(none_as_null=True), nullable=True)
    meta = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    document = relationship("Document", back_populates="history")

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot is not None
