"""Document repository for database operations."""

from typing import List, Optional

from ..models import Document
from ..exceptions import DocumentNotFoundError
from .base import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Repository for document CRUD operations."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    def create(
        self,
        title: str,
        project_id: Optional[str] = None,
        category: str = "main",
        status: str = "draft",
    ) -> Document:
        document = Document(
            title=title,
            project_id=project_id,
            category=category,
            status=status,
        )
        self.db.add(document)
        self.db.flush()
        self.db.refresh(document)
        return document

    def get_all(
        self,
        project_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        """Documents ordered by most recently created first."""
        query = self._base_query()
        if project_id:
            query = query.filter(Document.project_id == project_id)
        return (
            query.order_by(Document.created_at.desc(), Document.title)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self) -> int:
        return self._base_query().count()

    def delete(self, document_id: str) -> None:
        document = self.get_by_id(document_id)
        self.db.delete(document)
        self.db.flush()
