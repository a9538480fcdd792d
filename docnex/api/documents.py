"""Document endpoints.

Endpoints are thin; DocumentService owns documents, their block trees
and the snapshots taken around destructive edits.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..schemas.block import BlockTreeNode
from ..schemas.document import (
    DocumentCreate,
    DocumentDuplicate,
    DocumentListResponse,
    DocumentResponse,
    DocumentUpdate,
    QualityResponse,
)
from ..services import DocumentService
from ..services.text_analysis import calculate_quality_score

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def create_document(document: DocumentCreate, db: Session = Depends(get_db)):
    return DocumentService(db).create_document(document)


@router.get("", response_model=List[DocumentListResponse])
def list_documents(
    project_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """List documents, newest first, with their live block counts."""
    return DocumentService(db).list_documents(project_id=project_id, skip=skip, limit=limit)


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: str, db: Session = Depends(get_db)):
    return DocumentService(db).require_document(document_id)


@router.put("/{document_id}", response_model=DocumentResponse)
def update_document(document_id: str, update: DocumentUpdate, db: Session = Depends(get_db)):
    return DocumentService(db).update_document(document_id, update)


@router.delete("/{document_id}", status_code=204)
def delete_document(document_id: str, db: Session = Depends(get_db)):
    """Delete a document with its blocks, history and links."""
    DocumentService(db).delete_document(document_id)


@router.post("/{document_id}/duplicate", response_model=DocumentResponse, status_code=201)
def duplicate_document(
    document_id: str,
    body: Optional[DocumentDuplicate] = None,
    db: Session = Depends(get_db),
):
    return DocumentService(db).duplicate_document(document_id, new_title=body.title if body else None)


@router.get("/{document_id}/tree", response_model=List[BlockTreeNode])
def get_tree(document_id: str, db: Session = Depends(get_db)):
    """Live blocks nested under their parents."""
    return DocumentService(db).get_tree(document_id)


@router.get("/{document_id}/quality", response_model=QualityResponse)
def get_quality(document_id: str, db: Session = Depends(get_db)):
    """Quality score of the concatenated content of the live blocks."""
    blocks = DocumentService(db).list_blocks(document_id)
    content = "\n\n".join(block.content for block in blocks if block.content)
    return calculate_quality_score(content).to_dict()
