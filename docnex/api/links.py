"""Semantic link endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..schemas.link import LinkCreate, LinkResponse
from ..services import LinkService

router = APIRouter(tags=["links"])


@router.get("/api/blocks/{block_id}/links", response_model=List[LinkResponse])
def block_links(block_id: str, db: Session = Depends(get_db)):
    """Outgoing links of the block; see the backlinks route for incoming ones."""
    return LinkService(db).links_for_block(block_id)


@router.get("/api/blocks/{block_id}/backlinks", response_model=List[LinkResponse])
def block_backlinks(block_id: str, db: Session = Depends(get_db)):
    return LinkService(db).backlinks(block_id)


@router.post("/api/blocks/{block_id}/links", response_model=LinkResponse, status_code=201)
def create_link(block_id: str, link: LinkCreate, db: Session = Depends(get_db)):
    return LinkService(db).create_link(block_id, link)


@router.get("/api/documents/{document_id}/links", response_model=List[LinkResponse])
def document_links(document_id: str, db: Session = Depends(get_db)):
    return LinkService(db).links_for_document(document_id)


@router.delete("/api/links/{link_id}", status_code=204)
def delete_link(link_id: str, db: Session = Depends(get_db)):
    LinkService(db).delete_link(link_id)
