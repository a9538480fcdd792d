"""Block endpoints: per-document collection and single-block routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..schemas.block import (
    BlockCreate,
    BlockDeleteRequest,
    BlockDeleteResult,
    BlockMove,
    BlockReorder,
    BlockResponse,
    BlockUpdate,
)
from ..services import DocumentService

router = APIRouter(prefix="/api/documents/{document_id}/blocks", tags=["blocks"])
block_router = APIRouter(prefix="/api/blocks", tags=["blocks"])


@router.get("", response_model=List[BlockResponse])
def list_blocks(document_id: str, include_deleted: bool = False, db: Session = Depends(get_db)):
    return DocumentService(db).list_blocks(document_id, include_deleted=include_deleted)


@router.post("", response_model=BlockResponse, status_code=201)
def create_block(document_id: str, block: BlockCreate, db: Session = Depends(get_db)):
    """Create a block; it is appended after the last one unless order_index is given."""
    return DocumentService(db).create_block(document_id, block)


@router.put("/reorder", response_model=List[BlockResponse])
def reorder_blocks(document_id: str, body: BlockReorder, db: Session = Depends(get_db)):
    return DocumentService(db).reorder_blocks(document_id, body.block_ids)


@router.post("/delete", response_model=BlockDeleteResult)
def delete_blocks(document_id: str, body: BlockDeleteRequest, db: Session = Depends(get_db)):
    """Soft or hard delete a batch of blocks after a pre_delete snapshot."""
    return DocumentService(db).delete_blocks(document_id, body.block_ids, soft=body.soft)


@block_router.get("/{block_id}", response_model=BlockResponse)
def get_block(block_id: str, db: Session = Depends(get_db)):
    return DocumentService(db).get_block(block_id)


@block_router.put("/{block_id}", response_model=BlockResponse)
def update_block(block_id: str, update: BlockUpdate, db: Session = Depends(get_db)):
    return DocumentService(db).update_block(block_id, update)


@block_router.put("/{block_id}/move", response_model=BlockResponse)
def move_block(block_id: str, body: BlockMove, db: Session = Depends(get_db)):
    return DocumentService(db).move_block(block_id, body.parent_block_id, body.order_index)
