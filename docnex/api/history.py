"""History endpoints: listing, manual snapshots and restore."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.history import HistoryDetailResponse, HistoryResponse, RestoreResult, SnapshotCreate
from ..services import SnapshotService

router = APIRouter(prefix="/api/documents/{document_id}/history", tags=["history"])
entry_router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=List[HistoryResponse])
def list_history(
    document_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """History entries, newest first, without snapshot payloads."""
    return SnapshotService(db).list_history(document_id, skip=skip, limit=limit)


@router.post("", response_model=HistoryResponse, status_code=201)
def create_snapshot(
    document_id: str,
    body: Optional[SnapshotCreate] = None,
    db: Session = Depends(get_db),
):
    body = body or SnapshotCreate()
    entry = SnapshotService(db).snapshot_document(
        document_id, action_type=body.action_type, description=body.description
    )
    if entry is None:
        raise ValidationError("Document has no blocks to snapshot", field="action_type")
    return entry


@entry_router.get("/{history_id}", response_model=HistoryDetailResponse)
def get_history(history_id: int, db: Session = Depends(get_db)):
    return SnapshotService(db).get_history(history_id)


@entry_router.post("/{history_id}/restore", response_model=RestoreResult)
def restore(history_id: int, db: Session = Depends(get_db)):
    """Replace the document's blocks with this snapshot.

    The current blocks are kept in a ``restore`` safety snapshot first.
    """
    return SnapshotService(db).restore_from_history(history_id)
