"""Import, legal ingestion and maintenance endpoints."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.imports import (
    BatchImportRequest,
    BatchImportResult,
    CleanupResult,
    ImportRequest,
    ImportResult,
    IngestionResult,
    LegalIngestRequest,
    RepairReport,
)
from ..services import HierarchyRepairService, ImportService, IngestionService

router = APIRouter(prefix="/api/documents/{document_id}", tags=["imports"])
maintenance_router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.post("/import", response_model=ImportResult)
def import_items(document_id: str, body: ImportRequest, db: Session = Depends(get_db)):
    """Insert split items; ``replace`` snapshots and clears the document first."""
    return ImportService(db).import_items(body.project_id, document_id, body.items, mode=body.mode)


@router.post("/batch-import", response_model=BatchImportResult)
def batch_import(document_id: str, body: BatchImportRequest, db: Session = Depends(get_db)):
    """Insert a librarian tree and the links between its blocks.

    Link indexes are positions in the pre-order listing of ``blocks``.
    """
    return ImportService(db).batch_import_blocks(document_id, body.blocks, body.links)


@router.post("/ingest-legal", response_model=IngestionResult)
async def ingest_legal(
    document_id: str,
    request: Request,
    start_marker: Optional[str] = Query(None),
    title: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Replace the document's blocks with a parsed BOE/BOJA HTML page.

    Accepts either a JSON body (``LegalIngestRequest``) or the raw HTML
    as the request body, in which case options come from the query.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = LegalIngestRequest.model_validate(await request.json())
        except ValueError as exc:
            raise ValidationError(f"Invalid ingestion payload: {exc}", field="html") from exc
        raw = payload.html
        start_marker = payload.start_marker or start_marker
        title = payload.title or title
    else:
        raw = await request.body()
    if not raw:
        raise ValidationError("Empty HTML body", field="html")
    return IngestionService(db).ingest_html(document_id, raw, start_marker=start_marker, title=title)


@router.post("/repair-hierarchy", response_model=RepairReport)
def repair_hierarchy(document_id: str, dry_run: bool = False, db: Session = Depends(get_db)):
    return HierarchyRepairService(db).repair(document_id, dry_run=dry_run)


@maintenance_router.post("/cleanup-titles", response_model=CleanupResult)
def cleanup_titles(document_id: Optional[str] = None, db: Session = Depends(get_db)):
    """Fix doubled-syllable heading typos in one document or in all of them."""
    return {"fixed": HierarchyRepairService(db).cleanup_titles(document_id)}
