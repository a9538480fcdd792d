"""Deterministic text splitting (no model involved)."""

from fastapi import APIRouter
from typing import List

from ..schemas.imports import ImportItem, SplitRequest
from ..services.splitters import split_text

router = APIRouter(prefix="/api/split", tags=["split"])


@router.post("", response_model=List[ImportItem])
def split(body: SplitRequest):
    """Split text into importable items with the chosen strategy."""
    items = split_text(
        body.text,
        body.strategy,
        level=body.level,
        pattern=body.pattern,
        index_text=body.index_text,
        parent_pattern=body.parent_pattern,
        child_pattern=body.child_pattern,
    )
    return [item.to_dict() for item in items]
