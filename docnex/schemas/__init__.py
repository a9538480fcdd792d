"""Pydantic schemas for API validation."""

from .document import (
    DocumentBase,
    DocumentCreate,
    DocumentUpdate,
    DocumentResponse,
    DocumentListResponse
)
from .block import (
    BlockCreate,
    BlockUpdate,
    BlockResponse,
    BlockTreeNode
)
from .history import (
    SnapshotCreate,
    HistoryResponse,
    HistoryDetailResponse,
    RestoreResult
)
from .imports import (
    ImportItem,
    ImportRequest,
    AIBlock,
    AILink
)

__all__ = [
    "DocumentBase",
    "DocumentCreate",
    "DocumentUpdate",
    "DocumentResponse",
    "DocumentListResponse",
    "BlockCreate",
    "BlockUpdate",
    "BlockResponse",
    "BlockTreeNode",
    "SnapshotCreate",
    "HistoryResponse",
    "HistoryDetailResponse",
    "RestoreResult",
    "ImportItem",
    "ImportRequest",
    "AIBlock",
    "AILink",
]
