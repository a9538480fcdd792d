"""API routes."""

from .documents import router as documents_router
from .blocks import router as blocks_router, block_router
from .history import router as history_router, entry_router as history_entry_router
from .imports import router as imports_router, maintenance_router
from .split import router as split_router
from .links import router as links_router
from .ai import router as ai_router

__all__ = [
    "documents_router",
    "blocks_router",
    "block_router",
    "history_router",
    "history_entry_router",
    "imports_router",
    "maintenance_router",
    "split_router",
    "links_router",
    "ai_router",
]
