"""Data access repositories."""

from .base import BaseRepository
from .document_repository import DocumentRepository
from .block_repository import BlockRepository
from .history_repository import HistoryRepository
from .link_repository import LinkRepository
from .memory_repository import MemoryRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "BlockRepository",
    "HistoryRepository",
    "LinkRepository",
    "MemoryRepository",
]
