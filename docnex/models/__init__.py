"""Database models."""

from .document import Document
from .block import DocumentBlock
from .history import DocumentHistory
from .semantic_link import SemanticLink
from .cognitive_memory import CognitiveMemory

__all__ = [
    "Document", "DocumentBlock", "DocumentHistory",
    "SemanticLink", "CognitiveMemory",
]
