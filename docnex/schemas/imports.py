"""Import, ingestion and repair schemas."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal

IMPORT_TARGETS = ("active_version", "version", "linked_ref", "unlinked_ref", "note")


class ImportItem(BaseModel):
    """One block to import, with optional nested children."""
    title: str = "Untitled"
    content: str = ""
    target: str = "active_version"
    level: Optional[int] = None
    id: Optional[str] = None
    children: List["ImportItem"] = []

    @field_validator('target')
    @classmethod
    def validate_target(cls, v: str) -> str:
        if v not in IMPORT_TARGETS:
            raise ValueError(f"Invalid target. Must be one of: {list(IMPORT_TARGETS)}")
        return v


class ImportRequest(BaseModel):
    project_id: Optional[str] = None
    items: List[ImportItem] = Field(..., min_length=1)
    mode: Literal["merge", "replace"] = "merge"


class ImportResult(BaseModel):
    success: bool
    count: int
    created_document_ids: List[str] = []


class AIBlock(BaseModel):
    """Node of the three-level tree produced by the librarian."""
    title: str
    content: str = ""
    children: List["AIBlock"] = []


class AILink(BaseModel):
    source_index: int
    target_index: int
    type: Optional[str] = None
    reason: str = ""


class BatchImportRequest(BaseModel):
    blocks: List[AIBlock] = Field(..., min_length=1)
    links: List[AILink] = []


class BatchImportResult(BaseModel):
    success: bool
    count: int
    links_created: int


class LegalIngestRequest(BaseModel):
    html: str = Field(..., min_length=1)
    start_marker: Optional[str] = None
    title: Optional[str] = None


class IngestionResult(BaseModel):
    document_id: str
    block_count: int
    titles: int
    chapters: int
    articles: int


class RepairChange(BaseModel):
    block_id: str
    title: str
    old_parent_id: Optional[str] = None
    new_parent_id: Optional[str] = None
    tags: Optional[List[str]] = None


class RepairReport(BaseModel):
    document_id: str
    examined: int
    updated: int
    dry_run: bool = False
    changes: List[RepairChange] = []


class CleanupResult(BaseModel):
    fixed: int


MAX_SPLIT_TEXT_CHARS = 500_000
MAX_PATTERN_CHARS = 200


class SplitRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_SPLIT_TEXT_CHARS)
    strategy: Literal["header", "pattern", "index", "smart", "paragraphs", "hierarchy"]
    level: int = Field(1, ge=1, le=6)
    pattern: Optional[str] = Field(None, max_length=MAX_PATTERN_CHARS)
    index_text: Optional[str] = Field(None, max_length=MAX_SPLIT_TEXT_CHARS)
    parent_pattern: Optional[str] = Field(None, max_length=MAX_PATTERN_CHARS)
    child_pattern: Optional[str] = Field(None, max_length=MAX_PATTERN_CHARS)


ImportItem.model_rebuild()
AIBlock.model_rebuild()
