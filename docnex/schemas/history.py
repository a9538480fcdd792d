"""History and snapshot schemas."""

from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Optional, List

SNAPSHOT_ACTIONS = (
    "auto_save", "pre_delete", "pre_merge", "pre_migration", "manual",
    "import_replace", "restore",
)


class SnapshotCreate(BaseModel):
    """Manual snapshot request; the description defaults per action type."""
    description: Optional[str] = None
    action_type: str = "manual"


class HistoryResponse(BaseModel):
    """History entry without the (potentially large) snapshot payload."""
    id: int
    document_id: str
    action_type: str
    description: str
    has_snapshot: bool = False
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class HistoryDetailResponse(HistoryResponse):
    snapshot: Optional[List[dict]] = None


class RestoreResult(BaseModel):
    success: bool
    count: int
    safety_snapshot_id: Optional[int] = None
