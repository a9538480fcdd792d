"""Block schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class BlockCreate(BaseModel):
    """Schema for creating a block. Missing tags are extracted from the content."""
    content: str = ""
    title: str = "New Block"
    order_index: Optional[int] = None
    tags: Optional[List[str]] = None
    parent_block_id: Optional[str] = None
    block_type: str = "section"


class BlockUpdate(BaseModel):
    """Schema for updating a block. Tags are replaced only when sent."""
    content: Optional[str] = None
    title: Optional[str] = None
    tags: Optional[List[str]] = None


class BlockMove(BaseModel):
    parent_block_id: Optional[str] = None
    order_index: Optional[int] = None


class BlockReorder(BaseModel):
    block_ids: List[str] = Field(..., min_length=1)


class BlockDeleteRequest(BaseModel):
    block_ids: List[str] = Field(..., min_length=1)
    soft: bool = True


class BlockDeleteResult(BaseModel):
    deleted: int
    snapshot_id: Optional[int] = None


class BlockResponse(BaseModel):
    id: str
    document_id: str
    parent_block_id: Optional[str] = None
    title: str
    content: str
    block_type: str
    order_index: int
    tags: List[str] = []
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlockTreeNode(BaseModel):
    id: str
    title: str
    content: str
    block_type: str
    order_index: int
    tags: List[str] = []
    children: List["BlockTreeNode"] = []


BlockTreeNode.model_rebuild()
