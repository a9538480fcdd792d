"""Semantic link schemas."""

from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Optional


class LinkCreate(BaseModel):
    target_block_id: str
    link_type: str = "semantic_similarity"
    target_document_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class LinkResponse(BaseModel):
    id: str
    source_block_id: str
    target_block_id: str
    target_document_id: Optional[str] = None
    link_type: str
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
