"""Document schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

DOCUMENT_CATEGORIES = ("main", "version", "linked_ref", "unlinked_ref")


class DocumentBase(BaseModel):
    """Base document schema."""
    title: str = Field(..., min_length=1, max_length=500)
    project_id: Optional[str] = None
    category: str = "main"
    status: str = "draft"

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    @field_validator('category')
    @classmethod
    def validate_category(cls, v: str) -> str:
        if v not in DOCUMENT_CATEGORIES:
            raise ValueError(f"Invalid category. Must be one of: {list(DOCUMENT_CATEGORIES)}")
        return v


class DocumentCreate(DocumentBase):
    """Schema for creating a document."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Ley 5/2025 de Vivienda de Andalucía",
                    "project_id": "0d6c2f8e-1f8a-4a43-9d0e-7f3c3b7a9e11",
                    "category": "main",
                    "status": "draft",
                }
            ]
        }
    }


class DocumentUpdate(BaseModel):
    """Schema for updating a document. Omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    status: Optional[str] = None
    category: Optional[str] = None

    @field_validator('category')
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in DOCUMENT_CATEGORIES:
            raise ValueError(f"Invalid category. Must be one of: {list(DOCUMENT_CATEGORIES)}")
        return v


class DocumentDuplicate(BaseModel):
    title: Optional[str] = None


class DocumentResponse(DocumentBase):
    """Schema for document response."""
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    """Document with its live block count, for list views."""
    id: str
    title: str
    project_id: Optional[str] = None
    category: str
    status: str
    block_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QualityResponse(BaseModel):
    score: int
    level: str
    breakdown: dict


class DocumentIdList(BaseModel):
    ids: List[str]
