
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

SUPPORTED_LANGUAGES = ("en", "tr")


class VariantCreate(BaseModel):
    data: str = Field(..., min_length=10, max_length=2000)
    is_default: bool = False


class ContentCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=1000)
    language: str = Field(..., pattern="^(en|tr)$")
    # A content without at least two variants has nothing to test
    variants: List[VariantCreate] = Field(..., min_length=2)


class ContentUpdate(BaseModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=1000)
    language: str = Field(..., pattern="^(en|tr)$")


class VariantResponse(BaseModel):
    id: int
    content_id: int
    data: str
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContentResponse(BaseModel):
    id: int
    title: str
    description: str
    language: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    variant_count: int = 0
    variants: List[VariantResponse] = []

    class Config:
        from_attributes = True


class ContentForUserResponse(BaseModel):
    """Content as rendered for one particular user"""
    id: int
    title: str
    description: str
    language: str
    variant_count: int
    user_id: str
    user_variant: VariantResponse


class AssignmentResponse(BaseModel):
    id: int
    user_id: str
    content_id: int
    variant_id: int
    first_viewed_at: datetime
    last_accessed_at: datetime
    view_count: int

    class Config:
        from_attributes = True


class HistoryEntryResponse(AssignmentResponse):
    # joined in by the store so callers never walk ORM relationships
    content_title: str = ""
    variant_data: str = ""
