from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class BoxLocation(BaseModel):
    id: UUID
    name: str


class BoxRead(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    location_id: Optional[UUID] = None
    location: Optional[BoxLocation] = None
    qr_code: str
    primary_image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BoxWriteResult(BoxRead):
    warnings: List[str] = Field(default_factory=list)


class BoxCreate(BaseModel):
    id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    location_id: Optional[UUID] = None
    tags: List[str] = Field(default_factory=list)
    primary_image_url: Optional[str] = None
    qr_code: Optional[str] = None  # BinQR payload built by the client from `id`

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: List[str]) -> List[str]:
        # blanks are dropped; duplicates and case are kept as given
        return [t.strip() for t in (v or []) if t and t.strip()]


class BoxUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location_id: Optional[UUID] = None
    primary_image_url: Optional[str] = None
    tags: Optional[List[str]] = None  # replaces the whole tag list when present

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = (v or "").strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        return [t.strip() for t in v if t and t.strip()]


class QRCodeRead(BaseModel):
    box_id: UUID
    qr_code: str


class InventorySummary(BaseModel):
    box_count: int
    location_count: int
    recent_boxes: List[BoxRead]
