"""
Institution and workshop schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class InstitutionCreate(BaseModel):
    """Institution creation schema."""
    name: str = Field(..., min_length=1, max_length=255)


class InstitutionUpdate(BaseModel):
    """Institution update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class InstitutionRead(BaseModel):
    """Institution response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    free_use_api_key_share_id: Optional[UUID] = None
    created_at: datetime


class WorkshopCreate(BaseModel):
    """Workshop creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    institution_id: UUID
    active: bool = True
    public: bool = False


class WorkshopUpdate(BaseModel):
    """Workshop update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    active: Optional[bool] = None
    public: Optional[bool] = None


class WorkshopRead(BaseModel):
    """Workshop response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    institution_id: UUID
    active: bool
    public: bool
    default_api_key_share_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime


class ScopeKeyUpdate(BaseModel):
    """Set or clear a scope-level key share."""
    share_id: Optional[UUID] = None


class SystemFreeUseKeyUpdate(BaseModel):
    """Set or clear the platform-wide free-use key."""
    api_key_id: Optional[UUID] = None
