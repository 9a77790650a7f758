"""
User schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.services.auth.authorization.rbac import RoleType


class UserCreate(BaseModel):
    """User creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class UserUpdate(BaseModel):
    """User update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class UserRoleUpdate(BaseModel):
    """Admin role assignment."""
    role: RoleType
    institution_id: Optional[UUID] = None
    workshop_id: Optional[UUID] = None


class UserRead(BaseModel):
    """User response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: Optional[str] = None
    default_api_key_share_id: Optional[UUID] = None
    created_at: datetime


class UserRoleRead(BaseModel):
    """Active role of a user."""
    model_config = ConfigDict(from_attributes=True)

    role: RoleType
    institution_id: Optional[UUID] = None
    workshop_id: Optional[UUID] = None


class UserWithRole(UserRead):
    """User together with the active role."""
    role: Optional[UserRoleRead] = None
