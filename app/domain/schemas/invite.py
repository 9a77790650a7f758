"""
Invite schemas.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.services.auth.authorization.rbac import RoleType


class InviteStatus(str, Enum):
    """Lifecycle of an invite."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InstitutionInviteCreate(BaseModel):
    """Targeted invite into an institution as head or staff."""
    role: RoleType
    invited_user_id: Optional[UUID] = None
    invited_email: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def require_invitee(self) -> "InstitutionInviteCreate":
        if self.invited_user_id is None and not self.invited_email:
            raise ValueError("Either invited_user_id or invited_email is required")
        return self


class WorkshopInviteCreate(BaseModel):
    """Open participant invite into a workshop."""
    max_uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None


class InviteRead(BaseModel):
    """Invite response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    institution_id: UUID
    role: RoleType
    workshop_id: Optional[UUID] = None
    invited_user_id: Optional[UUID] = None
    invited_email: Optional[str] = None
    invite_token: Optional[str] = None
    max_uses: Optional[int] = None
    uses_count: int
    expires_at: Optional[datetime] = None
    status: InviteStatus
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime
