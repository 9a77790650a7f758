"""
API key and share schemas.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.services.auth.authorization.share_targets import ShareTarget


class KeySource(str, Enum):
    """Where an available key comes from."""
    WORKSHOP = "workshop"
    SPONSOR = "sponsor"
    INSTITUTION = "institution"
    PERSONAL = "personal"


class ApiKeyCreate(BaseModel):
    """API key creation schema."""
    name: Optional[str] = Field(None, max_length=255)
    platform: str = Field(..., min_length=1, max_length=50)
    key: str = Field(..., min_length=1)


class ApiKeyUpdate(BaseModel):
    """API key rename schema."""
    name: str = Field(..., min_length=1, max_length=255)


class ApiKeyShareCreate(BaseModel):
    """Share an API key with exactly one target."""
    target: ShareTarget
    allow_public_game_sponsoring: bool = False


class ApiKeyShareUpdate(BaseModel):
    """Owner toggle for public game sponsoring."""
    allow_public_game_sponsoring: bool


class ApiKeyRead(BaseModel):
    """API key without its secret."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    platform: str
    key_shortened: str
    is_default: bool
    last_usage_success: Optional[bool] = None
    created_at: datetime


class ApiKeyShareRead(BaseModel):
    """A share together with its key."""
    id: UUID
    api_key: ApiKeyRead
    target: ShareTarget
    allow_public_game_sponsoring: bool
    is_user_default: bool = False
    created_at: datetime


class ApiKeyShareInfo(BaseModel):
    """A share plus, for the key owner, every other share of the key."""
    share: ApiKeyShareRead
    linked_shares: List[ApiKeyShareRead] = Field(default_factory=list)


class ApiKeyCreated(BaseModel):
    """Result of creating a key with its self-share."""
    api_key: ApiKeyRead
    self_share_id: UUID


class AvailableKey(BaseModel):
    """A credential a principal may bill a game against."""
    share_id: UUID
    name: str
    platform: str
    source: KeySource
    is_default: bool = False


class ApiKeyStatus(BaseModel):
    """Whether a principal can start a session of a game."""
    available: bool
    source: Optional[str] = None
