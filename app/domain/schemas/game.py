"""
Game, game session and sponsorship schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GameCreate(BaseModel):
    """Game creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    workshop_id: Optional[UUID] = None
    public: bool = False


class GameUpdate(BaseModel):
    """Game update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    public: Optional[bool] = None


class GameRead(BaseModel):
    """Game response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    workshop_id: Optional[UUID] = None
    public: bool
    public_sponsored_api_key_share_id: Optional[UUID] = None
    private_share_hash: Optional[str] = None
    private_sponsored_api_key_share_id: Optional[UUID] = None
    private_share_remaining: Optional[int] = None
    created_by: Optional[UUID] = None
    created_at: datetime


class GameSponsorUpdate(BaseModel):
    """Public sponsorship request."""
    share_id: UUID


class GamePrivateSponsorUpdate(BaseModel):
    """Private sponsorship request."""
    share_id: UUID
    max_uses: Optional[int] = Field(None, ge=1)


class GameSessionCreate(BaseModel):
    """Start a session of a game."""
    workshop_id: Optional[UUID] = None
    share_token: Optional[str] = None


class GameSessionRead(BaseModel):
    """Game session response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    game_id: UUID
    user_id: UUID
    workshop_id: Optional[UUID] = None
    api_key_id: Optional[UUID] = None
    ai_platform: Optional[str] = None
    created_at: datetime
