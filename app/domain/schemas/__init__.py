"""
Domain schemas for Game Lab.
"""

from .api_key import *
from .game import *
from .institution import *
from .invite import *
from .user import *

__all__ = [
    # API key schemas
    "KeySource",
    "ApiKeyCreate",
    "ApiKeyUpdate",
    "ApiKeyShareCreate",
    "ApiKeyShareUpdate",
    "ApiKeyRead",
    "ApiKeyShareRead",
    "ApiKeyShareInfo",
    "ApiKeyCreated",
    "AvailableKey",
    "ApiKeyStatus",

    # Game schemas
    "GameCreate",
    "GameUpdate",
    "GameRead",
    "GameSponsorUpdate",
    "GamePrivateSponsorUpdate",
    "GameSessionCreate",
    "GameSessionRead",

    # Institution schemas
    "InstitutionCreate",
    "InstitutionUpdate",
    "InstitutionRead",
    "WorkshopCreate",
    "WorkshopUpdate",
    "WorkshopRead",
    "ScopeKeyUpdate",
    "SystemFreeUseKeyUpdate",

    # Invite schemas
    "InviteStatus",
    "InstitutionInviteCreate",
    "WorkshopInviteCreate",
    "InviteRead",

    # User schemas
    "UserCreate",
    "UserUpdate",
    "UserRoleUpdate",
    "UserRead",
    "UserRoleRead",
    "UserWithRole",
]
