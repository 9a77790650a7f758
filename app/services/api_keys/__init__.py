"""
API key sharing and sponsorship.
"""

from .availability import KeyAvailabilityService
from .default_keys import DefaultKeyService
from .scope_keys import ScopeKeyService
from .session_keys import ResolvedApiKey, SessionKeyResolver
from .share_store import ShareStore, clear_share_references, default_key_name, shorten_key
from .sponsorship import SponsorshipService

__all__ = [
    "DefaultKeyService",
    "KeyAvailabilityService",
    "ResolvedApiKey",
    "ScopeKeyService",
    "SessionKeyResolver",
    "ShareStore",
    "SponsorshipService",
    "clear_share_references",
    "default_key_name",
    "shorten_key",
]
