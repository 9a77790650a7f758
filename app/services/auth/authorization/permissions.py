"""
Operations and resource types checked by the authorization service.
"""
from enum import Enum


class PermissionAction(str, Enum):
    """CRUD+List operations every access check is made for."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


class ResourceType(str, Enum):
    """Entities guarded by the authorization service."""
    INSTITUTION = "institution"
    INSTITUTION_MEMBERS = "institution_members"
    WORKSHOP = "workshop"
    WORKSHOP_MEMBERS = "workshop_members"
    GAME = "game"
    GAME_SESSION = "game_session"
    API_KEY = "api_key"
    USER = "user"
    INVITE = "invite"
