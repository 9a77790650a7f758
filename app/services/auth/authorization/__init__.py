"""
Authorization for Game Lab.

Resolves principals with their single active role and hierarchy scope, and
decides for every entity and operation whether a principal may act.
"""

from .authorization import AuthorizationContext, AuthorizationResult, AuthorizationService
from .permissions import PermissionAction, ResourceType
from .rbac import INSTITUTION_INVITE_ROLES, Principal, PrincipalResolver, RoleType
from .share_targets import (
    GameTarget,
    InstitutionTarget,
    ShareTarget,
    UserTarget,
    WorkshopTarget,
    parse_share_target,
    target_columns,
    target_of,
)

__all__ = [
    # Core services
    "AuthorizationService",
    "PrincipalResolver",

    # Models
    "AuthorizationContext",
    "AuthorizationResult",
    "PermissionAction",
    "ResourceType",
    "Principal",
    "RoleType",
    "INSTITUTION_INVITE_ROLES",

    # Share targets
    "ShareTarget",
    "UserTarget",
    "WorkshopTarget",
    "InstitutionTarget",
    "GameTarget",
    "parse_share_target",
    "target_columns",
    "target_of",
]
