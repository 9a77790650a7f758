"""
Roles and principal resolution.

A user holds at most one active role. The role is optionally scoped to an
institution and/or a workshop; participants are always scoped to a
workshop and inherit that workshop's institution.
"""
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from app.core.exceptions import NotFoundError
from app.repositories.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


class RoleType(str, Enum):
    """Built-in roles, from widest to narrowest scope."""
    ADMIN = "admin"
    HEAD = "head"
    STAFF = "staff"
    INDIVIDUAL = "individual"
    PARTICIPANT = "participant"


# Roles that may be granted through an institution invite
INSTITUTION_INVITE_ROLES = frozenset({RoleType.HEAD, RoleType.STAFF})


class Principal(BaseModel):
    """The acting user together with its role and hierarchy scope."""
    id: UUID
    name: str
    email: Optional[str] = None
    role: Optional[RoleType] = None
    institution_id: Optional[UUID] = None
    workshop_id: Optional[UUID] = None
    default_api_key_share_id: Optional[UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == RoleType.ADMIN

    def has_role(self, *roles: RoleType) -> bool:
        """Check whether the active role is one of the given roles."""
        return self.role is not None and self.role in roles

    def is_member_of(self, institution_id: Optional[UUID]) -> bool:
        """Check whether the role is scoped to the given institution."""
        return institution_id is not None and self.institution_id == institution_id


class PrincipalResolver:
    """Loads identity, active role and scope of a user."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def get_principal(self, user_id: UUID) -> Principal:
        """
        Resolve a principal.

        Args:
            user_id: User ID

        Returns:
            Principal with role and scope

        Raises:
            NotFoundError: If the user does not exist or was deleted
        """
        user = await self.uow.users.get_active(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        role = await self.uow.roles.get_for_user(user_id)
        institution_id = role.institution_id if role else None
        workshop_id = role.workshop_id if role else None

        if workshop_id is not None and institution_id is None:
            workshop = await self.uow.workshops.get(workshop_id)
            if workshop is not None:
                institution_id = workshop.institution_id

        principal = Principal(
            id=user.id,
            name=user.name,
            email=user.email,
            role=RoleType(role.role) if role else None,
            institution_id=institution_id,
            workshop_id=workshop_id,
            default_api_key_share_id=user.default_api_key_share_id,
        )
        logger.debug(
            "principal_resolved",
            user_id=str(user_id),
            role=principal.role,
            institution_id=str(institution_id) if institution_id else None,
            workshop_id=str(workshop_id) if workshop_id else None,
        )
        return principal
