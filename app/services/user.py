"""
User service.
"""
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.domain.schemas.user import (
    UserCreate,
    UserRead,
    UserRoleRead,
    UserRoleUpdate,
    UserUpdate,
    UserWithRole,
)
from app.infrastructure.database.models import User, utcnow
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
    RoleType,
)

logger = structlog.get_logger(__name__)


class UserService:
    """User service."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def create(
        self,
        user_create: UserCreate,
    ) -> User:
        """
        Create a new user.

        New users start with the individual role; user and role are written
        in one transaction.

        Args:
            user_create: User creation data

        Returns:
            Created user

        Raises:
            ConflictError: If the email is already registered
        """
        email = user_create.email.strip() if user_create.email else None
        if email and await self.uow.users.get_by_email(email) is not None:
            raise ConflictError("Email already registered", details={"field": "email"})

        async with self.uow.transaction():
            user = await self.uow.users.create({
                "name": user_create.name.strip(),
                "email": email,
            })
            await self.uow.roles.create({
                "user_id": user.id,
                "role": RoleType.INDIVIDUAL.value,
                "created_by": user.id,
            })

        logger.info("user_created", user_id=str(user.id))
        return user

    async def get(
        self,
        principal: Principal,
        user_id: UUID,
    ) -> UserWithRole:
        """
        Get a user with the active role.

        Args:
            principal: Acting principal
            user_id: User ID

        Returns:
            User with role
        """
        (await self.authz.can_access_user(principal, PermissionAction.READ, user_id)).ensure()
        user = await self.uow.users.get_active(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        role = await self.uow.roles.get_for_user(user_id)
        return self._with_role(user, role)

    async def list_users(self, principal: Principal) -> List[UserWithRole]:
        """List users visible to the principal: everyone for admins, institution members for heads."""
        (await self.authz.can_access_user(principal, PermissionAction.LIST)).ensure()
        if principal.is_admin:
            users = await self.uow.users.get_multi(limit=1000)
            return [self._with_role(user, await self.uow.roles.get_for_user(user.id)) for user in users]
        rows = await self.uow.users.list_members(principal.institution_id)
        return [self._with_role(user, role) for user, role in rows]

    async def update(
        self,
        principal: Principal,
        user_id: UUID,
        user_update: UserUpdate,
    ) -> User:
        """
        Update user.

        Args:
            principal: Acting principal
            user_id: User ID
            user_update: Update data

        Returns:
            Updated user
        """
        (await self.authz.can_access_user(principal, PermissionAction.UPDATE, user_id)).ensure()
        update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
        email = update_data.get("email")
        if email:
            existing = await self.uow.users.get_by_email(email)
            if existing is not None and existing.id != user_id:
                raise ConflictError("Email already registered", details={"field": "email"})
        update_data["modified_by"] = principal.id
        user = await self.uow.users.update(user_id, update_data)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def delete(self, principal: Principal, user_id: UUID) -> None:
        """Soft delete a user (admin only)."""
        (await self.authz.can_access_user(principal, PermissionAction.DELETE, user_id)).ensure()
        if user_id == principal.id:
            raise ValidationError("You cannot delete yourself", field="user_id")
        user = await self.uow.users.update(user_id, {
            "deleted_at": utcnow(),
            "modified_by": principal.id,
        })
        if user is None:
            raise NotFoundError("User", user_id)
        logger.info("user_deleted", user_id=str(user_id), deleted_by=str(principal.id))

    async def set_role(self, principal: Principal, user_id: UUID, data: UserRoleUpdate) -> UserRoleRead:
        """
        Assign a role directly (admin only).

        Participants need a workshop; their institution is taken from it.

        Raises:
            ValidationError: If a participant role has no workshop
        """
        if not principal.is_admin:
            raise ForbiddenError("Only admins can assign roles")
        if await self.uow.users.get_active(user_id) is None:
            raise NotFoundError("User", user_id)

        institution_id = data.institution_id
        if data.role == RoleType.PARTICIPANT:
            if data.workshop_id is None:
                raise ValidationError("Participants need a workshop", field="workshop_id")
            workshop = await self.uow.workshops.get_active(data.workshop_id)
            if workshop is None:
                raise NotFoundError("Workshop", data.workshop_id)
            institution_id = workshop.institution_id
        elif data.role in (RoleType.HEAD, RoleType.STAFF) and institution_id is None:
            raise ValidationError(f"The {data.role.value} role needs an institution", field="institution_id")
        if institution_id is not None and await self.uow.institutions.get(institution_id) is None:
            raise NotFoundError("Institution", institution_id)

        async with self.uow.transaction():
            role = await self.uow.roles.replace(
                user_id,
                data.role.value,
                institution_id=institution_id,
                workshop_id=data.workshop_id if data.role == RoleType.PARTICIPANT else None,
                created_by=principal.id,
            )

        logger.info("user_role_set", user_id=str(user_id), role=data.role.value, set_by=str(principal.id))
        return UserRoleRead.model_validate(role)

    @staticmethod
    def _with_role(user: User, role) -> UserWithRole:
        return UserWithRole(
            **UserRead.model_validate(user).model_dump(),
            role=UserRoleRead.model_validate(role) if role else None,
        )
