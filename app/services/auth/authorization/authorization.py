"""
Authorization service: the permission oracle of the platform.

Every entity has one decision function taking a principal, an operation and
the contextual IDs of the request. Each function returns an
``AuthorizationResult`` that either grants access or carries the reason and
error kind of the denial. Decisions are never cached; every check reads the
current state through the injected ``UnitOfWork``.
"""
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from app.core.exceptions import (
    ErrorKind,
    ForbiddenError,
    LastHeadError,
    NotFoundError,
    ValidationError,
)
from app.repositories.unit_of_work import UnitOfWork

from .permissions import PermissionAction, ResourceType
from .rbac import INSTITUTION_INVITE_ROLES, Principal, RoleType

logger = structlog.get_logger(__name__)


class AuthorizationContext(BaseModel):
    """Contextual IDs an access check is made for."""
    resource_id: Optional[UUID] = None
    institution_id: Optional[UUID] = None
    workshop_id: Optional[UUID] = None
    game_id: Optional[UUID] = None
    share_id: Optional[UUID] = None
    member_id: Optional[UUID] = None
    share_token: Optional[str] = None
    role: Optional[str] = None


class AuthorizationResult(BaseModel):
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    kind: Optional[ErrorKind] = None
    missing_resource: Optional[str] = None
    applied_policies: List[str] = Field(default_factory=list)

    @property
    def denied(self) -> bool:
        """Check if authorization was denied."""
        return not self.allowed

    @classmethod
    def grant(cls, policy: str) -> "AuthorizationResult":
        return cls(allowed=True, reason=policy, applied_policies=[policy])

    @classmethod
    def forbid(cls, reason: str) -> "AuthorizationResult":
        return cls(allowed=False, reason=reason, kind=ErrorKind.FORBIDDEN)

    @classmethod
    def not_found(cls, resource: str) -> "AuthorizationResult":
        return cls(
            allowed=False,
            reason=f"{resource} not found",
            kind=ErrorKind.NOT_FOUND,
            missing_resource=resource,
        )

    @classmethod
    def invalid(cls, reason: str) -> "AuthorizationResult":
        return cls(allowed=False, reason=reason, kind=ErrorKind.VALIDATION)

    def ensure(self) -> None:
        """
        Raise the error matching a denial.

        Raises:
            AppError: The subclass matching ``kind`` if access was denied
        """
        if self.allowed:
            return
        if self.kind == ErrorKind.NOT_FOUND:
            raise NotFoundError(self.missing_resource or "Resource")
        if self.kind == ErrorKind.VALIDATION:
            raise ValidationError(self.reason or "Invalid request")
        if self.kind == ErrorKind.LAST_HEAD:
            raise LastHeadError(self.reason or LastHeadError().message)
        raise ForbiddenError(self.reason or "Access denied")


Checker = Callable[
    [Principal, PermissionAction, AuthorizationContext],
    Awaitable[AuthorizationResult],
]


class AuthorizationService:
    """
    Permission oracle.

    Usage:
        authz = AuthorizationService(uow)
        result = await authz.can_access_game(principal, PermissionAction.READ, game_id)
        result.ensure()
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self._checkers: Dict[ResourceType, Checker] = {
            ResourceType.INSTITUTION: self._check_institution,
            ResourceType.INSTITUTION_MEMBERS: self._check_institution_members,
            ResourceType.WORKSHOP: self._check_workshop,
            ResourceType.WORKSHOP_MEMBERS: self._check_workshop_members,
            ResourceType.GAME: self._check_game,
            ResourceType.GAME_SESSION: self._check_game_session,
            ResourceType.API_KEY: self._check_api_key,
            ResourceType.USER: self._check_user,
            ResourceType.INVITE: self._check_invite,
        }

    async def authorize(
        self,
        principal: Principal,
        action: PermissionAction,
        resource: ResourceType,
        context: Optional[AuthorizationContext] = None,
    ) -> AuthorizationResult:
        """
        Main authorization method.

        Args:
            principal: Acting principal
            action: Operation to perform
            resource: Entity type
            context: Contextual IDs of the request

        Returns:
            AuthorizationResult with decision and reason
        """
        context = context or AuthorizationContext()
        result = await self._checkers[resource](principal, action, context)

        log = logger.debug if result.allowed else logger.info
        log(
            "authorization_decision",
            user_id=str(principal.id),
            role=principal.role,
            action=action,
            resource=resource,
            resource_id=str(context.resource_id) if context.resource_id else None,
            allowed=result.allowed,
            reason=result.reason,
            policies=result.applied_policies,
        )
        return result

    async def require(
        self,
        principal: Principal,
        action: PermissionAction,
        resource: ResourceType,
        context: Optional[AuthorizationContext] = None,
    ) -> None:
        """Authorize and raise the matching error on denial."""
        result = await self.authorize(principal, action, resource, context)
        result.ensure()

    # Entity shortcuts

    async def can_access_institution(
        self,
        principal: Principal,
        action: PermissionAction,
        institution_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.INSTITUTION,
            AuthorizationContext(resource_id=institution_id),
        )

    async def can_access_institution_members(
        self,
        principal: Principal,
        action: PermissionAction,
        institution_id: UUID,
        member_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.INSTITUTION_MEMBERS,
            AuthorizationContext(resource_id=institution_id, member_id=member_id),
        )

    async def can_access_workshop(
        self,
        principal: Principal,
        action: PermissionAction,
        workshop_id: Optional[UUID] = None,
        institution_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.WORKSHOP,
            AuthorizationContext(resource_id=workshop_id, institution_id=institution_id),
        )

    async def can_access_workshop_members(
        self,
        principal: Principal,
        action: PermissionAction,
        workshop_id: UUID,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.WORKSHOP_MEMBERS,
            AuthorizationContext(resource_id=workshop_id),
        )

    async def can_access_game(
        self,
        principal: Principal,
        action: PermissionAction,
        game_id: Optional[UUID] = None,
        share_token: Optional[str] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.GAME,
            AuthorizationContext(resource_id=game_id, share_token=share_token),
        )

    async def can_access_game_session(
        self,
        principal: Principal,
        action: PermissionAction,
        session_id: Optional[UUID] = None,
        game_id: Optional[UUID] = None,
        workshop_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.GAME_SESSION,
            AuthorizationContext(resource_id=session_id, game_id=game_id, workshop_id=workshop_id),
        )

    async def can_access_api_key(
        self,
        principal: Principal,
        action: PermissionAction,
        key_id: Optional[UUID] = None,
        share_id: Optional[UUID] = None,
        game_id: Optional[UUID] = None,
        workshop_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.API_KEY,
            AuthorizationContext(
                resource_id=key_id,
                share_id=share_id,
                game_id=game_id,
                workshop_id=workshop_id,
            ),
        )

    async def can_access_user(
        self,
        principal: Principal,
        action: PermissionAction,
        user_id: Optional[UUID] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.USER,
            AuthorizationContext(resource_id=user_id),
        )

    async def can_access_invite(
        self,
        principal: Principal,
        action: PermissionAction,
        invite_id: Optional[UUID] = None,
        institution_id: Optional[UUID] = None,
        workshop_id: Optional[UUID] = None,
        role: Optional[str] = None,
    ) -> AuthorizationResult:
        return await self.authorize(
            principal, action, ResourceType.INVITE,
            AuthorizationContext(
                resource_id=invite_id,
                institution_id=institution_id,
                workshop_id=workshop_id,
                role=role,
            ),
        )

    # Decision functions

    async def _check_institution(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if principal.is_admin:
            return AuthorizationResult.grant("admin")

        if action == PermissionAction.CREATE:
            return AuthorizationResult.forbid("Only admins can create institutions")
        if action == PermissionAction.LIST:
            return AuthorizationResult.forbid("Only admins can list institutions")
        if action == PermissionAction.DELETE:
            return AuthorizationResult.forbid("Only admins can delete institutions")

        institution_id = context.resource_id
        if institution_id is None:
            return AuthorizationResult.invalid(f"Institution ID required for {action.value} operation")
        if await self.uow.institutions.get(institution_id) is None:
            return AuthorizationResult.not_found("Institution")

        if action == PermissionAction.READ:
            if principal.is_member_of(institution_id):
                return AuthorizationResult.grant("institution_member")
            return AuthorizationResult.forbid("Not authorized to read this institution")

        # Update
        if principal.role == RoleType.HEAD and principal.is_member_of(institution_id):
            return AuthorizationResult.grant("institution_head")
        return AuthorizationResult.forbid(
            "Only admin or head of institution can update this institution"
        )

    async def _check_institution_members(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        institution_id = context.resource_id
        if institution_id is None:
            return AuthorizationResult.invalid("Institution ID required")
        if await self.uow.institutions.get(institution_id) is None:
            return AuthorizationResult.not_found("Institution")

        if action in (PermissionAction.READ, PermissionAction.LIST):
            if principal.is_admin:
                return AuthorizationResult.grant("admin")
            if principal.has_role(RoleType.HEAD, RoleType.STAFF) and principal.is_member_of(institution_id):
                return AuthorizationResult.grant("institution_staff")
            return AuthorizationResult.forbid("Only head or staff can view institution members")

        if action != PermissionAction.DELETE:
            return AuthorizationResult.forbid("Members join institutions through invites")

        is_head = principal.role == RoleType.HEAD and principal.is_member_of(institution_id)
        if not principal.is_admin and not is_head:
            return AuthorizationResult.forbid("Only admin or head of institution can remove members")
        if context.member_id is None:
            return AuthorizationResult.invalid("Member ID required")
        if context.member_id == principal.id:
            return AuthorizationResult.forbid("You cannot remove yourself from the institution")

        member_role = await self.uow.roles.get_for_user(context.member_id)
        if member_role is None or not await self._role_in_institution(member_role, institution_id):
            return AuthorizationResult.not_found("Member")

        if member_role.role == RoleType.HEAD.value:
            if await self.uow.roles.count_heads(institution_id) <= 1:
                return AuthorizationResult(
                    allowed=False,
                    reason="Cannot remove the last head of an institution",
                    kind=ErrorKind.LAST_HEAD,
                )

        return AuthorizationResult.grant("admin" if principal.is_admin else "institution_head")

    async def _check_workshop(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if action in (PermissionAction.CREATE, PermissionAction.LIST):
            if principal.is_admin:
                return AuthorizationResult.grant("admin")
            if context.institution_id is None:
                return AuthorizationResult.invalid("Institution ID required")
            if not principal.is_member_of(context.institution_id):
                return AuthorizationResult.forbid(
                    "Not authorized to access workshops for this institution"
                )
            if principal.has_role(RoleType.HEAD, RoleType.STAFF):
                return AuthorizationResult.grant("institution_staff")
            return AuthorizationResult.forbid(
                f"Only admin, head, or staff can {action.value} workshops"
            )

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"Workshop ID required for {action.value} operation")
        workshop = await self.uow.workshops.get_active(context.resource_id)
        if workshop is None:
            return AuthorizationResult.not_found("Workshop")
        if principal.is_admin:
            return AuthorizationResult.grant("admin")
        if not principal.is_member_of(workshop.institution_id):
            return AuthorizationResult.forbid("Not authorized to access workshops for this institution")

        if action == PermissionAction.READ:
            if principal.has_role(RoleType.HEAD, RoleType.STAFF):
                return AuthorizationResult.grant("institution_staff")
            if principal.role == RoleType.PARTICIPANT and principal.workshop_id == workshop.id:
                return AuthorizationResult.grant("workshop_participant")
            return AuthorizationResult.forbid("Not authorized to read this workshop")

        # Update / Delete
        if principal.role == RoleType.HEAD:
            return AuthorizationResult.grant("institution_head")
        if principal.role == RoleType.STAFF and workshop.created_by == principal.id:
            return AuthorizationResult.grant("workshop_creator")
        return AuthorizationResult.forbid(
            "Only admin, head of institution, or staff who created the workshop can modify it"
        )

    async def _check_workshop_members(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if context.resource_id is None:
            return AuthorizationResult.invalid("Workshop ID required")
        workshop = await self.uow.workshops.get_active(context.resource_id)
        if workshop is None:
            return AuthorizationResult.not_found("Workshop")
        if principal.is_admin:
            return AuthorizationResult.grant("admin")
        if not principal.is_member_of(workshop.institution_id):
            return AuthorizationResult.forbid("Not authorized to access members of this workshop")

        if action in (PermissionAction.READ, PermissionAction.LIST):
            if principal.has_role(RoleType.HEAD, RoleType.STAFF):
                return AuthorizationResult.grant("institution_staff")
            if principal.role == RoleType.PARTICIPANT and principal.workshop_id == workshop.id:
                return AuthorizationResult.grant("workshop_participant")
            return AuthorizationResult.forbid("Not authorized to view members of this workshop")

        if principal.role == RoleType.HEAD:
            return AuthorizationResult.grant("institution_head")
        if principal.role == RoleType.STAFF and workshop.created_by == principal.id:
            return AuthorizationResult.grant("workshop_creator")
        return AuthorizationResult.forbid(
            "Only head of institution or staff who created the workshop can manage its members"
        )

    async def _check_game(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if action in (PermissionAction.CREATE, PermissionAction.LIST):
            return AuthorizationResult.grant("authenticated")

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"Game ID required for {action.value} operation")
        game = await self.uow.games.get_active(context.resource_id)
        if game is None:
            return AuthorizationResult.not_found("Game")
        if principal.is_admin:
            return AuthorizationResult.grant("admin")
        if game.created_by == principal.id:
            return AuthorizationResult.grant("owner")

        if action == PermissionAction.READ:
            if game.public:
                return AuthorizationResult.grant("public_game")
            if (
                context.share_token
                and game.private_share_hash
                and context.share_token == game.private_share_hash
            ):
                return AuthorizationResult.grant("private_share_token")
            if game.workshop_id is not None:
                if (
                    principal.has_role(RoleType.PARTICIPANT, RoleType.STAFF)
                    and principal.workshop_id == game.workshop_id
                ):
                    return AuthorizationResult.grant("workshop_member")
                if await self._is_head_of_workshop(principal, game.workshop_id):
                    return AuthorizationResult.grant("institution_head")
            return AuthorizationResult.forbid("Not authorized to read this game")

        # Update / Delete
        if game.workshop_id is not None and await self._is_head_of_workshop(principal, game.workshop_id):
            return AuthorizationResult.grant("institution_head")
        return AuthorizationResult.forbid("Only the owner or institution head can modify this game")

    async def _check_game_session(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if action == PermissionAction.LIST:
            return AuthorizationResult.grant("authenticated")

        if action == PermissionAction.CREATE:
            if context.game_id is None:
                return AuthorizationResult.invalid("Game ID required to create a session")
            game = await self.uow.games.get_active(context.game_id)
            if game is None:
                return AuthorizationResult.not_found("Game")
            if game.workshop_id is not None:
                workshop_read = await self._check_workshop(
                    principal, PermissionAction.READ,
                    AuthorizationContext(resource_id=game.workshop_id),
                )
                if workshop_read.denied:
                    return AuthorizationResult.forbid("Not authorized to play games in this workshop")
            if context.workshop_id is not None:
                workshop_read = await self._check_workshop(
                    principal, PermissionAction.READ,
                    AuthorizationContext(resource_id=context.workshop_id),
                )
                if workshop_read.denied:
                    return AuthorizationResult.forbid("Not authorized to create sessions in this workshop")
            return AuthorizationResult.grant("authenticated")

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"Session ID required for {action.value} operation")
        session = await self.uow.game_sessions.get(context.resource_id)
        if session is None:
            return AuthorizationResult.not_found("Game session")
        if principal.is_admin:
            return AuthorizationResult.grant("admin")
        if session.user_id == principal.id:
            return AuthorizationResult.grant("owner")

        if action == PermissionAction.UPDATE:
            return AuthorizationResult.forbid("Only the owner can update this session")

        if session.workshop_id is not None:
            if principal.role == RoleType.STAFF and principal.workshop_id == session.workshop_id:
                return AuthorizationResult.grant("workshop_staff")
            if await self._is_head_of_workshop(principal, session.workshop_id):
                return AuthorizationResult.grant("institution_head")

        if action == PermissionAction.READ:
            return AuthorizationResult.forbid("Not authorized to read this session")
        return AuthorizationResult.forbid(
            "Only the owner, workshop staff, or institution head can delete this session"
        )

    async def _check_api_key(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if action in (PermissionAction.CREATE, PermissionAction.LIST):
            return AuthorizationResult.grant("authenticated")

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"API key ID required for {action.value} operation")
        key = await self.uow.api_keys.get(context.resource_id)
        if key is None:
            return AuthorizationResult.not_found("API key")

        # 1. Ownership is authoritative
        if key.user_id == principal.id:
            return AuthorizationResult.grant("owner")

        if action in (PermissionAction.UPDATE, PermissionAction.DELETE):
            return AuthorizationResult.forbid("Only the owner can modify this API key")

        # 2. Direct share to the principal or its role scope
        if await self.uow.shares.has_direct_match(
            key.id, principal.id, principal.workshop_id, principal.institution_id
        ):
            return AuthorizationResult.grant("direct_share")

        # 3. Game sponsorship
        if context.game_id is not None and context.share_id is not None:
            game = await self.uow.games.get_active(context.game_id)
            share = await self.uow.shares.get(context.share_id)
            if (
                game is not None
                and share is not None
                and share.api_key_id == key.id
                and context.share_id in (
                    game.public_sponsored_api_key_share_id,
                    game.private_sponsored_api_key_share_id,
                )
            ):
                return AuthorizationResult.grant("game_sponsorship")

        # 4. Workshop sponsorship
        if context.workshop_id is not None:
            if await self.uow.shares.has_workshop_sponsoring_share(key.id, context.workshop_id):
                return AuthorizationResult.grant("workshop_sponsorship")

        return AuthorizationResult.forbid("Not authorized to read this API key")

    async def _check_user(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if principal.is_admin:
            return AuthorizationResult.grant("admin")

        if action == PermissionAction.CREATE:
            return AuthorizationResult.grant("authenticated")
        if action == PermissionAction.LIST:
            if principal.role == RoleType.HEAD and principal.institution_id is not None:
                return AuthorizationResult.grant("institution_head")
            return AuthorizationResult.forbid("Only admins or institution heads can list users")
        if action == PermissionAction.DELETE:
            return AuthorizationResult.forbid("Only admins can delete users")

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"User ID required for {action.value} operation")
        if context.resource_id == principal.id:
            return AuthorizationResult.grant("self")

        if action == PermissionAction.UPDATE:
            return AuthorizationResult.forbid("Not authorized to update this user")

        # Read
        if principal.role == RoleType.HEAD and principal.institution_id is not None:
            target_role = await self.uow.roles.get_for_user(context.resource_id)
            if target_role is not None and await self._role_in_institution(
                target_role, principal.institution_id
            ):
                return AuthorizationResult.grant("institution_head")
        return AuthorizationResult.forbid("Not authorized to read this user")

    async def _check_invite(
        self,
        principal: Principal,
        action: PermissionAction,
        context: AuthorizationContext,
    ) -> AuthorizationResult:
        if action == PermissionAction.CREATE:
            if context.workshop_id is not None:
                if context.role is not None and context.role != RoleType.PARTICIPANT.value:
                    return AuthorizationResult.invalid("Workshop invites only allow the participant role")
                return await self._check_workshop(
                    principal, PermissionAction.UPDATE,
                    AuthorizationContext(resource_id=context.workshop_id),
                )
            if context.institution_id is None:
                return AuthorizationResult.invalid("Institution or workshop ID required")
            if context.role not in {role.value for role in INSTITUTION_INVITE_ROLES}:
                return AuthorizationResult.invalid(
                    f"Institution invites only allow head or staff roles, got: {context.role}"
                )
            return await self._check_institution(
                principal, PermissionAction.UPDATE,
                AuthorizationContext(resource_id=context.institution_id),
            )

        if action == PermissionAction.LIST:
            if principal.is_admin:
                return AuthorizationResult.grant("admin")
            if context.institution_id is None:
                return AuthorizationResult.invalid("Institution ID required")
            if principal.has_role(RoleType.HEAD, RoleType.STAFF) and principal.is_member_of(
                context.institution_id
            ):
                return AuthorizationResult.grant("institution_staff")
            return AuthorizationResult.forbid("Only head or staff can list invites")

        if context.resource_id is None:
            return AuthorizationResult.invalid(f"Invite ID required for {action.value} operation")
        invite = await self.uow.invites.get(context.resource_id)
        if invite is None:
            return AuthorizationResult.not_found("Invite")
        if principal.is_admin:
            return AuthorizationResult.grant("admin")

        is_creator = invite.created_by == principal.id
        is_invited = (
            (invite.invited_user_id is not None and invite.invited_user_id == principal.id)
            or (invite.invited_email is not None and invite.invited_email == principal.email)
        )

        if action == PermissionAction.DELETE:
            if is_creator:
                return AuthorizationResult.grant("creator")
            return AuthorizationResult.forbid("Only the invite creator or an admin can revoke invites")

        if is_creator:
            return AuthorizationResult.grant("creator")
        if is_invited:
            return AuthorizationResult.grant("invited_user")

        if action == PermissionAction.READ:
            if principal.has_role(RoleType.HEAD, RoleType.STAFF) and principal.is_member_of(
                invite.institution_id
            ):
                return AuthorizationResult.grant("institution_staff")
            return AuthorizationResult.forbid("Not authorized to read this invite")
        return AuthorizationResult.forbid("Not authorized to update this invite")

    # Helpers

    async def _is_head_of_workshop(self, principal: Principal, workshop_id: UUID) -> bool:
        """Check whether the principal heads the institution owning a workshop."""
        if principal.role != RoleType.HEAD or principal.institution_id is None:
            return False
        workshop = await self.uow.workshops.get(workshop_id)
        return workshop is not None and workshop.institution_id == principal.institution_id

    async def _role_in_institution(self, role, institution_id: UUID) -> bool:
        """Check whether a role row is scoped to an institution or one of its workshops."""
        if role.institution_id == institution_id:
            return True
        if role.workshop_id is not None:
            workshop = await self.uow.workshops.get(role.workshop_id)
            return workshop is not None and workshop.institution_id == institution_id
        return False
