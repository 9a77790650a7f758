"""
Dependency injection for FastAPI.
"""
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthenticationError, NotFoundError
from app.core.security import decode_token
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.auth.authorization import AuthorizationService, Principal, PrincipalResolver

bearer_scheme = HTTPBearer(auto_error=False)


async def _resolve_principal(token: str, uow: UnitOfWork) -> Principal:
    # Decode token
    payload = decode_token(token)
    if not payload:
        raise AuthenticationError("Could not validate credentials")

    # Check token type
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    # Get principal
    subject = payload.get("sub")
    try:
        user_id = UUID(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")

    try:
        return await PrincipalResolver(uow).get_principal(user_id)
    except NotFoundError:
        raise AuthenticationError("User not found")


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Principal:
    """
    Get the authenticated principal from the bearer token.

    Args:
        credentials: Bearer credentials
        uow: Unit of work of the request

    Returns:
        Principal with role and scope

    Raises:
        AuthenticationError: If the token is missing or invalid or the user is gone
    """
    if credentials is None:
        raise AuthenticationError()
    return await _resolve_principal(credentials.credentials, uow)


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Optional[Principal]:
    """
    Get the principal if a bearer token was sent.

    Args:
        credentials: Bearer credentials, may be absent
        uow: Unit of work of the request

    Returns:
        Principal, or None for anonymous requests
    """
    if credentials is None:
        return None
    return await _resolve_principal(credentials.credentials, uow)


async def get_authorization_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> AuthorizationService:
    """Permission oracle bound to the request's unit of work."""
    return AuthorizationService(uow)
