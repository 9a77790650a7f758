"""
System settings endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.core.dependencies import get_current_principal
from app.domain.schemas.institution import SystemFreeUseKeyUpdate
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.api_keys import ScopeKeyService
from app.services.auth.authorization import Principal

router = APIRouter()


@router.put("/free-use-key")
async def set_system_free_use_key(
    data: SystemFreeUseKeyUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Dict[str, Any]:
    """
    Set or clear the key anyone may fall back to. Admin only.
    """
    system = await ScopeKeyService(uow).set_system_free_use_api_key(principal, data.api_key_id)
    return {
        "free_use_api_key_id": system.free_use_api_key_id,
        "default_ai_model": system.default_ai_model,
    }
