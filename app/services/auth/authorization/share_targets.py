"""
Share targets.

An API key share grants access to exactly one target. The target is a
tagged union so that "no target" and "several targets" cannot be expressed.
"""
from typing import Annotated, Any, Dict, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter

from app.core.exceptions import ValidationError


class UserTarget(BaseModel):
    kind: Literal["user"] = "user"
    id: UUID


class WorkshopTarget(BaseModel):
    kind: Literal["workshop"] = "workshop"
    id: UUID


class InstitutionTarget(BaseModel):
    kind: Literal["institution"] = "institution"
    id: UUID


class GameTarget(BaseModel):
    kind: Literal["game"] = "game"
    id: UUID


ShareTarget = Annotated[
    Union[UserTarget, WorkshopTarget, InstitutionTarget, GameTarget],
    Field(discriminator="kind"),
]

_share_target_adapter = TypeAdapter(ShareTarget)

# Column on api_key_share holding each target kind
TARGET_COLUMNS: Dict[str, str] = {
    "user": "user_id",
    "workshop": "workshop_id",
    "institution": "institution_id",
    "game": "game_id",
}


def parse_share_target(data: Any) -> ShareTarget:
    """Validate a raw ``{"kind": ..., "id": ...}`` mapping into a target."""
    return _share_target_adapter.validate_python(data)


def target_columns(target: ShareTarget) -> Dict[str, UUID]:
    """Column values for storing a target on a share row."""
    return {TARGET_COLUMNS[target.kind]: target.id}


def target_of(share: Any) -> ShareTarget:
    """
    Read the target of a stored share.

    Args:
        share: ApiKeyShare row

    Returns:
        The single target of the share

    Raises:
        ValidationError: If the row does not carry exactly one target
    """
    present = [
        (kind, getattr(share, column))
        for kind, column in TARGET_COLUMNS.items()
        if getattr(share, column) is not None
    ]
    if len(present) != 1:
        raise ValidationError("A share must have exactly one target", field="target")
    kind, target_id = present[0]
    return parse_share_target({"kind": kind, "id": target_id})
