"""
Database models for tenancy, games and shared AI provider API keys.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.ext.hybrid import hybrid_property

from app.infrastructure.database.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin for created_at, updated_at and audit columns."""
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    created_by = Column(Uuid, nullable=True)
    modified_by = Column(Uuid, nullable=True)


class User(Base, TimestampMixin):
    """A principal: registered user or anonymous workshop participant."""
    __tablename__ = "app_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Mirrors the self-share of the user's default key
    default_api_key_share_id = Column(
        Uuid,
        ForeignKey("api_key_share.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )

    @hybrid_property
    def is_deleted(self) -> bool:
        """Check if record is soft deleted."""
        return self.deleted_at is not None


class UserRole(Base, TimestampMixin):
    """The single active role of a user, optionally scoped."""
    __tablename__ = "user_role"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)
    institution_id = Column(Uuid, ForeignKey("institution.id"), nullable=True, index=True)
    workshop_id = Column(Uuid, ForeignKey("workshop.id"), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_role_user_id"),
        CheckConstraint(
            "role IN ('admin', 'head', 'staff', 'individual', 'participant')",
            name="role_valid",
        ),
        CheckConstraint(
            "role <> 'participant' OR workshop_id IS NOT NULL",
            name="participant_has_workshop",
        ),
    )


class Institution(Base, TimestampMixin):
    """An organisation owning workshops."""
    __tablename__ = "institution"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    free_use_api_key_share_id = Column(
        Uuid,
        ForeignKey("api_key_share.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )


class Workshop(Base, TimestampMixin):
    """A workshop inside an institution."""
    __tablename__ = "workshop"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    institution_id = Column(Uuid, ForeignKey("institution.id"), nullable=False, index=True)
    active = Column(Boolean, default=True, nullable=False)
    public = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Used exclusively by participant-role members
    default_api_key_share_id = Column(
        Uuid,
        ForeignKey("api_key_share.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )


class ApiKey(Base, TimestampMixin):
    """A paid AI provider credential owned by one user."""
    __tablename__ = "api_key"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    platform = Column(String(50), nullable=False)
    key = Column(Text, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    last_usage_success = Column(Boolean, nullable=True)

    __table_args__ = (
        Index(
            "uq_api_key_user_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )


class ApiKeyShare(Base, TimestampMixin):
    """Grants access to an API key for exactly one target."""
    __tablename__ = "api_key_share"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    api_key_id = Column(Uuid, ForeignKey("api_key.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("app_user.id"), nullable=True, index=True)
    workshop_id = Column(Uuid, ForeignKey("workshop.id"), nullable=True, index=True)
    institution_id = Column(Uuid, ForeignKey("institution.id"), nullable=True, index=True)
    game_id = Column(Uuid, ForeignKey("game.id"), nullable=True, index=True)
    allow_public_game_sponsoring = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN user_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN workshop_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN institution_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN game_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="single_target",
        ),
    )


class Game(Base, TimestampMixin):
    """A playable game; created_by is the owner."""
    __tablename__ = "game"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    workshop_id = Column(Uuid, ForeignKey("workshop.id"), nullable=True, index=True)
    public = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    public_sponsored_api_key_share_id = Column(
        Uuid,
        ForeignKey("api_key_share.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )
    private_share_hash = Column(String(128), unique=True, nullable=True)
    private_sponsored_api_key_share_id = Column(
        Uuid,
        ForeignKey("api_key_share.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )
    private_share_remaining = Column(Integer, nullable=True)


class GameSession(Base, TimestampMixin):
    """An instance of a game being played by a user."""
    __tablename__ = "game_session"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id = Column(Uuid, ForeignKey("game.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    workshop_id = Column(Uuid, ForeignKey("workshop.id"), nullable=True)
    # Nullable: the key may be deleted while the session lives on
    api_key_id = Column(Uuid, ForeignKey("api_key.id"), nullable=True, index=True)
    ai_platform = Column(String(50), nullable=True)
    ai_model = Column(String(100), nullable=True)


class UserRoleInvite(Base, TimestampMixin):
    """Invitation to assume a role in an institution or workshop."""
    __tablename__ = "user_role_invite"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id = Column(Uuid, ForeignKey("institution.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    workshop_id = Column(Uuid, ForeignKey("workshop.id"), nullable=True, index=True)
    invited_user_id = Column(Uuid, ForeignKey("app_user.id"), nullable=True)
    invited_email = Column(String(255), nullable=True)
    invite_token = Column(String(128), unique=True, nullable=True)
    max_uses = Column(Integer, nullable=True)
    uses_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), default="pending", nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by = Column(Uuid, nullable=True)


class SystemSettings(Base, TimestampMixin):
    """Singleton row with platform-wide settings."""
    __tablename__ = "system_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    default_ai_model = Column(String(100), nullable=True)
    free_use_api_key_id = Column(Uuid, ForeignKey("api_key.id"), nullable=True)
