"""
Unit of Work pattern implementation for transactional operations.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.base import AsyncSessionLocal
from app.repositories.api_key import ApiKeyRepository, ApiKeyShareRepository
from app.repositories.game import GameRepository, GameSessionRepository
from app.repositories.institution import InstitutionRepository, WorkshopRepository
from app.repositories.invite import InviteRepository
from app.repositories.system_settings import SystemSettingsRepository
from app.repositories.user import UserRepository, UserRoleRepository

SessionFactory = Callable[[], AsyncSession]


class UnitOfWork:
    """
    Unit of Work pattern for managing database transactions.

    Ensures all repository operations within a unit are committed together
    or rolled back on failure. The session factory is injectable so the
    same services run against any engine.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._session: AsyncSession | None = None

        # Repository instances
        self._users: UserRepository | None = None
        self._roles: UserRoleRepository | None = None
        self._institutions: InstitutionRepository | None = None
        self._workshops: WorkshopRepository | None = None
        self._api_keys: ApiKeyRepository | None = None
        self._shares: ApiKeyShareRepository | None = None
        self._games: GameRepository | None = None
        self._game_sessions: GameSessionRepository | None = None
        self._invites: InviteRepository | None = None
        self._system_settings: SystemSettingsRepository | None = None

    async def __aenter__(self):
        """Enter the context manager."""
        self._session = self._session_factory()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit the context manager."""
        try:
            if exc_type is not None:
                await self.rollback()
            else:
                await self.commit()
        finally:
            await self._session.close()
            self._session = None
            self._reset_repositories()

    def _reset_repositories(self) -> None:
        self._users = None
        self._roles = None
        self._institutions = None
        self._workshops = None
        self._api_keys = None
        self._shares = None
        self._games = None
        self._game_sessions = None
        self._invites = None
        self._system_settings = None

    async def commit(self):
        """Commit the transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the transaction."""
        if self._session:
            await self._session.rollback()

    async def refresh(self, instance):
        """Refresh an instance from the database."""
        if self._session:
            await self._session.refresh(instance)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["UnitOfWork"]:
        """
        Run a block of writes atomically.

        Commits when the block finishes and rolls back every write of the
        block if any step raises.

        Usage:
            async with uow.transaction():
                key = await uow.api_keys.create(...)
                await uow.shares.create(...)
        """
        try:
            yield self
        except Exception:
            await self.rollback()
            raise
        await self.commit()

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        if not self._session:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def users(self) -> UserRepository:
        """Get user repository."""
        if not self._users:
            self._users = UserRepository(self.session)
        return self._users

    @property
    def roles(self) -> UserRoleRepository:
        """Get user role repository."""
        if not self._roles:
            self._roles = UserRoleRepository(self.session)
        return self._roles

    @property
    def institutions(self) -> InstitutionRepository:
        """Get institution repository."""
        if not self._institutions:
            self._institutions = InstitutionRepository(self.session)
        return self._institutions

    @property
    def workshops(self) -> WorkshopRepository:
        """Get workshop repository."""
        if not self._workshops:
            self._workshops = WorkshopRepository(self.session)
        return self._workshops

    @property
    def api_keys(self) -> ApiKeyRepository:
        """Get API key repository."""
        if not self._api_keys:
            self._api_keys = ApiKeyRepository(self.session)
        return self._api_keys

    @property
    def shares(self) -> ApiKeyShareRepository:
        """Get API key share repository."""
        if not self._shares:
            self._shares = ApiKeyShareRepository(self.session)
        return self._shares

    @property
    def games(self) -> GameRepository:
        """Get game repository."""
        if not self._games:
            self._games = GameRepository(self.session)
        return self._games

    @property
    def game_sessions(self) -> GameSessionRepository:
        """Get game session repository."""
        if not self._game_sessions:
            self._game_sessions = GameSessionRepository(self.session)
        return self._game_sessions

    @property
    def invites(self) -> InviteRepository:
        """Get invite repository."""
        if not self._invites:
            self._invites = InviteRepository(self.session)
        return self._invites

    @property
    def system_settings(self) -> SystemSettingsRepository:
        """Get system settings repository."""
        if not self._system_settings:
            self._system_settings = SystemSettingsRepository(self.session)
        return self._system_settings


async def get_unit_of_work() -> AsyncIterator[UnitOfWork]:
    """
    Dependency yielding an open Unit of Work.

    Usage in FastAPI:
        @router.post("/apikeys/new")
        async def create_api_key(
            data: ApiKeyCreate,
            uow: UnitOfWork = Depends(get_unit_of_work)
        ):
            service = ShareStore(uow)
            ...
            # Committed when the request finishes without error
    """
    async with UnitOfWork() as uow:
        yield uow
