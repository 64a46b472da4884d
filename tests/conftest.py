"""Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database. HTTP tests run against
app.main:app through httpx's ASGITransport with get_db overridden to use that
database; startup events do not run, so tables and roles are created here.
"""

import itertools
import os

# Must be set before app.core.config is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["SEED_DEFAULT_ROLES"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import get_db, import_models
from app.features.permissions.manager import PermissionManager
from app.features.permissions.models import Role
from app.features.permissions.repository import SqlAlchemyRoleRepository
from app.features.users.auth import create_access_token, hash_password
from app.features.users.models import User, UserStatus, UserType
from app.main import app

DEFAULT_PASSWORD = "Secreto123"


@pytest.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def client(session_factory) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI), bound to the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def default_roles(session_factory) -> int:
    """Seed the default role set."""
    async with session_factory() as session:
        created = await PermissionManager(SqlAlchemyRoleRepository(session)).seed_default_roles()
        await session.commit()
    return created


@pytest.fixture
def create_user(session_factory, default_roles):
    """Factory creating a user holding the given role names."""
    counter = itertools.count(1)

    async def _create(
        user_type: UserType = UserType.CONTRATISTA,
        roles: tuple[str, ...] = (),
        password: str = DEFAULT_PASSWORD,
        status: UserStatus = UserStatus.ACTIVO,
        **overrides,
    ) -> User:
        n = next(counter)
        async with session_factory() as session:
            role_objs = []
            if roles:
                result = await session.execute(select(Role).where(Role.name.in_(roles)))
                role_objs = list(result.scalars().all())
                assert len(role_objs) == len(roles), f"unknown role in {roles}"

            data = {
                "first_name": f"Nombre{n}",
                "last_name": f"Apellido{n}",
                "email": f"user{n}@example.com",
                "national_id": f"{10000000 + n}",
                "user_type": user_type,
                "status": status,
                "password_hash": hash_password(password),
            }
            data.update(overrides)
            user = User(**data, roles=role_objs)
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.email, user.user_type.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def super_admin(create_user) -> User:
    return await create_user(UserType.ADMINISTRADOR, roles=("Super Administrador",))


@pytest.fixture
async def admin(create_user) -> User:
    """Administrador role only: usuarios crear/leer/actualizar, no eliminar."""
    return await create_user(UserType.ADMINISTRADOR, roles=("Administrador",))


@pytest.fixture
async def contractor(create_user) -> User:
    return await create_user(UserType.CONTRATISTA, roles=("Contratista",))
