"""
Storage access for the permission engine.

PermissionManager only talks to a RoleRepository; the SQLAlchemy implementation
below is bound to the request-scoped AsyncSession handed out by get_db.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.features.permissions.models import Role
from app.features.users.models import User


@dataclass
class UserRoleSet:
    """A user's assigned roles plus the legacy user_type used for fallback."""
    user_id: str
    user_type: Optional[str]
    roles: List[Any] = field(default_factory=list)


class RoleRepository(Protocol):
    """
    Lookups the permission engine needs.

    Role objects returned here expose `name`, `is_active` and `permissions`
    (a list of permission entry documents).
    """

    async def find_user_roles(self, user_id: str) -> Optional[UserRoleSet]:
        ...

    async def find_role_by_name(self, name: str) -> Optional[Any]:
        ...

    async def count_roles(self) -> int:
        ...

    async def add_roles(self, definitions: Sequence[Dict[str, Any]]) -> List[Any]:
        ...


class SqlAlchemyRoleRepository:
    """RoleRepository backed by an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_user_roles(self, user_id: str) -> Optional[UserRoleSet]:
        # populate_existing so a check made after a role change in the same
        # session sees the new assignment
        stmt = (
            select(User)
            .options(selectinload(User.roles))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        user = result.scalars().first()
        if not user:
            return None

        user_type = user.user_type.value if user.user_type else None
        return UserRoleSet(user_id=user.id, user_type=user_type, roles=list(user.roles))

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        """Exact, case-insensitive match among active roles."""
        stmt = select(Role).where(
            func.lower(Role.name) == name.lower(),
            Role.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def count_roles(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Role))
        return result.scalar_one()

    async def add_roles(self, definitions: Sequence[Dict[str, Any]]) -> List[Role]:
        """Stage new roles and flush; committing is left to the caller."""
        roles = [Role(is_active=True, **copy.deepcopy(dict(d))) for d in definitions]
        self.session.add_all(roles)
        await self.session.flush()
        return roles
