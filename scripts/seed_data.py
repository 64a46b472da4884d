"""
Seed script to populate default roles and sample users.

Run this script to create:
- Database tables
- The default role set (only when no role exists yet)
- One sample user per user type, each holding the matching role

Usage:
    python -m scripts.seed_data
"""
import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.manager import PermissionManager
from app.features.permissions.models import Role
from app.features.permissions.repository import SqlAlchemyRoleRepository
from app.features.users.auth import hash_password
from app.features.users.models import User, UserStatus, UserType
from app.utils import get_logger


log = get_logger(__name__)


SAMPLE_PASSWORD = os.environ.get("SEED_PASSWORD", "Interventoria2024")

SAMPLE_USERS = [
    {
        "first_name": "Ana",
        "last_name": "Administradora",
        "email": "admin@interventoria.com",
        "national_id": "10000001",
        "user_type": UserType.ADMINISTRADOR,
        "role": "Super Administrador",
    },
    {
        "first_name": "Iván",
        "last_name": "Interventor",
        "email": "interventor@interventoria.com",
        "national_id": "10000002",
        "user_type": UserType.INTERVENTOR,
        "profession": "Ingeniero Civil",
        "role": "Interventor",
    },
    {
        "first_name": "Carla",
        "last_name": "Contratista",
        "email": "contratista@interventoria.com",
        "national_id": "10000003",
        "user_type": UserType.CONTRATISTA,
        "role": "Contratista",
    },
    {
        "first_name": "Sergio",
        "last_name": "Supervisor",
        "email": "supervisor@interventoria.com",
        "national_id": "10000004",
        "user_type": UserType.SUPERVISOR,
        "role": "Supervisor",
    },
]


async def seed_roles(db: AsyncSession) -> int:
    """Create the default roles when the roles table is empty."""
    log.info("Creating default roles...")
    created = await PermissionManager(SqlAlchemyRoleRepository(db)).seed_default_roles()
    await db.commit()
    return created


async def seed_users(db: AsyncSession) -> int:
    """
    Create the sample users that do not exist yet.

    Returns:
        Number of users created
    """
    log.info("Creating sample users...")
    created = 0

    for sample in SAMPLE_USERS:
        data = dict(sample)
        role_name = data.pop("role")

        result = await db.execute(select(User).where(User.email == data["email"]))
        if result.scalars().first():
            log.debug(f"User '{data['email']}' already exists, skipping")
            continue

        result = await db.execute(select(Role).where(Role.name == role_name))
        role = result.scalars().first()
        if not role:
            log.warning(f"Role '{role_name}' not found for user '{data['email']}'")

        user = User(
            **data,
            password_hash=hash_password(SAMPLE_PASSWORD),
            status=UserStatus.ACTIVO,
            roles=[role] if role else [],
        )
        db.add(user)
        created += 1
        log.info(f"Created user {data['email']} with role '{role_name}'")

    await db.commit()
    return created


async def main():
    """Main function to seed roles and users."""
    log.info("Starting seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            roles = await seed_roles(db)
            users = await seed_users(db)
            log.info(f"Seeding completed: {roles} role(s), {users} user(s) created")
        except Exception as e:
            log.error(f"Error seeding data: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
