"""User lookups shared by the lifecycle modules and the CLI."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.models import UserModel
from stitchdesk.models import OwnerSummary, Role


async def load_owners(session: AsyncSession, user_ids: Iterable[int]) -> dict[int, OwnerSummary]:
    """Owner summaries keyed by user id; unknown ids are simply absent."""
    ids = set(user_ids)
    if not ids:
        return {}
    rows = await session.execute(select(UserModel).where(UserModel.id.in_(ids)))
    return {
        user.id: OwnerSummary(id=user.id, name=user.name, email=user.email, company=user.company)
        for user in rows.scalars()
    }


async def get_user_by_email(session: AsyncSession, email: str) -> UserModel | None:
    result = await session.execute(select(UserModel).where(UserModel.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    name: str,
    role: Role = Role.CUSTOMER,
    company: str | None = None,
) -> UserModel:
    """Insert a user row.

    Raises:
        ValueError: If the email is already registered
    """
    if await get_user_by_email(session, email) is not None:
        raise ValueError(f"User already exists: {email}")

    user = UserModel(email=email.lower(), name=name, company=company, role=role.value)
    session.add(user)
    await session.flush()
    return user


async def count_users(session: AsyncSession) -> tuple[int, int]:
    """Return ``(total, active)`` user counts."""
    stmt = select(
        func.count(UserModel.id),
        func.count(UserModel.id).filter(UserModel.is_active.is_(True)),
    )
    total, active = (await session.execute(stmt)).one()
    return int(total), int(active or 0)
