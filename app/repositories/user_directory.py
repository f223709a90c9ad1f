# app/repositories/user_directory.py
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.schemas.user import UserRole


class UserDirectory:
    """
    Identity collaborator: looks up users and answers whether they can
    take part in meetings.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: str) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_active(self, user_id: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def resolve_users(self, user_ids: Sequence[str]) -> list[User]:
        """
        Active users among `user_ids`, in request order. Unknown and
        inactive ids are silently left out.
        """
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        result = await self.session.execute(
            select(User).where(User.id.in_(ids), User.is_active.is_(True))
        )
        by_id = {user.id: user for user in result.scalars().all()}
        return [by_id[user_id] for user_id in ids if user_id in by_id]

    async def missing_or_inactive(self, user_ids: Sequence[str]) -> list[str]:
        """
        Ids from `user_ids` that do not resolve to an active user.
        """
        resolved = {user.id for user in await self.resolve_users(user_ids)}
        return [user_id for user_id in dict.fromkeys(user_ids) if user_id not in resolved]

    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.PARTICIPANT,
    ) -> User:
        user = User(
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            role=UserRole(role).value,
            is_active=True,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def list_users(
        self,
        role: UserRole | None = None,
        only_active: bool | None = None,
        search: str | None = None,
    ) -> list[User]:
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == UserRole(role).value)
        if only_active is True:
            stmt = stmt.where(User.is_active.is_(True))
        elif only_active is False:
            stmt = stmt.where(User.is_active.is_(False))
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )
        result = await self.session.execute(stmt.order_by(User.email.asc()))
        return list(result.scalars().all())

    async def update(self, user: User, changes: dict[str, Any]) -> User:
        for field, value in changes.items():
            setattr(user, field, value)
        await self.session.flush()
        return user
