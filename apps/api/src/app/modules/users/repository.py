"""
User Repository

Database operations for user accounts and preferences.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import PreferenceScope, User, UserPreference, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        full_name: str | None = None,
        role: UserRole = UserRole.UNSET,
        role_selection_completed: bool = False,
        interests: list[str] | None = None,
    ) -> User:
        """Create a new user record (flushed, not committed)."""
        user = User(
            email=email.strip().lower(),
            full_name=full_name,
            role=role,
            role_selection_completed=role_selection_completed,
            interests=interests,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def read_role_state(db: AsyncSession, user_id: UUID) -> tuple[UserRole, bool] | None:
        """
        Read ``(role, role_selection_completed)`` straight from the store.

        Selects columns rather than the entity so a stale identity-map
        copy can never answer the read-back.
        """
        result = await db.execute(
            select(User.role, User.role_selection_completed).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    async def lock_role(db: AsyncSession, user_id: UUID, role: UserRole) -> int:
        """
        Set the role and lock it, only if it is not locked yet.

        Single conditional UPDATE; the caller commits.

        Returns:
            Number of rows updated (0 when another writer locked first)
        """
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.role_selection_completed.is_(False))
            .values(role=role, role_selection_completed=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def clear_student_profile(db: AsyncSession, user_id: UUID) -> int:
        """Blank out student-only profile fields."""
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(interests=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def set_preference(
        db: AsyncSession,
        user_id: UUID,
        key: str,
        value: str | None,
        scope: PreferenceScope = PreferenceScope.SHARED,
    ) -> UserPreference:
        result = await db.execute(
            select(UserPreference).where(
                UserPreference.user_id == user_id, UserPreference.key == key
            )
        )
        preference = result.scalar_one_or_none()
        if preference is None:
            preference = UserPreference(user_id=user_id, key=key, value=value, scope=scope)
            db.add(preference)
        else:
            preference.value = value
            preference.scope = scope
        await db.flush()
        return preference

    @staticmethod
    async def delete_preferences(db: AsyncSession, user_id: UUID, scope: PreferenceScope) -> int:
        """Delete-if-exists every preference of ``scope``."""
        result = await db.execute(
            delete(UserPreference).where(
                UserPreference.user_id == user_id, UserPreference.scope == scope
            )
        )
        return result.rowcount
