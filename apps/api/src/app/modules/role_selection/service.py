"""
Role Selection Service

One-time, irrevocable role choice for an app account (student, mentor or
both), with cleanup of the data belonging to the role the user gave up.

Flow:
1. Refuse locked accounts (role_selection_completed) before touching data
2. Best-effort cleanup for the abandoned role. Every step is a
   delete-if-exists committed on its own; a failing step is rolled back,
   logged and reported, and never blocks the lock
3. Lock with one conditional UPDATE (only while not yet locked)
4. Read the account back and confirm the persisted role
"""

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.mentors import repository as mentor_repository
from app.modules.role_selection.schemas import RoleSelectionResult
from app.modules.shared import ErrorKind, ServiceError
from app.modules.students import repository as student_repository
from app.modules.users import PreferenceScope, UserRepository, UserRole

logger = logging.getLogger(__name__)

CleanupStep = Callable[[AsyncSession, UUID], Awaitable[int]]

SELECTABLE_ROLES = frozenset({UserRole.STUDENT, UserRole.MENTOR, UserRole.BOTH})

USER_MODE_PREFERENCE = "user_mode"


class UserNotFoundError(ServiceError):
    def __init__(self, user_id: UUID):
        super().__init__(
            message=f"User {user_id} not found",
            error_code=ErrorKind.USER_NOT_FOUND,
            status_code=404,
        )


class RoleAlreadyLockedError(ServiceError):
    """The account already chose a role; the choice cannot be changed."""

    def __init__(self, current_role: UserRole):
        self.current_role = current_role
        super().__init__(
            message="Your role has already been selected and cannot be changed.",
            error_code=ErrorKind.ROLE_ALREADY_LOCKED,
            status_code=409,
        )


class RoleVerificationFailedError(ServiceError):
    """The persisted role differs from the requested one after the lock."""

    def __init__(self, requested: UserRole, persisted: UserRole | None):
        self.requested = requested
        self.persisted = persisted
        super().__init__(
            message=(
                f"Role selection could not be confirmed (requested {requested.value}, "
                f"found {persisted.value if persisted else 'nothing'}). Please try again."
            ),
            error_code=ErrorKind.ROLE_VERIFICATION_FAILED,
            status_code=409,
        )


async def _delete_mentor_preferences(db: AsyncSession, user_id: UUID) -> int:
    return await UserRepository.delete_preferences(db, user_id, PreferenceScope.MENTOR)


async def _delete_student_preferences(db: AsyncSession, user_id: UUID) -> int:
    return await UserRepository.delete_preferences(db, user_id, PreferenceScope.STUDENT)


# Child rows before parents
CLEANUP_STEPS: dict[UserRole, list[tuple[str, CleanupStep]]] = {
    UserRole.STUDENT: [
        ("mentor_expertise", mentor_repository.delete_expertise_for_user),
        ("mentor_content", mentor_repository.delete_content_for_user),
        ("mentor_profile", mentor_repository.delete_profile_for_user),
        ("mentor_preferences", _delete_mentor_preferences),
    ],
    UserRole.MENTOR: [
        ("student_saved_items", student_repository.delete_saved_items_for_user),
        ("student_questions", student_repository.delete_questions_for_user),
        ("student_preferences", _delete_student_preferences),
        ("student_profile", UserRepository.clear_student_profile),
    ],
    UserRole.BOTH: [],
}


async def run_cleanup(db: AsyncSession, user_id: UUID, role: UserRole) -> list[str]:
    """
    Delete the data of the role the user gave up.

    Safe to re-run: every step deletes only what still exists.

    Returns:
        Entity types whose cleanup failed (empty when all steps succeeded)
    """
    failures: list[str] = []

    for entity, step in CLEANUP_STEPS[role]:
        try:
            deleted = await step(db, user_id)
            await db.commit()
            logger.info(f"Role cleanup for user {user_id}: removed {deleted} {entity} row(s)")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Role cleanup for user {user_id} failed on {entity}: {e}")
            failures.append(entity)

    return failures


async def select_role(db: AsyncSession, user_id: UUID, role: UserRole) -> RoleSelectionResult:
    """
    Lock the account's role, cleaning up data for the role given up.

    Args:
        db: Database session
        user_id: Account choosing a role
        role: student, mentor or both

    Returns:
        RoleSelectionResult with the persisted role and any cleanup failures

    Raises:
        ValueError: If ``role`` is not selectable
        UserNotFoundError: If the account does not exist
        RoleAlreadyLockedError: If a role was already selected
        RoleVerificationFailedError: If the read-back disagrees with ``role``
    """
    if role not in SELECTABLE_ROLES:
        raise ValueError(f"Role '{role.value}' cannot be selected")

    state = await UserRepository.read_role_state(db, user_id)
    if state is None:
        raise UserNotFoundError(user_id)

    current_role, completed = state
    if completed:
        logger.warning(
            f"User {user_id} tried to select {role.value} but is locked as {current_role.value}"
        )
        raise RoleAlreadyLockedError(current_role)

    cleanup_failures = await run_cleanup(db, user_id, role)

    rows = await UserRepository.lock_role(db, user_id, role)
    if rows:
        await UserRepository.set_preference(db, user_id, USER_MODE_PREFERENCE, role.value)
    await db.commit()

    # A concurrent lock with the same role still verifies
    persisted = await UserRepository.read_role_state(db, user_id)
    persisted_role = persisted[0] if persisted else None

    if persisted is None or persisted_role != role or not persisted[1]:
        logger.error(
            f"Role verification failed for user {user_id}: requested {role.value}, "
            f"persisted {persisted_role.value if persisted_role else None}"
        )
        raise RoleVerificationFailedError(role, persisted_role)

    logger.info(
        f"User {user_id} locked role {role.value}"
        + (f" (cleanup failures: {', '.join(cleanup_failures)})" if cleanup_failures else "")
    )
    return RoleSelectionResult(success=True, role=role, cleanup_failures=cleanup_failures)
