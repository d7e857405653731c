"""
Mentor Provisioning

Materializes a MentorProfile for an approved application. Provisioning is
idempotent and retryable: it checks for an existing profile first and
relies on the unique ``mentor_profiles.user_id`` constraint to settle
concurrent attempts.

A profile is never created for an account already locked as ``student``;
that would leave a mentor profile on a student-only account.
"""

import logging
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.mentors import repository
from app.modules.mentors.models import MentorProfile
from app.modules.shared import ErrorKind, ServiceError
from app.modules.users import UserRepository, UserRole

if TYPE_CHECKING:
    from app.modules.mentor_applications.models import MentorApplication

logger = logging.getLogger(__name__)


class ProvisioningError(ServiceError):
    """Raised when a mentor profile could not be provisioned. Retryable."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorKind.PROVISIONING_FAILED,
            status_code=500,
        )


class StudentAccountLockedError(ProvisioningError):
    """The applicant's account is permanently locked to the student role. Not retryable."""

    def __init__(self, user_id: UUID):
        super().__init__(
            f"Account {user_id} is locked to the student role; mentor profile not created."
        )


class MentorAccountMissingError(ProvisioningError):
    """The applicant has not created an app account yet."""

    def __init__(self, email: str):
        super().__init__(
            f"No user account exists for {email} yet; provisioning deferred until sign-up."
        )


async def provision_mentor_profile(
    db: AsyncSession,
    application: "MentorApplication",
) -> MentorProfile:
    """
    Ensure the applicant owns exactly one MentorProfile.

    Commits on success. On failure the session is rolled back and a
    ProvisioningError is raised; the caller records it and a later
    reconciliation run retries.

    Args:
        db: Database session
        application: The approved application

    Returns:
        The existing or newly created MentorProfile

    Raises:
        StudentAccountLockedError: If the account is locked as student
        ProvisioningError: If the profile cannot be created right now
    """
    user = await UserRepository.get_by_email(db, application.email)
    if user is None:
        raise MentorAccountMissingError(application.email)

    # A rollback below expires loaded instances; only locals are read after it
    user_id = user.id

    if user.role_selection_completed and user.role == UserRole.STUDENT:
        raise StudentAccountLockedError(user_id)

    existing = await repository.get_profile_by_user_id(db, user_id)
    if existing is not None:
        logger.info(f"Mentor profile already exists for user {user_id}, nothing to provision")
        return existing

    try:
        profile = await repository.create_profile(
            db,
            user_id=user_id,
            application_id=application.id,
            institution=application.institution,
            graduation_year=application.graduation_year,
            topics=list(application.topics or []),
            session_formats=list(application.session_formats or []),
            hours_per_week=application.hours_per_week,
            languages=list(application.languages or []),
            bio=application.motivation,
        )
        await db.commit()
    except IntegrityError:
        # Lost a race with another provisioner for the same user
        await db.rollback()
        existing = await repository.get_profile_by_user_id(db, user_id)
        if existing is None:
            raise ProvisioningError(
                f"Mentor profile insert for user {user_id} conflicted but no profile was found."
            ) from None
        logger.info(f"Concurrent provisioning detected for user {user_id}, using existing profile")
        return existing
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Mentor profile insert failed for user {user_id}: {e}")
        raise ProvisioningError(
            f"Database error while provisioning mentor profile ({type(e).__name__})."
        ) from e

    logger.info(f"Provisioned mentor profile {profile.id} for user {user_id}")
    return profile
