"""
Mentor Repository

Data access for mentor profiles, expertise and content.

Delete helpers are delete-if-exists: they issue a single DELETE and
report how many rows went away, so re-running them is always safe.
"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ContentKind, MentorContent, MentorExpertise, MentorProfile


async def get_profile_by_user_id(db: AsyncSession, user_id: UUID) -> MentorProfile | None:
    result = await db.execute(select(MentorProfile).where(MentorProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def profile_exists(db: AsyncSession, user_id: UUID) -> bool:
    result = await db.execute(select(MentorProfile.id).where(MentorProfile.user_id == user_id))
    return result.first() is not None


async def create_profile(
    db: AsyncSession,
    *,
    user_id: UUID,
    application_id: UUID | None,
    institution: str | None,
    graduation_year: int | None,
    topics: list[str],
    session_formats: list[str],
    hours_per_week: str | None,
    languages: list[str],
    bio: str | None = None,
) -> MentorProfile:
    """
    Insert a profile plus one expertise row per topic.

    Flushes but does not commit; a concurrent insert for the same user
    surfaces as IntegrityError on flush.
    """
    profile = MentorProfile(
        user_id=user_id,
        application_id=application_id,
        institution=institution,
        graduation_year=graduation_year,
        topics=topics,
        session_formats=session_formats,
        hours_per_week=hours_per_week,
        languages=languages,
        bio=bio,
    )
    db.add(profile)
    await db.flush()

    for topic in dict.fromkeys(topics):
        db.add(MentorExpertise(mentor_profile_id=profile.id, topic=topic))
    await db.flush()

    return profile


async def add_content(
    db: AsyncSession,
    mentor_id: UUID,
    kind: ContentKind,
    title: str | None = None,
    body: str | None = None,
) -> MentorContent:
    content = MentorContent(mentor_id=mentor_id, kind=kind, title=title, body=body)
    db.add(content)
    await db.flush()
    return content


async def delete_expertise_for_user(db: AsyncSession, user_id: UUID) -> int:
    profile_ids = select(MentorProfile.id).where(MentorProfile.user_id == user_id)
    result = await db.execute(
        delete(MentorExpertise)
        .where(MentorExpertise.mentor_profile_id.in_(profile_ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_content_for_user(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        delete(MentorContent)
        .where(MentorContent.mentor_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_profile_for_user(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        delete(MentorProfile)
        .where(MentorProfile.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
