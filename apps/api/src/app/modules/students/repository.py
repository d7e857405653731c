"""
Student Repository

Data access for student-only entities. Deletes are delete-if-exists.
"""

from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SavedItem, StudentQuestion


async def add_saved_item(
    db: AsyncSession, student_id: UUID, item_type: str, item_id: str
) -> SavedItem:
    item = SavedItem(student_id=student_id, item_type=item_type, item_id=item_id)
    db.add(item)
    await db.flush()
    return item


async def add_question(db: AsyncSession, student_id: UUID, body: str) -> StudentQuestion:
    question = StudentQuestion(student_id=student_id, body=body)
    db.add(question)
    await db.flush()
    return question


async def delete_saved_items_for_user(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        delete(SavedItem)
        .where(SavedItem.student_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_questions_for_user(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        delete(StudentQuestion)
        .where(StudentQuestion.student_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
