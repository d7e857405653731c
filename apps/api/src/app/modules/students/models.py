"""
Student Models

Entities that only make sense for an account using the app as a student.
"""

import uuid

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class SavedItem(BaseModel):
    """A mentor, post or video a student saved or followed."""

    __tablename__ = "student_saved_items"

    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "item_type", "item_id", name="uq_student_saved_items"),
    )


class StudentQuestion(BaseModel):
    """A question a student asked the mentor community."""

    __tablename__ = "student_questions"

    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
