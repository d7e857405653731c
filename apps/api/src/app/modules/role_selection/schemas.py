"""
Role Selection Schemas
"""

from pydantic import BaseModel, Field

from app.modules.shared import ErrorKind
from app.modules.users import UserRole


class RoleSelectionRequest(BaseModel):
    role: UserRole


class RoleSelectionResult(BaseModel):
    """Outcome of a role selection. ``cleanup_failures`` lists entity types left behind."""

    success: bool
    error: ErrorKind | None = None
    role: UserRole | None = None
    cleanup_failures: list[str] = Field(default_factory=list)
