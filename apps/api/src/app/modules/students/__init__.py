"""
Students module - Student-only saved content and questions.
"""

from app.modules.students.models import SavedItem, StudentQuestion

__all__ = ["SavedItem", "StudentQuestion"]
