"""
Users module - App user accounts and preferences.
"""

from app.modules.users.models import MENTOR_ROLES, PreferenceScope, User, UserPreference, UserRole
from app.modules.users.repository import UserRepository

__all__ = [
    "MENTOR_ROLES",
    "PreferenceScope",
    "User",
    "UserPreference",
    "UserRole",
    "UserRepository",
]
