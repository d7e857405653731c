"""
Role Selection Module

One-time role choice for app accounts with cleanup of the abandoned role's
data. Correctness relies on the conditional lock UPDATE, not on locks.
"""

from .router import router
from .service import select_role

__all__ = ["router", "select_role"]
