"""
Shared module - Base model and error types used across feature modules.
"""

from app.modules.shared.errors import ErrorKind, ServiceError
from app.modules.shared.models import BaseModel

__all__ = ["BaseModel", "ErrorKind", "ServiceError"]
