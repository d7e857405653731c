"""
Service Errors

Every business error carries a stable error code (ErrorKind) and the HTTP
status the routers map it to. Services raise these; routers convert them
into ``{"error": code, "message": ...}`` responses.
"""

import enum


class ErrorKind(str, enum.Enum):
    """Stable error codes exposed to reviewer/admin surfaces."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_APPLICATION = "DUPLICATE_APPLICATION"
    APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
    ALREADY_MENTOR = "ALREADY_MENTOR"
    PROVISIONING_FAILED = "PROVISIONING_FAILED"
    INVALID_EMAIL = "INVALID_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ROLE_ALREADY_LOCKED = "ROLE_ALREADY_LOCKED"
    ROLE_VERIFICATION_FAILED = "ROLE_VERIFICATION_FAILED"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    """Base exception for service-layer errors."""

    def __init__(self, message: str, error_code: ErrorKind, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> dict[str, str]:
        return {"error": self.error_code.value, "message": self.message}
