"""
Domain error taxonomy.

Services raise these; a single exception handler in main.py renders them as
``{"error": ..., "details": ...}`` with the status carried by the class.
"""

from enum import Enum
from typing import Any, Optional

from fastapi import status


class ErrorCode(Enum):
    CONFIGURATION = "CONFIGURATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UPSTREAM = "UPSTREAM"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"


class KatagakiError(Exception):
    """Base domain error with code, user-safe message and HTTP status."""

    code: ErrorCode = ErrorCode.CONFLICT
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_payload(self) -> dict:
        payload: dict = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigurationError(KatagakiError):
    """Missing credentials or setup. Fatal to the request."""

    code = ErrorCode.CONFIGURATION
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UnauthorizedError(KatagakiError):
    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", details: Optional[Any] = None) -> None:
        super().__init__(message, details)


class ForbiddenError(KatagakiError):
    code = ErrorCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Administrator role required", details: Optional[Any] = None) -> None:
        super().__init__(message, details)


class NotFoundError(KatagakiError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", details={"id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(KatagakiError):
    """The request is well-formed but the current state forbids it."""

    code = ErrorCode.CONFLICT
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(KatagakiError):
    """The payment processor rejected a request."""

    code = ErrorCode.UPSTREAM
    status_code = status.HTTP_502_BAD_GATEWAY


class StoreConnectivityError(KatagakiError):
    code = ErrorCode.STORE_UNAVAILABLE
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Entity store unreachable", details: Optional[Any] = None) -> None:
        super().__init__(message, details)


class SignatureInvalidError(KatagakiError):
    """Webhook authentication failure. Never transient."""

    code = ErrorCode.SIGNATURE_INVALID
    status_code = status.HTTP_400_BAD_REQUEST
