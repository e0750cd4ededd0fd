"""Domain error taxonomy shared by services and routes."""
from __future__ import annotations

from fastapi import status


class OpsLinkError(RuntimeError):
    """Base class for errors rendered to clients as ``{"error": message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


class ValidationError(OpsLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidCredentials(OpsLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid credentials"


class InvalidOrExpiredToken(OpsLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired token"


class Unauthenticated(OpsLinkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class SessionExpired(Unauthenticated):
    default_message = "Token expired due to password change"


class Unverified(OpsLinkError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Please verify your email before continuing"


class Forbidden(OpsLinkError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(OpsLinkError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(OpsLinkError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, str]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class RevisionConflict(Conflict):
    default_message = "Listing was modified concurrently, reload and retry"


class DeliveryError(OpsLinkError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to deliver email"


class InternalError(OpsLinkError):
    pass
