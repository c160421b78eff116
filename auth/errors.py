"""
auth/errors.py -- Error taxonomy for the auth, provisioning, and community flows.

Every error carries an HTTP status and a human-readable message. api/main.py
registers one exception handler for ServiceError that renders
{"error": message} with the matching status, so route handlers and services
raise these directly instead of building HTTPException payloads.

Layer rule: stdlib only. No imports from api/, community/, or core/.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class. Unexpected failures surface as 500 with a generic message."""

    status_code: int = 500
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Missing or malformed client input. Detected before any side effect."""

    status_code = 400
    message = "Invalid request."


class UnauthenticatedError(ServiceError):
    status_code = 401
    message = "Access denied. No token provided."


class InvalidTokenError(UnauthenticatedError):
    """Signature verification failed, the token expired, or claims are incomplete."""

    message = "Invalid or expired token."


class ForbiddenError(ServiceError):
    status_code = 403
    message = "Access denied."


class EmailNotConfirmedError(ForbiddenError):
    message = "Email not confirmed. Please check your inbox for the confirmation link."


class InvalidCredentialsError(ServiceError):
    status_code = 401
    message = "Invalid email or password."


class NotFoundError(ServiceError):
    status_code = 404
    message = "Not found."


class IdentityProviderError(ServiceError):
    """Rejection passed through verbatim from the identity provider."""

    status_code = 400
    message = "The identity provider rejected the request."


class ProvisioningFailedError(ServiceError):
    message = "Signup failed."
