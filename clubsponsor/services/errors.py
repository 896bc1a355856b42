"""Domain errors raised by services and rendered as JSON errors by the app."""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    status = 400

    def __init__(self, message: str, *, errors: Optional[Dict[str, Any]] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}
        if status is not None:
            self.status = status


class ValidationFailed(ServiceError):
    status = 422


class NotFound(ServiceError):
    status = 404


class Forbidden(ServiceError):
    status = 403


class Conflict(ServiceError):
    status = 409


class Gone(ServiceError):
    status = 410


class TooManyRequests(ServiceError):
    status = 429
