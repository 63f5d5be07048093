"""Exceptions raised by the stores and translated to HTTP responses in main.py."""

from typing import Iterable, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class IllegalTransitionError(ServiceError):
    status_code = 409

    def __init__(self, current: Optional[str], requested: str, allowed: Iterable[str] = ()):
        self.current = current
        self.requested = requested
        self.allowed = list(allowed)
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class AuthError(ServiceError):
    status_code = 401

    def __init__(self, message: str, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.status_code = 403


class UpstreamError(ServiceError):
    status_code = 500
