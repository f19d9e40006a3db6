"""Exception types raised by dochub."""

from __future__ import annotations


class HubError(Exception):
    """Base class for errors surfaced to webhook callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(HubError):
    """Missing or invalid webhook signature."""

    status_code = 401


class ValidationError(HubError):
    """Malformed webhook payload."""

    status_code = 400


class ProjectNotFoundError(ValidationError):
    """Payload names a project that is not in the registry."""

    status_code = 404


class RegistryError(Exception):
    """The project registry could not be loaded. Fatal at startup."""
