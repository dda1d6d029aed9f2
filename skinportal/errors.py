"""
Error hierarchy shared by the services and the HTTP layer.

    PortalError (base)
    ├── ValidationError      400
    ├── AccessDenied         403
    ├── NotFound             404
    ├── ConflictError        409
    │   └── InvalidStateError
    ├── GatewayError         502
    └── StorageError         503

Routes never build error responses for these by hand; the handler registered
in ``create_app`` renders them through ``utils.response.error``.
"""

from __future__ import annotations


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message: str = message
        self.details: dict = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


class ValidationError(PortalError):
    """Malformed or missing input. The message is shown to the caller as is."""

    status_code = 400


class AccessDenied(PortalError):
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class ConflictError(PortalError):
    """A conditional update found the row in a different state than expected."""

    status_code = 409


class InvalidStateError(ConflictError):
    """Workflow transition requested from the wrong status."""


class GatewayError(PortalError):
    """The external generative model could not be reached or answered with an error."""

    status_code = 502


class StorageError(PortalError):
    status_code = 503
