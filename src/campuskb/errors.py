"""Errors raised by portal actions. Each carries the HTTP status the gateway answers with."""
from __future__ import annotations


class PortalError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = str(message)


class ValidationFailed(PortalError):
    status_code = 422


class NotSignedIn(PortalError):
    status_code = 401


class AccessDenied(PortalError):
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class QueryInFlight(PortalError):
    status_code = 409


class BackendRequestFailed(PortalError):
    status_code = 502
