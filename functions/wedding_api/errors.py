"""
Error types raised by the adapters and resource handlers.

Each error carries the HTTP status it is rendered with by the app's
exception handler.
"""

from __future__ import annotations

from typing import Mapping, Optional


class WeddingApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    headers: Optional[Mapping[str, str]] = None

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if headers is not None:
            self.headers = headers

    def as_dict(self) -> dict:
        body = {"message": self.message}
        if self.detail:
            body["error"] = self.detail
        return body


class ValidationError(WeddingApiError):
    """Caller input is missing, empty or outside the declared policy."""

    status_code = 400


class AuthError(WeddingApiError):
    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}


class NotFoundError(WeddingApiError):
    status_code = 404


class UpstreamError(WeddingApiError):
    """The document store, identity provider or asset host call failed."""

    status_code = 502


class UploadError(UpstreamError):
    pass


class UpstreamUnavailableError(UpstreamError):
    """The upstream call timed out or the service is unavailable."""

    status_code = 503
