"""Exceptions raised by the Electrolux API client."""

from typing import Optional


class ElectroluxError(Exception):
    """Base exception for Electrolux client errors."""


class AuthenticationError(ElectroluxError):
    """Login flow failed (missing CSRF token, authorization code or tokens)."""


class ApiError(ElectroluxError):
    """API request returned an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenRejectedError(ApiError):
    """Refresh token was rejected (HTTP 401 on refresh)."""


class ForbiddenError(ApiError):
    """API returned HTTP 403."""


class RateLimitedError(ApiError):
    """API returned HTTP 429."""
