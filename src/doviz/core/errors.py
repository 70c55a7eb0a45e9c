"""
Domain errors.

These carry no HTTP knowledge; the API layer maps them to status codes.

    DovizError
    ├── UpstreamError
    │   ├── UpstreamNotFound
    │   └── UpstreamUnavailable
    ├── UnknownBaseCurrency
    ├── InvalidToken
    └── TokenExpired
"""

from __future__ import annotations


class DovizError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class UpstreamError(DovizError):
    """A single call to the rate provider failed."""

    def __init__(
        self, message: str, *, status_code: int | None = None, error_type: str | None = None
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)


class UpstreamNotFound(UpstreamError):
    """The provider answered 404 for the requested resource."""


class UpstreamUnavailable(UpstreamError):
    """Both the active API key and the fallback retry failed."""


class UnknownBaseCurrency(DovizError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Base currency {code} not found in rate table")


class InvalidToken(DovizError):
    pass


class TokenExpired(DovizError):
    pass
