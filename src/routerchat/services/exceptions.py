# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Domain exception hierarchy for the chat proxy.

Purpose: Provide HTTP-agnostic domain exceptions that carry enough context for
the API layer (or a global exception handler) to translate them into proper
HTTP responses. Service code should raise these instead of ``HTTPException``
so that it stays decoupled from any web framework.

Each error carries an :class:`~routerchat.models.chat.ErrorKind` so clients can
tell a misconfigured server from a rejected key without parsing messages.
"""

from __future__ import annotations

from routerchat.models.chat import ErrorKind, ProxyError


class ServiceError(Exception):
    """Base domain exception that carries an HTTP-equivalent status code.

    All proxy-side error conditions are expressed as subclasses of this
    class. The global exception handler registered in ``main.py`` translates
    these into plain-text error responses automatically.
    """

    default_status_code: int = 500
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )

    def to_proxy_error(self) -> ProxyError:
        return ProxyError(
            http_status=self.status_code, kind=self.kind, message=self.detail
        )


class BadRequestError(ServiceError):
    """Raised when the caller provides invalid or missing input (HTTP 400)."""

    default_status_code = 400
    kind = ErrorKind.BAD_REQUEST


class ConfigurationError(ServiceError):
    """Raised when required server configuration is missing (HTTP 500)."""

    default_status_code = 500
    kind = ErrorKind.SERVER_MISCONFIGURED


class UnauthorizedError(ServiceError):
    """Raised when the upstream gateway rejects the credential (HTTP 401)."""

    default_status_code = 401
    kind = ErrorKind.UNAUTHORIZED


class RateLimitedError(ServiceError):
    """Raised when the upstream gateway throttles the request (HTTP 429)."""

    default_status_code = 429
    kind = ErrorKind.RATE_LIMITED


class UpstreamError(ServiceError):
    """Raised when a call to the upstream gateway fails for any other reason."""

    default_status_code = 500
    kind = ErrorKind.UNKNOWN


class UpstreamProviderError(Exception):
    """Failure reported by a completion provider.

    ``status`` is the upstream HTTP status when one was received, ``None`` for
    transport failures (DNS, connection reset, timeout).
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


def map_upstream_error(exc: UpstreamProviderError) -> ServiceError:
    """Translate a provider failure into the fixed client-facing error."""
    if exc.status == 401:
        return UnauthorizedError("Invalid API key")
    if exc.status == 429:
        return RateLimitedError("Rate limit exceeded")
    if exc.status == 400:
        return BadRequestError("Bad request")
    return UpstreamError(f"Error: {exc.message or 'Unknown error'}")
