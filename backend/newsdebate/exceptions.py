"""
Exception taxonomy for the News Debate backend.

Every error we raise on purpose inherits from NewsDebateError so the API
layer can turn it into a response or a terminal stream frame.

WHERE EACH ONE ENDS UP:
- UpstreamHttpError / UpstreamConnectionError: fatal to the generation call
  and to the whole debate (later turns need earlier text) → 502
- UpstreamFrameError: one bad streaming event → reported in-stream, the
  call keeps going
- StorageError: cache lookup failure = cache miss; store failure = "warn"
  frame after the text was already delivered
- InputValidationError: rejected with 400 before any generation call
- SinkClosedError: the client went away mid-stream; stop generating
"""

from typing import Any, Optional


class NewsDebateError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


# =============================================================================
# UPSTREAM (generation service)
# =============================================================================

class UpstreamError(NewsDebateError):
    """Error communicating with the generation service."""
    pass


class UpstreamHttpError(UpstreamError):
    """The generation service answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str, model: Optional[str] = None):
        super().__init__(
            f"Upstream error {status_code}: {body}",
            code="UPSTREAM_HTTP_ERROR",
            details={"status_code": status_code, "model": model},
        )
        self.status_code = status_code
        self.body = body


class UpstreamConnectionError(UpstreamError):
    """The generation service could not be reached (or dropped the connection)."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(
            message,
            code="UPSTREAM_CONNECTION_ERROR",
            details={"model": model},
        )


class UpstreamFrameError(UpstreamError):
    """A single streaming event could not be decoded."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message, code="UPSTREAM_FRAME_ERROR", details={"line": line})
        self.line = line


# =============================================================================
# STORAGE / INPUT / DOWNSTREAM
# =============================================================================

class StorageError(NewsDebateError):
    """A database transaction failed."""
    pass


class InputValidationError(NewsDebateError):
    """A required request field is missing or blank."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="INVALID_INPUT", details={"field": field})


class SinkClosedError(NewsDebateError):
    """The downstream stream is closed or the client disconnected."""
    pass
