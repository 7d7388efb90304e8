from typing import Optional


class AudioXError(Exception):
    """Base error. Carries the HTTP status the API layer should answer with."""

    status_code = 500
    summary = "Internal server error"

    def __init__(self, message: Optional[str] = None, summary: Optional[str] = None):
        super().__init__(message or self.summary)
        self.message = message or self.summary
        if summary:
            self.summary = summary


class BadRequest(AudioXError):
    status_code = 400
    summary = "Bad request"


class NotFound(AudioXError):
    status_code = 404
    summary = "Not found"


class UpstreamRateLimited(AudioXError):
    status_code = 429
    summary = "Rate limit exceeded. Please try again later."


class ServiceUnavailable(AudioXError):
    status_code = 503
    summary = "Service unavailable"


class UpstreamError(AudioXError):
    status_code = 500
    summary = "Upstream request failed"


class UpstreamAuthError(UpstreamError):
    summary = "Upstream authentication failed"
