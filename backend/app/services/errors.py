# backend/app/services/errors.py
from typing import Optional


class MetricsError(Exception):
    """Base class for errors raised while building marketing metrics."""


class UpstreamUnavailable(MetricsError):
    """Order source unreachable, misconfigured or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamDegraded(MetricsError):
    """Ad-spend source failed; callers fall back to empty ad-spend data."""


class ParseError(MetricsError):
    """Upstream payload could not be interpreted."""
