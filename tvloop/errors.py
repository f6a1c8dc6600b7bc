"""
Error taxonomy shared by providers, the orchestrator and the CLI
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    CONTENT = "content"
    CONFIGURATION = "configuration"


class TvloopError(Exception):
    """Base class for every error raised on purpose by tvloop"""

    kind: ErrorKind = ErrorKind.CONTENT


class NotFoundError(TvloopError):
    """No source exists for the requested content. Terminal, not retried."""

    kind = ErrorKind.NOT_FOUND


class TransientProviderError(TvloopError):
    """Timeouts, rate limiting and 5xx answers. Retried with backoff."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ContentError(TvloopError):
    """Dead or unusable source. The candidate is dropped, the next one tried."""

    kind = ErrorKind.CONTENT


class ConfigurationError(TvloopError):
    """Missing or rejected credentials. Aborts the whole run."""

    kind = ErrorKind.CONFIGURATION
