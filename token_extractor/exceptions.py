"""Exception hierarchy for the token extractor.

Every exception carries the HTTP status the endpoint answers with::

    TokenExtractorError (500)
    +-- ValidationError          (400)
    +-- BrowserLaunchError       (500)
    +-- DriverTimeoutError       (500)
    +-- FlowTimeoutError         (500)
    |   +-- ElementTimeoutError
    |   +-- NavigationTimeoutError
    +-- TokenNotFoundError       (500)
"""

from typing import Optional


class TokenExtractorError(Exception):
    """Base exception for all token extractor errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TokenExtractorError):
    """Raised when a login request is missing required fields."""

    status_code = 400


class BrowserLaunchError(TokenExtractorError):
    """Raised when no usable browser executable could be launched."""


class DriverTimeoutError(TokenExtractorError):
    """Raised by a browser driver when a bounded wait expires.

    The login flow decides whether this is a failure or a branch outcome.
    """


class FlowTimeoutError(TokenExtractorError):
    """A required step of the login flow did not complete in time."""

    def __init__(self, step: str, timeout_ms: int, detail: str = ""):
        message = f"Timed out after {timeout_ms}ms waiting for {step}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.step = step
        self.timeout_ms = timeout_ms


class ElementTimeoutError(FlowTimeoutError):
    """A required element never appeared."""


class NavigationTimeoutError(FlowTimeoutError):
    """A required navigation never completed."""


class TokenNotFoundError(TokenExtractorError):
    """The login flow completed but no token was observed."""

    def __init__(self, message: str = "Token not found after login. Please verify credentials."):
        super().__init__(message)
