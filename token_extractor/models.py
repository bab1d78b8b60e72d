"""Data model for login requests, captured tokens and login results."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import ValidationError


# Heuristic lifetime; not derived from the token itself
TOKEN_LIFETIME = timedelta(minutes=55)

MISSING_FIELDS_MESSAGE = "Missing required fields: username, password, url"


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TokenSource(Enum):
    """Where a token was found."""
    NETWORK = "network"
    LOCAL_STORAGE = "localStorage"
    SESSION_STORAGE = "sessionStorage"


@dataclass(frozen=True)
class LoginRequest:
    """Credentials and target for one login flow."""

    username: str
    password: str = field(repr=False)
    target_url: str

    @classmethod
    def from_payload(cls, payload: Any) -> "LoginRequest":
        """Build a request from a decoded JSON body.

        Raises:
            ValidationError: If the body is not an object or a field is missing/empty
        """
        if not isinstance(payload, dict):
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        username = payload.get("username")
        password = payload.get("password")
        url = payload.get("url")

        if not all(isinstance(v, str) and v for v in (username, password, url)):
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        return cls(username=username, password=password, target_url=url)


@dataclass(frozen=True)
class CapturedToken:
    """A bearer token and the strategy that found it."""

    value: str
    source: TokenSource

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.value}"


@dataclass
class LoginResult:
    """Outcome of a login flow."""

    success: bool
    token: Optional[CapturedToken] = None
    captured_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    execution_seconds: Optional[float] = None

    @classmethod
    def succeeded(
        cls,
        token: CapturedToken,
        captured_at: Optional[datetime] = None,
        execution_seconds: Optional[float] = None
    ) -> "LoginResult":
        captured_at = captured_at or datetime.now(timezone.utc)
        return cls(
            success=True,
            token=token,
            captured_at=captured_at,
            expires_at=captured_at + TOKEN_LIFETIME,
            execution_seconds=execution_seconds,
        )

    @classmethod
    def failed(cls, error: str, execution_seconds: Optional[float] = None) -> "LoginResult":
        return cls(success=False, error=error, execution_seconds=execution_seconds)

    @property
    def authorization_header(self) -> Optional[str]:
        return self.token.authorization_header if self.token else None

    def to_dict(self) -> Dict[str, Any]:
        """Render as the JSON body returned by the HTTP endpoint."""
        if not self.success:
            return {"success": False, "error": self.error}

        data: Dict[str, Any] = {
            "success": True,
            "token": self.token.value,
            "authorizationHeader": self.authorization_header,
            "expiresAt": format_timestamp(self.expires_at),
            "capturedAt": format_timestamp(self.captured_at),
            "tokenSource": self.token.source.value,
        }
        if self.execution_seconds is not None:
            data["executionTime"] = f"{self.execution_seconds:.2f}s"
        return data
