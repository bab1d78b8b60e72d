"""Bearer token discovery from network requests and browser storage."""

import json
import logging
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from ..models import CapturedToken, TokenSource
from ..utils.logger import mask_secret


logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# Base64url encoding of '{"', the start of every JWT header
JWT_PREFIX = "eyJ"

# JSON fields checked in priority order
TOKEN_FIELDS = ("access_token", "id_token", "token")

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})

StorageItems = Sequence[Tuple[str, Optional[str]]]


class TokenSlot:
    """Holds at most one token per session; the first offer wins."""

    def __init__(self):
        self._token: Optional[CapturedToken] = None

    @property
    def token(self) -> Optional[CapturedToken]:
        return self._token

    @property
    def is_set(self) -> bool:
        return self._token is not None

    def offer(self, value: str, source: TokenSource) -> bool:
        """Record a token unless one is already held.

        Returns:
            bool: True if this offer was stored
        """
        if self._token is not None or not value:
            return False
        self._token = CapturedToken(value=value, source=source)
        logger.info(f"  ✓ Token captured from {source.value}: {mask_secret(value)}")
        return True


def extract_bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    """Return the bearer token from an Authorization header, if any."""
    for name, value in headers.items():
        if name.lower() == "authorization":
            if value and value.startswith(BEARER_PREFIX):
                return value[len(BEARER_PREFIX):] or None
            return None
    return None


class NetworkTokenObserver:
    """Inspects every outgoing request for a bearer token.

    Optionally blocks non-essential resource types. The header inspection
    always runs before the abort/continue decision.
    """

    def __init__(
        self,
        slot: TokenSlot,
        block_resources: bool = True,
        blocked_types: Iterable[str] = BLOCKED_RESOURCE_TYPES
    ):
        self.slot = slot
        self.block_resources = block_resources
        self.blocked_types = frozenset(blocked_types)
        self.requests_seen = 0
        self.requests_blocked = 0

    def inspect(self, headers: Mapping[str, str]) -> None:
        token = extract_bearer_token(headers)
        if token:
            self.slot.offer(token, TokenSource.NETWORK)

    def should_continue(self, resource_type: str) -> bool:
        return not (self.block_resources and resource_type in self.blocked_types)

    def handle(self, headers: Mapping[str, str], resource_type: str) -> bool:
        """Process one request.

        Returns:
            bool: True to let the request continue, False to abort it
        """
        self.requests_seen += 1
        self.inspect(headers)
        allowed = self.should_continue(resource_type)
        if not allowed:
            self.requests_blocked += 1
        return allowed


def find_token_in_value(value: Optional[str]) -> Optional[str]:
    """Apply the token heuristic to one stored value.

    A raw JWT is returned as-is. Otherwise the value is parsed as JSON and the
    first non-empty string among access_token, id_token and token is returned.
    """
    if not value:
        return None

    if value.startswith(JWT_PREFIX):
        return value

    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return None

    if not isinstance(parsed, dict):
        return None

    for field_name in TOKEN_FIELDS:
        candidate = parsed.get(field_name)
        if isinstance(candidate, str) and candidate:
            return candidate

    return None


def scan_storage(
    local_items: StorageItems,
    session_items: StorageItems
) -> Optional[CapturedToken]:
    """Scan localStorage entirely, then sessionStorage, for a token.

    Keys are visited in enumeration order and the first hit stops the scan.
    """
    for source, items in (
        (TokenSource.LOCAL_STORAGE, local_items),
        (TokenSource.SESSION_STORAGE, session_items),
    ):
        for key, value in items:
            token = find_token_in_value(value)
            if token:
                logger.info(f"  Found token in {source.value} key '{key}'")
                return CapturedToken(value=token, source=source)

    return None
