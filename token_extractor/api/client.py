"""Client for a running token extractor service, with retry logic."""

import time
import logging
from typing import Dict, Any, Optional
import requests


logger = logging.getLogger(__name__)


class TokenServiceError(Exception):
    """Raised when the token service answers with an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenServiceClient:
    """HTTP client for the /get-token endpoint."""

    # HTTP status codes that should trigger retry
    RETRY_STATUS_CODES = {502, 503, 504}

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout_seconds: float = 180,
        max_retries: int = 3,
        session: Optional[requests.Session] = None
    ):
        """Initialize client.

        Args:
            base_url: Base URL of the token service (default: http://localhost:3000)
            timeout_seconds: Per-request timeout; a login can take a minute or more (default: 180)
            max_retries: Maximum attempts for connection errors and gateway errors (default: 3)
            session: requests session to use (default: a new one)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.session = session or requests.Session()

    def health(self) -> Dict[str, Any]:
        """Fetch the service health payload.

        Returns:
            Dict with status, service and version

        Raises:
            TokenServiceError: If the service is unreachable or unhealthy
        """
        response = self._execute_request("GET", "/")
        if response.status_code != 200:
            raise TokenServiceError(f"Health check failed (status {response.status_code})", response.status_code)
        return response.json()

    def get_token(self, username: str, password: str, url: str) -> Dict[str, Any]:
        """Request a bearer token.

        Args:
            username: Login username/email
            password: Login password
            url: Target application URL

        Returns:
            Dict with token, authorizationHeader, expiresAt and capturedAt

        Raises:
            TokenServiceError: If the service reports a failure
        """
        logger.info(f"Requesting token for {url}")
        response = self._execute_request(
            "POST",
            "/get-token",
            json={"username": username, "password": password, "url": url},
        )

        try:
            data = response.json()
        except requests.exceptions.JSONDecodeError:
            raise TokenServiceError(
                f"Invalid JSON in response (status {response.status_code})", response.status_code
            ) from None

        if not isinstance(data, dict):
            raise TokenServiceError(f"Unexpected response body (status {response.status_code})", response.status_code)

        if response.status_code != 200 or not data.get("success"):
            error = data.get("error") or f"Token request failed (status {response.status_code})"
            raise TokenServiceError(error, response.status_code)

        logger.info(f"✓ Token received (expires {data.get('expiresAt')})")
        return data

    def _execute_request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Execute HTTP request with retry logic.

        Connection errors and gateway errors are retried with exponential backoff.
        """
        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {method} {url}")
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                logger.warning(f"Request to {url} failed: {e}")
            else:
                if response.status_code not in self.RETRY_STATUS_CODES:
                    return response
                logger.warning(f"Service returned {response.status_code}, attempt {attempt + 1}/{self.max_retries}")
                if attempt == self.max_retries - 1:
                    return response

            if attempt < self.max_retries - 1:
                backoff_time = 2 ** attempt
                logger.debug(f"Backing off for {backoff_time} seconds")
                time.sleep(backoff_time)

        raise TokenServiceError(f"Could not reach token service at {self.base_url}: {last_error}")
