"""Configuration management for the token extractor service."""

import json
import os
from pathlib import Path
from typing import Optional, List
from dotenv import load_dotenv

from ..auth.settings import LoginFlowSettings, SelectorStrategies, WAIT_UNTIL_POLICIES


# Default listening port
DEFAULT_PORT: int = 3000

# Environment variables that may override a selector strategy list
SELECTOR_ENV_VARS = {
    "login_button": "LOGIN_BUTTON_SELECTORS",
    "email": "EMAIL_SELECTORS",
    "next_button": "NEXT_BUTTON_SELECTORS",
    "password": "PASSWORD_SELECTORS",
    "submit_button": "SUBMIT_BUTTON_SELECTORS",
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self, env_file: Optional[str] = None):
        """Initialize configuration.

        Args:
            env_file: Path to .env file (default: .env in project root)
        """
        if env_file:
            load_dotenv(env_file)
        else:
            # Try to find .env in project root
            project_root = Path(__file__).parent.parent.parent
            env_path = project_root / ".env"
            if env_path.exists():
                load_dotenv(env_path)

    # Server settings
    @property
    def host(self) -> str:
        """Address the HTTP server binds to."""
        return os.getenv("HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        """Port the HTTP server listens on."""
        return int(os.getenv("PORT", str(DEFAULT_PORT)))

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins (comma-separated, default: all)."""
        value = os.getenv("CORS_ORIGINS", "*")
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    # Browser settings
    @property
    def browser_executable_path(self) -> Optional[str]:
        """Explicit Chrome/Chromium binary, if configured.

        PUPPETEER_EXECUTABLE_PATH is honoured so existing deployments keep working.
        """
        return os.getenv("BROWSER_EXECUTABLE_PATH") or os.getenv("PUPPETEER_EXECUTABLE_PATH") or None

    @property
    def headless_mode(self) -> bool:
        """Run browser in headless mode (default: True)."""
        return _parse_bool(os.getenv("HEADLESS_MODE", "true"))

    @property
    def block_resources(self) -> bool:
        """Abort image/stylesheet/font/media requests to speed up page loads."""
        return _parse_bool(os.getenv("BLOCK_RESOURCES", "true"))

    # Login flow timing
    @property
    def navigation_wait_until(self) -> str:
        """Load state that counts as navigation complete."""
        return os.getenv("NAVIGATION_WAIT_UNTIL", "domcontentloaded").strip().lower()

    @property
    def navigation_timeout_ms(self) -> int:
        return int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))

    @property
    def initial_button_timeout_ms(self) -> int:
        return int(os.getenv("INITIAL_BUTTON_TIMEOUT_MS", "15000"))

    @property
    def redirect_timeout_ms(self) -> int:
        return int(os.getenv("REDIRECT_TIMEOUT_MS", "30000"))

    @property
    def element_timeout_ms(self) -> int:
        return int(os.getenv("ELEMENT_TIMEOUT_MS", "15000"))

    @property
    def auth_timeout_ms(self) -> int:
        return int(os.getenv("AUTH_TIMEOUT_MS", "30000"))

    @property
    def advance_delay_ms(self) -> int:
        """Pause after clicking Next before looking for the password field."""
        return int(os.getenv("ADVANCE_DELAY_MS", "1500"))

    @property
    def settle_delay_ms(self) -> int:
        """Grace period after login for token-bearing requests and storage writes."""
        return int(os.getenv("SETTLE_DELAY_MS", "5000"))

    @property
    def typing_delay_ms(self) -> int:
        return int(os.getenv("TYPING_DELAY_MS", "0"))

    @property
    def idp_url_pattern(self) -> Optional[str]:
        """Regex the URL must match once redirected to the identity provider."""
        return os.getenv("IDP_URL_PATTERN") or None

    @property
    def selectors(self) -> SelectorStrategies:
        """Selector strategies, with any JSON-array overrides from the environment applied."""
        overrides = {}
        for field_name, env_var in SELECTOR_ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw:
                overrides[field_name] = self._parse_selector_list(env_var, raw)
        return SelectorStrategies(**overrides)

    # Logging
    @property
    def log_level(self) -> str:
        """Logging level."""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def log_dir(self) -> Path:
        """Directory for component log files."""
        return Path(os.getenv("LOG_DIR", "./logs"))

    @property
    def log_to_files(self) -> bool:
        return _parse_bool(os.getenv("LOG_TO_FILES", "true"))

    @staticmethod
    def _parse_selector_list(env_var: str, raw: str) -> List[str]:
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"{env_var} must be a JSON array of selectors: {e}") from e
        if not isinstance(value, list) or not value or not all(isinstance(s, str) and s for s in value):
            raise ValueError(f"{env_var} must be a non-empty JSON array of selector strings")
        return value

    def login_flow_settings(self) -> LoginFlowSettings:
        """Build the login flow settings from the current environment."""
        return LoginFlowSettings(
            selectors=self.selectors,
            wait_until=self.navigation_wait_until,
            navigation_timeout_ms=self.navigation_timeout_ms,
            initial_button_timeout_ms=self.initial_button_timeout_ms,
            redirect_timeout_ms=self.redirect_timeout_ms,
            element_timeout_ms=self.element_timeout_ms,
            auth_timeout_ms=self.auth_timeout_ms,
            advance_delay_ms=self.advance_delay_ms,
            settle_delay_ms=self.settle_delay_ms,
            typing_delay_ms=self.typing_delay_ms,
            block_resources=self.block_resources,
            idp_url_pattern=self.idp_url_pattern,
        )

    def validate(self) -> bool:
        """Validate that the configuration is usable.

        Returns:
            bool: True if configuration is valid

        Raises:
            ValueError: If a setting is invalid
        """
        if self.navigation_wait_until not in WAIT_UNTIL_POLICIES:
            raise ValueError(
                f"Invalid NAVIGATION_WAIT_UNTIL: {self.navigation_wait_until}. "
                f"Must be one of {', '.join(WAIT_UNTIL_POLICIES)}"
            )

        if self.port <= 0:
            raise ValueError(f"Invalid PORT: {self.port}")

        # Parses every selector override; raises on malformed JSON
        _ = self.selectors

        return True


# Global config instance
_config: Optional[Config] = None


def get_config(env_file: Optional[str] = None) -> Config:
    """Get global configuration instance.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Config: Global configuration instance
    """
    global _config
    if _config is None:
        _config = Config(env_file)
    return _config
