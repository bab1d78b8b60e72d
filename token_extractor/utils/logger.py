"""Logging configuration for the token extractor service."""

import logging
import re
import sys
from pathlib import Path
from typing import Optional, Iterable


# Component to log file mapping
COMPONENT_LOG_FILES = {
    'auth': 'auth.log',
    'browser': 'browser.log',
    'api': 'api.log',
    'main': 'main.log',
}

REDACTED = "***"

# Shorter identifiers are left alone when scrubbing messages
MIN_IDENTIFIER_LENGTH = 3


def _get_component_from_logger_name(name: str) -> str:
    """Determine component from logger name.

    Args:
        name: Logger name (e.g., 'token_extractor.auth.authenticator')

    Returns:
        Component name or 'main' if no match
    """
    if '.auth' in name:
        return 'auth'
    elif '.browser' in name or name.startswith('playwright'):
        return 'browser'
    elif '.api' in name or name.startswith('uvicorn') or name.startswith('fastapi'):
        return 'api'
    else:
        return 'main'


class ComponentFilter(logging.Filter):
    """Filter that only allows records from a specific component."""

    def __init__(self, component: str):
        """Initialize component filter.

        Args:
            component: Component name (auth, browser, api, main)
        """
        super().__init__()
        self.component = component

    def filter(self, record: logging.LogRecord) -> bool:
        """Check if record belongs to this component."""
        return _get_component_from_logger_name(record.name) == self.component


def setup_logging(
    log_level: str = "INFO",
    log_to_console: bool = True,
    log_dir: Optional[Path] = None,
    log_to_files: bool = True
) -> None:
    """Configure logging for the application with component-based file logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_console: Whether to log to console (default: True)
        log_dir: Directory for component log files (default: ./logs)
        log_to_files: Whether to write component log files (default: True)
    """
    # Convert log level string to logging constant
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Create formatters
    detailed_formatter = logging.Formatter(
        fmt='[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console formatter - minimal for routine operations
    console_formatter = logging.Formatter(
        fmt='[%(levelname)s] %(message)s'
    )

    # Get root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    # Component-based file handlers - each component gets its own file
    if log_to_files:
        log_directory = Path(log_dir) if log_dir else Path('./logs')
        log_directory.mkdir(parents=True, exist_ok=True)

        for component, filename in COMPONENT_LOG_FILES.items():
            handler = logging.FileHandler(log_directory / filename, mode='a', encoding='utf-8')
            handler.setLevel(numeric_level)
            handler.setFormatter(detailed_formatter)
            handler.addFilter(ComponentFilter(component))
            root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Render a secret for logs as its first few characters plus its length."""
    if not value:
        return "(empty)"
    if len(value) <= visible:
        return f"{REDACTED} ({len(value)} chars)"
    return f"{value[:visible]}... ({len(value)} chars)"


def scrub_secrets(
    message: str,
    password: Optional[str],
    identifiers: Iterable[Optional[str]] = ()
) -> str:
    """Remove credentials from a message.

    The password is replaced wherever it occurs. Identifiers such as the
    username are replaced only as whole words and only when they are at
    least MIN_IDENTIFIER_LENGTH characters, so a short username does not
    garble unrelated text.

    Playwright appends a multi-line "Call log:" to its errors which can echo
    typed text; only the first part of the message is kept.
    """
    message = message.split("\nCall log:")[0].strip()
    if password:
        message = message.replace(password, REDACTED)

    for identifier in identifiers:
        if identifier and len(identifier) >= MIN_IDENTIFIER_LENGTH:
            pattern = rf"(?<!\w){re.escape(identifier)}(?!\w)"
            message = re.sub(pattern, REDACTED, message)
    return message
