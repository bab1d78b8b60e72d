"""Browser driver interface and its Playwright implementation."""

from .driver import BrowserDriver
from .playwright_driver import PlaywrightDriver, find_browser_executable

__all__ = [
    'BrowserDriver',
    'PlaywrightDriver',
    'find_browser_executable',
]
