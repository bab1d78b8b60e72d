"""Browser driver interface used by the login flow."""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple


# Receives (headers, resource_type); returns True to continue, False to abort
RequestHandler = Callable[[Mapping[str, str], str], bool]

StorageItems = List[Tuple[str, Optional[str]]]


class BrowserDriver(ABC):
    """Abstract headless-browser session: one browser, one primary page.

    Use as an async context manager; the browser is closed on exit whatever
    happens inside the block. Bounded waits raise DriverTimeoutError.
    """

    async def __aenter__(self) -> "BrowserDriver":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False  # Don't suppress exceptions

    @abstractmethod
    async def launch(self) -> None:
        """Start the browser.

        Raises:
            BrowserLaunchError: If no usable browser could be started
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the browser. Safe to call more than once."""

    @abstractmethod
    async def open_page(self, viewport: Dict[str, int], user_agent: str) -> None:
        """Open the primary page with the given viewport and user agent."""

    @abstractmethod
    async def observe_requests(self, handler: RequestHandler, intercept: bool) -> None:
        """Call handler for every outgoing request of the session.

        With intercept=True the handler's return value decides whether the
        request continues or is aborted; otherwise requests are only observed.
        """

    @property
    @abstractmethod
    def url(self) -> str:
        """Current URL of the primary page."""

    @abstractmethod
    async def goto(self, url: str, wait_until: str, timeout_ms: int) -> None:
        """Navigate the primary page."""

    @abstractmethod
    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> str:
        """Wait until one of the selectors is visible.

        Returns:
            str: The earliest selector in the list that matched
        """

    @abstractmethod
    async def first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        """Return the earliest selector that is visible right now, if any."""

    @abstractmethod
    async def click(self, selector: str) -> None:
        """Click the first element matching selector."""

    @abstractmethod
    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        """Type text into the first element matching selector."""

    @abstractmethod
    def navigation_marker(self) -> int:
        """Opaque marker of the navigations seen so far."""

    @abstractmethod
    async def wait_for_navigation(self, since: int, wait_until: str, timeout_ms: int) -> None:
        """Wait for a main-frame navigation after the given marker."""

    @abstractmethod
    async def wait_for_url(self, pattern: str, wait_until: str, timeout_ms: int) -> None:
        """Wait until the page URL matches the regular expression."""

    @abstractmethod
    async def read_storage(self, area: str) -> StorageItems:
        """Return (key, value) pairs of 'localStorage' or 'sessionStorage' in key order."""

    @abstractmethod
    async def clear_cookies(self) -> int:
        """Delete all cookies and return how many there were."""

    @abstractmethod
    async def clear_storage(self) -> None:
        """Clear localStorage and sessionStorage of the primary page."""

    @abstractmethod
    async def close_secondary_pages(self) -> int:
        """Close every page except the primary one and return how many were closed."""
