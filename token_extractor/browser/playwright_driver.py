"""Playwright-based browser driver."""

import asyncio
import logging
import os
import re
import shutil
from typing import Dict, List, Optional, Sequence

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Frame,
    Locator,
    Page,
    Playwright,
    Request,
    Route,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from .driver import BrowserDriver, RequestHandler, StorageItems
from ..exceptions import BrowserLaunchError, DriverTimeoutError


logger = logging.getLogger(__name__)

# Flags needed to run Chromium inside a container
DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--no-zygote",
    "--disable-application-cache",
    "--disable-extensions",
]

# Well-known Chrome/Chromium locations, checked in order
BROWSER_CANDIDATES = [
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
]

STORAGE_AREAS = ("localStorage", "sessionStorage")

READ_STORAGE_SCRIPT = """
(area) => {
    const storage = window[area];
    return Object.keys(storage).map((key) => [key, storage.getItem(key)]);
}
"""

CLEAR_STORAGE_SCRIPT = """
() => {
    localStorage.clear();
    sessionStorage.clear();
}
"""

LAUNCH_GUIDANCE = (
    "Install a browser with `playwright install chromium` "
    "or set BROWSER_EXECUTABLE_PATH to a Chrome/Chromium binary."
)


def find_browser_executable(explicit_path: Optional[str] = None) -> Optional[str]:
    """Locate a Chrome/Chromium binary.

    Args:
        explicit_path: Configured path; used as-is when given

    Returns:
        Path to a browser, or None to fall back to Playwright's bundled Chromium

    Raises:
        BrowserLaunchError: If explicit_path does not exist
    """
    if explicit_path:
        if not os.path.exists(explicit_path):
            raise BrowserLaunchError(
                f"Browser executable not found at {explicit_path}. {LAUNCH_GUIDANCE}"
            )
        return explicit_path

    for candidate in BROWSER_CANDIDATES:
        if os.path.exists(candidate):
            return candidate

    for name in ("google-chrome-stable", "google-chrome", "chromium", "chromium-browser"):
        found = shutil.which(name)
        if found:
            return found

    return None


class PlaywrightDriver(BrowserDriver):
    """Drives one Chromium instance through Playwright's async API."""

    def __init__(
        self,
        executable_path: Optional[str] = None,
        headless: bool = True,
        launch_args: Optional[List[str]] = None,
    ):
        """Initialize driver.

        Args:
            executable_path: Chrome/Chromium binary (default: auto-discover)
            headless: Run browser in headless mode (default: True)
            launch_args: Chromium command-line flags (default: DEFAULT_LAUNCH_ARGS)
        """
        self.executable_path = executable_path
        self.headless = headless
        self.launch_args = launch_args if launch_args is not None else list(DEFAULT_LAUNCH_ARGS)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

        self._navigation_count = 0
        self._navigated = asyncio.Event()

    async def launch(self) -> None:
        executable = find_browser_executable(self.executable_path)
        logger.debug(f"Launching Chromium (executable: {executable or 'bundled'}, headless: {self.headless})")

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                executable_path=executable,
                args=self.launch_args,
            )
        except PlaywrightError as e:
            await self.close()
            raise BrowserLaunchError(f"Could not launch browser: {e.message}. {LAUNCH_GUIDANCE}") from e

        logger.debug("Browser launched")

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
                logger.debug("Browser closed")
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e.message}")
            self._browser = None
            self._context = None
            self._page = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping Playwright: {e.message}")
            self._playwright = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("No page open. Call open_page() first.")
        return self._page

    async def open_page(self, viewport: Dict[str, int], user_agent: str) -> None:
        if self._browser is None:
            raise RuntimeError("Browser not launched. Call launch() first.")

        self._context = await self._browser.new_context(viewport=viewport, user_agent=user_agent)
        self._page = await self._context.new_page()
        self._page.on("framenavigated", self._on_frame_navigated)
        logger.debug(f"Opened page ({viewport['width']}x{viewport['height']})")

    def _on_frame_navigated(self, frame: Frame) -> None:
        if self._page is not None and frame == self._page.main_frame:
            self._navigation_count += 1
            self._navigated.set()
            logger.debug(f"Navigated to {frame.url}")

    async def observe_requests(self, handler: RequestHandler, intercept: bool) -> None:
        if self._context is None:
            raise RuntimeError("No browser context. Call open_page() first.")

        if intercept:
            async def on_route(route: Route, request: Request) -> None:
                # Inspect before the first await so requests are seen in arrival order
                allowed = handler(request.headers, request.resource_type)
                try:
                    if allowed:
                        await route.continue_()
                    else:
                        await route.abort()
                except PlaywrightError as e:
                    # Page or context went away mid-request
                    logger.debug(f"Request handling skipped for {request.url[:80]}: {e.message}")

            await self._context.route("**/*", on_route)
        else:
            def on_request(request: Request) -> None:
                handler(request.headers, request.resource_type)

            self._context.on("request", on_request)

    @property
    def url(self) -> str:
        return self._page.url if self._page is not None else ""

    async def goto(self, url: str, wait_until: str, timeout_ms: int) -> None:
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(e.message) from e

    def _visible(self, selector: str) -> Locator:
        """First element matching selector that is currently visible."""
        return self.page.locator(f"{selector} >> visible=true").first

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> str:
        candidates = [self._visible(selector) for selector in selectors]
        any_visible = candidates[0]
        for candidate in candidates[1:]:
            any_visible = any_visible.or_(candidate)

        try:
            await any_visible.first.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(e.message) from e

        matched = await self.first_visible(selectors)
        if matched is None:
            raise DriverTimeoutError(f"Element matching {', '.join(selectors)} was hidden again")
        return matched

    async def first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            try:
                if await self._visible(selector).count() > 0:
                    return selector
            except PlaywrightError as e:
                logger.debug(f"Selector '{selector}' failed: {e.message}")
        return None

    async def click(self, selector: str) -> None:
        try:
            await self._visible(selector).click()
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(e.message) from e

    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        try:
            await self._visible(selector).press_sequentially(text, delay=delay_ms)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(f"Timed out typing into {selector}") from e

    def navigation_marker(self) -> int:
        return self._navigation_count

    async def wait_for_navigation(self, since: int, wait_until: str, timeout_ms: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        while self._navigation_count <= since:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DriverTimeoutError(f"No navigation within {timeout_ms}ms")
            self._navigated.clear()
            try:
                await asyncio.wait_for(self._navigated.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                raise DriverTimeoutError(f"No navigation within {timeout_ms}ms") from None

        remaining_ms = max(1, int((deadline - loop.time()) * 1000))
        try:
            await self.page.wait_for_load_state(wait_until, timeout=remaining_ms)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(e.message) from e

    async def wait_for_url(self, pattern: str, wait_until: str, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_url(re.compile(pattern), wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(e.message) from e

    async def read_storage(self, area: str) -> StorageItems:
        if area not in STORAGE_AREAS:
            raise ValueError(f"Unknown storage area: {area}")
        items = await self.page.evaluate(READ_STORAGE_SCRIPT, area)
        return [(key, value) for key, value in items]

    async def clear_cookies(self) -> int:
        if self._context is None:
            return 0
        cookies = await self._context.cookies()
        await self._context.clear_cookies()
        return len(cookies)

    async def clear_storage(self) -> None:
        if self._page is None:
            return
        await self._page.evaluate(CLEAR_STORAGE_SCRIPT)

    async def close_secondary_pages(self) -> int:
        if self._context is None:
            return 0
        closed = 0
        for page in list(self._context.pages):
            if page is not self._page:
                await page.close()
                closed += 1
        return closed
