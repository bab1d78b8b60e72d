"""Shared fixtures: a scripted in-memory browser driver and fast flow settings."""

import re
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from token_extractor.auth.settings import LoginFlowSettings
from token_extractor.browser.driver import BrowserDriver, RequestHandler, StorageItems
from token_extractor.exceptions import BrowserLaunchError, DriverTimeoutError


APP_URL = "https://app.example.com/"
IDP_URL = "https://idp.example.com/Account/Login"
HOME_URL = "https://app.example.com/home"

LOGIN_BUTTON = "#loginButton"
EMAIL = "#Input_Email"
PASSWORD = "#Input_Password"
SUBMIT = "button[type='submit'].btn.btn-primary"

Action = Callable[["FakeDriver"], None]


class FakeDriver(BrowserDriver):
    """In-memory BrowserDriver whose page reacts to clicks via scripted actions.

    Selectors in ``visible`` count as present. ``on_click`` maps a selector to
    a queue of actions; each click on it runs the next one.
    """

    def __init__(self, fail_launch: bool = False):
        self.fail_launch = fail_launch
        self.launched = False
        self.closed = False
        self.close_calls = 0
        self.page_opened = False

        self.current_url = "about:blank"
        self.visible: set = set()
        self.on_click: Dict[str, List[Action]] = {}
        self.on_goto: List[Action] = []
        self.navigations = 0

        self.handler: Optional[RequestHandler] = None
        self.intercept: Optional[bool] = None
        self.aborted: List[str] = []
        self.continued: List[str] = []

        self.clicks: List[str] = []
        self.typed: List[tuple] = []
        self.local_storage: StorageItems = []
        self.session_storage: StorageItems = []
        self.cookies = ["session", "xsrf"]
        self.secondary_pages = 0

    # --- scripting helpers ---

    def navigate_to(self, url: str, *visible: str) -> None:
        self.current_url = url
        self.navigations += 1
        self.visible = set(visible)

    def emit_request(self, headers: Dict[str, str], resource_type: str = "xhr") -> bool:
        allowed = self.handler(headers, resource_type) if self.handler else True
        (self.continued if allowed else self.aborted).append(resource_type)
        return allowed

    # --- BrowserDriver ---

    async def launch(self) -> None:
        if self.fail_launch:
            raise BrowserLaunchError("Browser executable not found")
        self.launched = True

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    async def open_page(self, viewport, user_agent) -> None:
        self.page_opened = True

    async def observe_requests(self, handler: RequestHandler, intercept: bool) -> None:
        self.handler = handler
        self.intercept = intercept

    @property
    def url(self) -> str:
        return self.current_url

    async def goto(self, url: str, wait_until: str, timeout_ms: int) -> None:
        self.navigate_to(url, *self.visible)
        for action in self.on_goto:
            action(self)

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> str:
        found = await self.first_visible(selectors)
        if found is None:
            raise DriverTimeoutError(f"Timeout {timeout_ms}ms exceeded")
        return found

    async def first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            if selector in self.visible:
                return selector
        return None

    async def click(self, selector: str) -> None:
        self.clicks.append(selector)
        queue = self.on_click.get(selector)
        if queue:
            queue.pop(0)(self)

    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        self.typed.append((selector, text))

    def navigation_marker(self) -> int:
        return self.navigations

    async def wait_for_navigation(self, since: int, wait_until: str, timeout_ms: int) -> None:
        if self.navigations <= since:
            raise DriverTimeoutError(f"Timeout {timeout_ms}ms exceeded")

    async def wait_for_url(self, pattern: str, wait_until: str, timeout_ms: int) -> None:
        if not re.search(pattern, self.current_url):
            raise DriverTimeoutError(f"Timeout {timeout_ms}ms exceeded")

    async def read_storage(self, area: str) -> StorageItems:
        return list(self.local_storage if area == "localStorage" else self.session_storage)

    async def clear_cookies(self) -> int:
        count = len(self.cookies)
        self.cookies = []
        return count

    async def clear_storage(self) -> None:
        self.local_storage = []
        self.session_storage = []

    async def close_secondary_pages(self) -> int:
        closed, self.secondary_pages = self.secondary_pages, 0
        return closed


def build_redirect_flow(driver: FakeDriver, bearer: Optional[str] = "abc.def.ghi") -> FakeDriver:
    """Landing page with a Log in button, username-first IdP, token sent after submit."""
    driver.visible = {LOGIN_BUTTON}

    def to_idp(d):
        d.navigate_to(IDP_URL, EMAIL, SUBMIT)

    def show_password(d):
        d.visible.add(PASSWORD)

    def authenticated(d):
        d.navigate_to(HOME_URL)
        d.emit_request({"Accept": "*/*"}, "stylesheet")
        if bearer is not None:
            d.emit_request({"Authorization": f"Bearer {bearer}"}, "fetch")

    driver.on_click = {
        LOGIN_BUTTON: [to_idp],
        SUBMIT: [show_password, authenticated],
    }
    return driver


@pytest.fixture
def fast_settings():
    """Flow settings with every delay disabled."""
    return LoginFlowSettings(
        navigation_timeout_ms=1000,
        initial_button_timeout_ms=100,
        redirect_timeout_ms=100,
        element_timeout_ms=100,
        auth_timeout_ms=100,
        advance_delay_ms=0,
        settle_delay_ms=0,
    )


@pytest.fixture
def fake_driver():
    return FakeDriver()
