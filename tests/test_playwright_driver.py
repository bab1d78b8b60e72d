"""Tests for the Playwright driver pieces that run without a browser."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from token_extractor.auth.token_capture import NetworkTokenObserver, TokenSlot
from token_extractor.browser.playwright_driver import (
    DEFAULT_LAUNCH_ARGS, PlaywrightDriver, find_browser_executable,
)
from token_extractor.exceptions import BrowserLaunchError, DriverTimeoutError


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(BrowserLaunchError, match="playwright install chromium"):
        find_browser_executable(str(tmp_path / "missing-chrome"))


def test_explicit_path_used_as_is(tmp_path):
    chrome = tmp_path / "chrome"
    chrome.write_text("")
    assert find_browser_executable(str(chrome)) == str(chrome)


def test_launch_args_not_shared():
    driver = PlaywrightDriver()
    driver.launch_args.append("--mute-audio")
    assert "--mute-audio" not in DEFAULT_LAUNCH_ARGS


def driver_with_page():
    driver = PlaywrightDriver()
    page = MagicMock()
    page.wait_for_load_state = AsyncMock()
    driver._page = page
    return driver, page


@pytest.mark.asyncio
async def test_navigation_before_wait_is_not_missed():
    driver, page = driver_with_page()
    marker = driver.navigation_marker()

    # Navigation completes before anyone waits for it
    driver._on_frame_navigated(page.main_frame)

    await driver.wait_for_navigation(marker, "domcontentloaded", 50)
    page.wait_for_load_state.assert_awaited_once()


@pytest.mark.asyncio
async def test_subframe_navigation_ignored():
    driver, page = driver_with_page()
    marker = driver.navigation_marker()

    driver._on_frame_navigated(MagicMock())

    with pytest.raises(DriverTimeoutError):
        await driver.wait_for_navigation(marker, "domcontentloaded", 20)


@pytest.mark.asyncio
async def test_wait_for_navigation_wakes_on_event():
    driver, page = driver_with_page()
    marker = driver.navigation_marker()

    async def navigate_later():
        await asyncio.sleep(0.01)
        driver._on_frame_navigated(page.main_frame)

    task = asyncio.create_task(navigate_later())
    await driver.wait_for_navigation(marker, "load", 1000)
    await task

    assert driver.navigation_marker() == marker + 1


class FakeLocator:
    """Visibility-filtered locator over a fixed count of visible matches."""

    def __init__(self, selector, visible_count, clicks=None):
        self.selector = selector
        self.visible_count = visible_count
        self.clicks = clicks if clicks is not None else []

    @property
    def first(self):
        return self

    def or_(self, other):
        return FakeLocator(f"{self.selector} | {other.selector}", self.visible_count + other.visible_count, self.clicks)

    async def count(self):
        return self.visible_count

    async def wait_for(self, state, timeout):
        if not self.visible_count:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def click(self):
        self.clicks.append(self.selector)


def driver_with_dom(visible_counts):
    """Page whose selectors match the given number of visible elements.

    Hidden matches are not counted; only the ``>> visible=true`` form is
    answered so unfiltered lookups fail loudly.
    """
    driver = PlaywrightDriver()
    page = MagicMock()
    clicks = []

    def locator(selector):
        base, _, engine = selector.partition(" >> ")
        assert engine == "visible=true"
        return FakeLocator(selector, visible_counts.get(base, 0), clicks)

    page.locator.side_effect = locator
    driver._page = page
    return driver, clicks


class TestSelectorVisibility:
    @pytest.mark.asyncio
    async def test_later_visible_selector_chosen_over_hidden_earlier_match(self):
        # A hidden primary button from another form precedes the visible Next button
        driver, _ = driver_with_dom({"button:has-text('Next')": 1})

        matched = await driver.wait_for_any(
            ["button[type='submit'].btn.btn-primary", "button:has-text('Next')"], 100
        )

        assert matched == "button:has-text('Next')"

    @pytest.mark.asyncio
    async def test_all_hidden_times_out(self):
        driver, _ = driver_with_dom({})

        with pytest.raises(DriverTimeoutError):
            await driver.wait_for_any(["#Input_Email", "input[type='email']"], 100)

    @pytest.mark.asyncio
    async def test_first_visible_keeps_list_order(self):
        driver, _ = driver_with_dom({"input[type='email']": 1, "input[name='username']": 1})

        assert await driver.first_visible(["#Input_Email", "input[type='email']", "input[name='username']"]) \
            == "input[type='email']"

    @pytest.mark.asyncio
    async def test_click_targets_visible_element(self):
        driver, clicks = driver_with_dom({"button[type='submit']": 1})

        await driver.click("button[type='submit']")

        assert clicks == ["button[type='submit'] >> visible=true"]


def make_request(headers, resource_type="fetch"):
    request = MagicMock()
    request.headers = headers
    request.resource_type = resource_type
    request.url = "https://api.example.com/me"
    request.all_headers = AsyncMock(side_effect=AssertionError("headers must be read synchronously"))
    return request


class TestRequestObservation:
    @pytest.mark.asyncio
    async def test_route_handler_sees_requests_in_arrival_order(self):
        driver = PlaywrightDriver()
        driver._context = MagicMock()
        driver._context.route = AsyncMock()
        slot = TokenSlot()
        observer = NetworkTokenObserver(slot)

        await driver.observe_requests(observer.handle, intercept=True)
        on_route = driver._context.route.call_args.args[1]

        first_route, second_route = MagicMock(), MagicMock()
        for route in (first_route, second_route):
            route.continue_ = AsyncMock()
            route.abort = AsyncMock()

        await asyncio.gather(
            on_route(first_route, make_request({"authorization": "Bearer first"})),
            on_route(second_route, make_request({"authorization": "Bearer second"})),
        )

        assert slot.token.value == "first"
        first_route.continue_.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blocked_request_aborted_after_inspection(self):
        driver = PlaywrightDriver()
        driver._context = MagicMock()
        driver._context.route = AsyncMock()
        slot = TokenSlot()

        await driver.observe_requests(NetworkTokenObserver(slot).handle, intercept=True)
        on_route = driver._context.route.call_args.args[1]
        route = MagicMock()
        route.continue_ = AsyncMock()
        route.abort = AsyncMock()

        await on_route(route, make_request({"authorization": "Bearer img"}, "image"))

        route.abort.assert_awaited_once()
        assert slot.token.value == "img"
