"""Headless-browser login flow that captures a bearer token from an identity provider."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .hygiene import secure_cleanup
from .settings import LoginFlowSettings
from .token_capture import NetworkTokenObserver, TokenSlot, scan_storage
from ..browser.driver import BrowserDriver
from ..browser.playwright_driver import PlaywrightDriver
from ..exceptions import (
    DriverTimeoutError,
    ElementTimeoutError,
    NavigationTimeoutError,
    TokenNotFoundError,
)
from ..models import CapturedToken, LoginRequest, LoginResult
from ..utils.logger import mask_secret


logger = logging.getLogger(__name__)


class LoginState(Enum):
    """Named states of the login flow."""
    INIT = "init"
    NAVIGATE = "navigate"
    INITIAL_LOGIN_BUTTON = "initial_login_button"
    REDIRECT_WAIT = "redirect_wait"
    ENTER_EMAIL = "enter_email"
    ADVANCE_OR_PASSWORD_DIRECT = "advance_or_password_direct"
    ENTER_PASSWORD = "enter_password"
    SUBMIT = "submit"
    AUTH_WAIT = "auth_wait"
    SETTLE_DELAY = "settle_delay"
    FINISHED = "finished"


class StepOutcome(Enum):
    """Result of running one state; selects the transition."""
    DONE = "done"
    CLICKED = "clicked"
    ABSENT = "absent"
    PASSWORD_VISIBLE = "password_visible"
    NAVIGATED = "navigated"
    TIMED_OUT = "timed_out"


TRANSITIONS: Dict[Tuple[LoginState, StepOutcome], LoginState] = {
    (LoginState.INIT, StepOutcome.DONE): LoginState.NAVIGATE,
    (LoginState.NAVIGATE, StepOutcome.DONE): LoginState.INITIAL_LOGIN_BUTTON,
    (LoginState.INITIAL_LOGIN_BUTTON, StepOutcome.CLICKED): LoginState.REDIRECT_WAIT,
    (LoginState.INITIAL_LOGIN_BUTTON, StepOutcome.ABSENT): LoginState.ENTER_EMAIL,
    (LoginState.REDIRECT_WAIT, StepOutcome.NAVIGATED): LoginState.ENTER_EMAIL,
    (LoginState.ENTER_EMAIL, StepOutcome.DONE): LoginState.ADVANCE_OR_PASSWORD_DIRECT,
    (LoginState.ADVANCE_OR_PASSWORD_DIRECT, StepOutcome.CLICKED): LoginState.ENTER_PASSWORD,
    (LoginState.ADVANCE_OR_PASSWORD_DIRECT, StepOutcome.PASSWORD_VISIBLE): LoginState.ENTER_PASSWORD,
    (LoginState.ENTER_PASSWORD, StepOutcome.DONE): LoginState.SUBMIT,
    (LoginState.SUBMIT, StepOutcome.CLICKED): LoginState.AUTH_WAIT,
    (LoginState.AUTH_WAIT, StepOutcome.NAVIGATED): LoginState.SETTLE_DELAY,
    (LoginState.AUTH_WAIT, StepOutcome.TIMED_OUT): LoginState.SETTLE_DELAY,
    (LoginState.SETTLE_DELAY, StepOutcome.DONE): LoginState.FINISHED,
}


@dataclass
class LoginSession:
    """One browser session, owned by exactly one in-flight login request."""

    driver: BrowserDriver
    token_slot: TokenSlot = field(default_factory=TokenSlot)
    history: List[Tuple[LoginState, StepOutcome]] = field(default_factory=list)
    navigation_marker: int = 0
    observer: Optional[NetworkTokenObserver] = None
    cleaned_up: bool = False


DriverFactory = Callable[[], BrowserDriver]
StepHandler = Callable[[LoginSession, LoginRequest], Awaitable[StepOutcome]]


class TokenAuthenticator:
    """Drives a browser through an identity-provider login and returns the bearer token.

    Every call to run_login creates its own browser session, so concurrent
    calls share nothing.
    """

    def __init__(
        self,
        settings: Optional[LoginFlowSettings] = None,
        driver_factory: Optional[DriverFactory] = None,
    ):
        """Initialize authenticator.

        Args:
            settings: Selectors, timeouts and delays (default: LoginFlowSettings())
            driver_factory: Creates a fresh BrowserDriver per login (default: headless PlaywrightDriver)
        """
        self.settings = settings or LoginFlowSettings()
        self.driver_factory = driver_factory or partial(PlaywrightDriver, headless=True)

        self._handlers: Dict[LoginState, StepHandler] = {
            LoginState.INIT: self._init,
            LoginState.NAVIGATE: self._navigate,
            LoginState.INITIAL_LOGIN_BUTTON: self._initial_login_button,
            LoginState.REDIRECT_WAIT: self._redirect_wait,
            LoginState.ENTER_EMAIL: self._enter_email,
            LoginState.ADVANCE_OR_PASSWORD_DIRECT: self._advance_or_password_direct,
            LoginState.ENTER_PASSWORD: self._enter_password,
            LoginState.SUBMIT: self._submit,
            LoginState.AUTH_WAIT: self._auth_wait,
            LoginState.SETTLE_DELAY: self._settle_delay,
        }

    async def run_login(self, request: LoginRequest) -> LoginResult:
        """Perform the full login flow and capture a token.

        Args:
            request: Credentials and target URL

        Returns:
            LoginResult: Successful result carrying the captured token

        Raises:
            BrowserLaunchError: If the browser could not be started
            ElementTimeoutError: If a required element never appeared
            NavigationTimeoutError: If a required navigation never completed
            TokenNotFoundError: If the flow completed without a token
        """
        started = time.monotonic()
        logger.info(f"Starting login flow for {request.target_url}")

        async with self.driver_factory() as driver:
            session = LoginSession(driver=driver)
            try:
                await self._run_states(session, request)
                token = await self._resolve_token(session)
            finally:
                # Runs on success before reporting and on failure before close
                await secure_cleanup(session)

        elapsed = time.monotonic() - started
        logger.info(f"✓ Login flow succeeded in {elapsed:.2f}s (token from {token.source.value})")
        return LoginResult.succeeded(token, execution_seconds=elapsed)

    async def _run_states(self, session: LoginSession, request: LoginRequest) -> None:
        state = LoginState.INIT
        while state is not LoginState.FINISHED:
            outcome = await self._handlers[state](session, request)
            session.history.append((state, outcome))
            logger.debug(f"  {state.value} -> {outcome.value}")
            state = TRANSITIONS[(state, outcome)]

    async def _resolve_token(self, session: LoginSession) -> CapturedToken:
        """Prefer the network-captured token, fall back to a storage scan."""
        if session.token_slot.is_set:
            return session.token_slot.token

        logger.info("Step 11: No token seen on the network, scanning browser storage...")
        local_items = await session.driver.read_storage("localStorage")
        session_items = await session.driver.read_storage("sessionStorage")
        logger.debug(f"  localStorage keys: {len(local_items)}, sessionStorage keys: {len(session_items)}")

        found = scan_storage(local_items, session_items)
        if found is not None:
            session.token_slot.offer(found.value, found.source)

        if not session.token_slot.is_set:
            logger.error(f"  ✗ No token found. Final URL: {session.driver.url}")
            raise TokenNotFoundError()

        return session.token_slot.token

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _init(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 1: Opening page...")
        await session.driver.open_page(self.settings.viewport, self.settings.user_agent)

        # Must be in place before the first navigation
        session.observer = NetworkTokenObserver(
            session.token_slot,
            block_resources=self.settings.block_resources,
        )
        await session.driver.observe_requests(
            session.observer.handle,
            intercept=self.settings.block_resources,
        )
        return StepOutcome.DONE

    async def _navigate(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info(f"Step 2: Navigating to {request.target_url}")
        try:
            await session.driver.goto(
                request.target_url,
                wait_until=self.settings.wait_until,
                timeout_ms=self.settings.navigation_timeout_ms,
            )
        except DriverTimeoutError as e:
            raise NavigationTimeoutError("target page to load", self.settings.navigation_timeout_ms) from e
        logger.info(f"  Current URL: {session.driver.url}")
        return StepOutcome.DONE

    async def _initial_login_button(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 3: Checking for initial Log in button...")
        selectors = self.settings.selectors

        if await session.driver.first_visible(selectors.email):
            logger.info("  → Already on login form, skipping Log in button")
            return StepOutcome.ABSENT

        try:
            button = await session.driver.wait_for_any(
                selectors.login_button, self.settings.initial_button_timeout_ms
            )
        except DriverTimeoutError:
            logger.info("  → No Log in button found, continuing to login form")
            return StepOutcome.ABSENT

        session.navigation_marker = session.driver.navigation_marker()
        await session.driver.click(button)
        logger.info(f"  Clicked Log in button ({button})")
        return StepOutcome.CLICKED

    async def _redirect_wait(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 4: Waiting for redirect to identity provider...")
        timeout_ms = self.settings.redirect_timeout_ms
        try:
            if self.settings.idp_url_pattern:
                await session.driver.wait_for_url(
                    self.settings.idp_url_pattern, self.settings.wait_until, timeout_ms
                )
            else:
                await session.driver.wait_for_navigation(
                    session.navigation_marker, self.settings.wait_until, timeout_ms
                )
        except DriverTimeoutError as e:
            raise NavigationTimeoutError("redirect to identity provider", timeout_ms) from e
        logger.info(f"  Now on: {session.driver.url}")
        return StepOutcome.NAVIGATED

    async def _enter_email(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 5: Entering email...")
        field_selector = await self._require(session, self.settings.selectors.email, "email input")
        await session.driver.type_text(field_selector, request.username, self.settings.typing_delay_ms)
        logger.info(f"  Entered username ({len(request.username)} characters)")
        return StepOutcome.DONE

    async def _advance_or_password_direct(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 6: Checking for password field...")
        selectors = self.settings.selectors

        if await session.driver.first_visible(selectors.password):
            logger.info("  Password field visible, single-page login form")
            return StepOutcome.PASSWORD_VISIBLE

        logger.info("  Username-first flow detected, clicking Next")
        button = await self._require(session, selectors.next_button, "next button")
        await session.driver.click(button)
        await asyncio.sleep(self.settings.advance_delay_ms / 1000)
        return StepOutcome.CLICKED

    async def _enter_password(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 7: Entering password...")
        field_selector = await self._require(session, self.settings.selectors.password, "password input")
        await session.driver.type_text(field_selector, request.password, self.settings.typing_delay_ms)
        logger.info(f"  Entered password ({len(request.password)} characters)")
        return StepOutcome.DONE

    async def _submit(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 8: Submitting login form...")
        button = await self._require(session, self.settings.selectors.submit_button, "submit button")
        session.navigation_marker = session.driver.navigation_marker()
        await session.driver.click(button)
        logger.info("  Credentials submitted")
        return StepOutcome.CLICKED

    async def _auth_wait(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info("Step 9: Waiting for authentication...")
        try:
            await session.driver.wait_for_navigation(
                session.navigation_marker,
                self.settings.wait_until,
                self.settings.auth_timeout_ms,
            )
        except DriverTimeoutError:
            logger.warning("  Navigation timeout, assuming in-page login and checking for token")
            return StepOutcome.TIMED_OUT
        logger.info(f"  Redirected to: {session.driver.url}")
        return StepOutcome.NAVIGATED

    async def _settle_delay(self, session: LoginSession, request: LoginRequest) -> StepOutcome:
        logger.info(f"Step 10: Waiting {self.settings.settle_delay_ms}ms for token to be stored...")
        await asyncio.sleep(self.settings.settle_delay_ms / 1000)
        if session.token_slot.is_set:
            logger.info(f"  Token already captured: {mask_secret(session.token_slot.token.value)}")
        return StepOutcome.DONE

    async def _require(self, session: LoginSession, selectors: List[str], description: str) -> str:
        """Wait for a required element; its absence fails the flow."""
        timeout_ms = self.settings.element_timeout_ms
        try:
            return await session.driver.wait_for_any(selectors, timeout_ms)
        except DriverTimeoutError as e:
            logger.error(f"  ✗ {description} not found. Current URL: {session.driver.url}")
            raise ElementTimeoutError(description, timeout_ms, ", ".join(selectors)) from e


def build_authenticator(config) -> TokenAuthenticator:
    """Create an authenticator that launches Playwright browsers as configured.

    Args:
        config: Application Config

    Returns:
        TokenAuthenticator: Ready to run logins
    """
    driver_factory = partial(
        PlaywrightDriver,
        executable_path=config.browser_executable_path,
        headless=config.headless_mode,
    )
    return TokenAuthenticator(config.login_flow_settings(), driver_factory=driver_factory)
