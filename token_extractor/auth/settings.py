"""Selectors and timing for the identity-provider login flow."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


WAIT_UNTIL_POLICIES = ("load", "domcontentloaded", "networkidle")

VIEWPORT: Dict[str, int] = {"width": 1920, "height": 1080}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class SelectorStrategies:
    """Ordered selector candidates for each element the flow touches.

    Earlier entries win when several match. Markup differs between
    deployments and IdP versions, so each field gets a list rather than one
    selector.
    """

    # Landing page "Log in" affordance (optional)
    login_button: List[str] = field(default_factory=lambda: [
        "#loginButton",
        "button:has-text('Log in')",
        "a:has-text('Log in')",
        "[aria-label='Log in']",
    ])

    email: List[str] = field(default_factory=lambda: [
        "#Input_Email",
        "input[type='email']",
        "input[name='username']",
        "input[name='loginfmt']",
        "input[placeholder*='mail' i]",
    ])

    # Advances a username-first IdP to its password page
    next_button: List[str] = field(default_factory=lambda: [
        "button[type='submit'].btn.btn-primary",
        "button:has-text('Next')",
        "button:has-text('Continue')",
        "button[type='submit']",
        "input[type='submit']",
    ])

    password: List[str] = field(default_factory=lambda: [
        "#Input_Password",
        "input[type='password']",
        "input[name='password']",
    ])

    submit_button: List[str] = field(default_factory=lambda: [
        "button[type='submit'].btn.btn-primary",
        "button:has-text('Log In')",
        "button:has-text('Sign In')",
        "button[type='submit']",
        "input[type='submit']",
    ])


@dataclass
class LoginFlowSettings:
    """Timeouts, delays and policies for one login flow (milliseconds)."""

    selectors: SelectorStrategies = field(default_factory=SelectorStrategies)
    wait_until: str = "domcontentloaded"
    navigation_timeout_ms: int = 30000
    initial_button_timeout_ms: int = 15000
    redirect_timeout_ms: int = 30000
    element_timeout_ms: int = 15000
    auth_timeout_ms: int = 30000
    advance_delay_ms: int = 1500
    settle_delay_ms: int = 5000
    typing_delay_ms: int = 0
    block_resources: bool = True
    idp_url_pattern: Optional[str] = None
    viewport: Dict[str, int] = field(default_factory=lambda: dict(VIEWPORT))
    user_agent: str = USER_AGENT
