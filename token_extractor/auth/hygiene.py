"""Best-effort removal of authentication artifacts before a session closes."""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .authenticator import LoginSession


logger = logging.getLogger(__name__)


async def secure_cleanup(session: "LoginSession") -> None:
    """Delete cookies, clear both storage areas and close secondary pages.

    Every step is attempted independently; failures are logged and never
    raised, so a second call (or a call on a half-initialised session) is safe.
    """
    driver = session.driver
    logger.info("Cleaning up browser session...")

    try:
        cleared = await driver.clear_cookies()
        logger.debug(f"  Cleared {cleared} cookies")
    except Exception as e:
        logger.warning(f"  Cleanup warning (cookies): {e}")

    try:
        await driver.clear_storage()
        logger.debug("  Cleared localStorage and sessionStorage")
    except Exception as e:
        logger.warning(f"  Cleanup warning (storage): {e}")

    try:
        closed = await driver.close_secondary_pages()
        if closed:
            logger.debug(f"  Closed {closed} secondary pages")
    except Exception as e:
        logger.warning(f"  Cleanup warning (pages): {e}")

    session.cleaned_up = True
    logger.info("✓ Cleanup done")
