import logging

from playwright.async_api import Error as PlaywrightError

from sadkitty.adapters.base import SiteAdapter
from sadkitty.config import Credentials, Settings
from sadkitty.errors import LoginError

logger = logging.getLogger(__name__)


async def load_with_retry(
    driver,
    url: str,
    ready_selector: str,
    *,
    attempts: int = 3,
    wait_until: str = "domcontentloaded",
    navigation_timeout_ms: int = 30_000,
    render_timeout_ms: int = 10_000,
) -> bool:
    """
    Opens `url` and waits for `ready_selector` to render.
    A render timeout reloads the page; a failed navigation navigates again.
    Returns False once every attempt is spent, never raises for timeouts.
    """
    navigated = False
    for attempt in range(1, attempts + 1):
        try:
            if navigated:
                await driver.reload(wait_until=wait_until, timeout_ms=navigation_timeout_ms)
            else:
                await driver.navigate(url, wait_until=wait_until, timeout_ms=navigation_timeout_ms)
                navigated = True
        except PlaywrightError as e:
            logger.warning("[RETRY] %s navigation failed (attempt %d/%d): %s",
                           url, attempt, attempts, e)
            navigated = False
            continue

        if await driver.wait_for_selector(ready_selector, render_timeout_ms) is not None:
            return True
        logger.warning("[RETRY] %s did not render in %d ms (attempt %d/%d)",
                       url, render_timeout_ms, attempt, attempts)

    logger.error("[FAIL] %s could not be loaded after %d attempts", url, attempts)
    return False


async def login(driver, adapter: SiteAdapter, credentials: Credentials | None, settings: Settings) -> None:
    """
    Establishes the session. A restored storage state that already shows the
    logged-in marker skips the form; otherwise credentials are typed in and
    we wait long enough for a human to get through a captcha.
    Raises LoginError when no session could be established.
    """
    logger.info("Loading main page...")
    try:
        await driver.navigate(adapter.base_url, wait_until="domcontentloaded",
                              timeout_ms=settings.navigation_timeout_ms)
    except PlaywrightError as e:
        raise LoginError(f"could not open {adapter.base_url}: {e}") from e

    if await driver.wait_for_selector(adapter.LOGGED_IN, settings.render_timeout_ms) is not None:
        logger.info("Session restored, already logged in.")
        return

    if credentials is None:
        raise LoginError("saved session is not logged in and no credentials were given")

    if await driver.wait_for_selector(adapter.LOGIN_FORM, settings.render_timeout_ms) is None:
        raise LoginError("login form did not render")

    logger.info("Logging in as %s...", credentials.username)
    try:
        await driver.type(adapter.LOGIN_USERNAME, credentials.username)
        await driver.type(adapter.LOGIN_PASSWORD, credentials.password)
        await driver.click(adapter.LOGIN_SUBMIT)
    except PlaywrightError as e:
        raise LoginError(f"could not submit the login form: {e}") from e

    logger.info("Waiting for reCAPTCHA...")
    if await driver.wait_for_selector(adapter.LOGGED_IN, settings.login_timeout_ms) is None:
        raise LoginError(f"not logged in after {settings.login_timeout_ms // 1000} s")

    logger.info("Logged in.")
