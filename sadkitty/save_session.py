import logging

from sadkitty.adapters.base import SiteAdapter
from sadkitty.browser import close_page, open_page
from sadkitty.config import Settings

logger = logging.getLogger(__name__)


async def save_session(path: str, adapter: SiteAdapter, settings: Settings, prompt=input) -> str:
    """
    Opens a visible browser for a manual login and saves the authentication
    state. Later runs pass the file as --storage-state and skip the form.
    """
    pw, browser, context, page = await open_page(
        headless=False,
        user_agent=settings.user_agent,
        viewport=settings.viewport,
    )
    try:
        logger.info("Navigating to %s...", adapter.base_url)
        await page.goto(adapter.base_url, wait_until="domcontentloaded")

        logger.info("[ACTION REQUIRED] Log in in the browser window, then come back here.")
        prompt("\nPress Enter here AFTER you have successfully logged in...")

        # Cookies, localStorage etc.
        await context.storage_state(path=path)
        logger.info("Session saved to %s", path)
        return path
    finally:
        await close_page(pw, browser, context)
