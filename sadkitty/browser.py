from typing import Any, Optional

from playwright.async_api import async_playwright
# Import the asynchronous Playwright API.
# This allows us to launch and control the browser using async/await.
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    # Keeps navigator.webdriver from being set, the site refuses automated sessions.

    "--no-sandbox",
    # Required inside Docker, CI/CD pipelines, or restricted environments.

    "--disable-dev-shm-usage",
    # /dev/shm is tiny inside containers and Chromium crashes on long feeds.
]


UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/133.0.0.0 Safari/537.36"
)
# Real desktop Chrome UA. The same value is sent by the download client.


async def open_page(
    headless: bool = True,
    storage_state: str | None = None,
    user_agent: str = UA,
    viewport: dict | None = None,
):
    """
    Launches Playwright, opens a Chromium browser, creates a browser context,
    and finally opens a new page. Returns all four objects for later cleanup.

    Returns:
        pw: Playwright instance
        browser: Chromium browser object
        context: Browser context (cookies, localStorage, session)
        page: Actual browser tab for navigation and scraping
    """

    pw = await async_playwright().start()
    browser = await pw.chromium.launch(headless=headless, args=CHROME_ARGS)

    context = await browser.new_context(
        storage_state=storage_state if storage_state else None,
        # Saved cookies / localStorage from a previous --save-session run.

        user_agent=user_agent,

        viewport=viewport or {"width": 1366, "height": 900}
        # Below ~800px width the site switches to the mobile DOM and selectors break.
    )

    page = await context.new_page()
    return pw, browser, context, page


async def close_page(pw, browser, context):
    """
    Properly closes Playwright resources.
    This prevents memory leaks, zombie browser processes, and resource locks.
    """

    await context.close()
    await browser.close()
    await pw.stop()


class PlaywrightDriver:
    """
    Page-driver capability used by the extractor, the feed walker and the
    login flow. The crawl code never touches a Playwright Page directly, so
    tests can substitute a scripted fake with the same methods.
    """

    def __init__(self, page, default_timeout_ms: int = 30_000):
        self.page = page
        self.default_timeout_ms = default_timeout_ms

    async def navigate(self, url: str, wait_until: str = "domcontentloaded",
                       timeout_ms: Optional[int] = None) -> None:
        await self.page.goto(url, wait_until=wait_until,
                             timeout=timeout_ms or self.default_timeout_ms)

    async def reload(self, wait_until: str = "domcontentloaded",
                     timeout_ms: Optional[int] = None) -> None:
        await self.page.reload(wait_until=wait_until,
                               timeout=timeout_ms or self.default_timeout_ms)

    async def wait_for_selector(self, selector: str, timeout_ms: int,
                                state: str = "attached"):
        """Element handle, or None when nothing matched before the timeout."""
        try:
            return await self.page.wait_for_selector(selector, timeout=timeout_ms, state=state)
        except PlaywrightTimeoutError:
            return None

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        # Everything crossing into the page goes through `arg`; scripts never
        # close over Python-side state.
        return await self.page.evaluate(expression, arg)

    async def extract_attribute(self, selector: str, name: str) -> Optional[str]:
        el = await self.page.query_selector(selector)
        if el is None:
            return None
        return await el.get_attribute(name)

    async def inner_text(self, selector: str) -> Optional[str]:
        el = await self.page.query_selector(selector)
        if el is None:
            return None
        return await el.inner_text()

    async def click(self, selector: str, timeout_ms: int = 5_000) -> None:
        await self.page.click(selector, timeout=timeout_ms)

    async def type(self, selector: str, text: str, delay_ms: int = 10) -> None:
        await self.page.type(selector, text, delay=delay_ms)

    async def wait(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)
