"""Headless browser extraction provider and shared Playwright helpers."""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from pricing_import.config import Settings, get_settings
from pricing_import.errors.exceptions import BrowserExtractionError
from pricing_import.models.results import ExtractionResult
from pricing_import.services.extraction.base import ExtractionProvider, normalize_items

logger = structlog.get_logger(__name__)

DEFAULT_COOKIE_SELECTOR = "button:has-text('Alle akzeptieren'), #onetrust-accept-btn-handler"
COOKIE_CLICK_TIMEOUT_MS = 4_000

# Runs in the page. Falls back to direct children when the container has no <li>.
READ_ITEMS_SCRIPT = """
(selector) => {
  const hasPassword = Boolean(document.querySelector('input[type="password"]'));
  const container = document.querySelector(selector);
  if (!container) {
    return { hasPassword, items: [], error: `No element found for selector: ${selector}` };
  }
  let nodes = Array.from(container.querySelectorAll("li"));
  if (nodes.length === 0) {
    nodes = Array.from(container.children);
  }
  const items = nodes
    .map((el) => (el.textContent || "").replace(/\\s+/g, " ").trim())
    .filter((text) => text.length > 0);
  return { hasPassword, items, error: null };
}
"""


@asynccontextmanager
async def browser_page(
    user_agent: Optional[str] = None,
    headless: bool = True,
) -> AsyncIterator[Page]:
    """Launch headless Chromium and yield a fresh page; the browser is always closed."""
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless)
        try:
            context = await browser.new_context(user_agent=user_agent)
            yield await context.new_page()
        finally:
            await browser.close()


async def dismiss_cookie_banner(
    page: Page,
    selector: str = DEFAULT_COOKIE_SELECTOR,
    timeout_ms: int = COOKIE_CLICK_TIMEOUT_MS,
) -> bool:
    """Click the cookie-consent button if one shows up.

    Returns:
        True if a button was clicked, False if none appeared in time
    """
    try:
        await page.locator(selector).first.click(timeout=timeout_ms)
    except PlaywrightError as e:
        logger.debug("cookie_banner_not_dismissed", reason=str(e).splitlines()[0] if str(e) else "")
        return False
    return True


async def read_container_items(page: Page, selector: str) -> Dict[str, Any]:
    """Read the item texts under ``selector`` on an already loaded page.

    Returns:
        Raw evaluation result with ``hasPassword``, ``items`` and ``error``

    Raises:
        BrowserExtractionError: On a login wall or when no items were found
    """
    result = await page.evaluate(READ_ITEMS_SCRIPT, selector)
    if not isinstance(result, dict):
        raise BrowserExtractionError("unexpected result from page script", details={"selector": selector})

    if result.get("hasPassword"):
        raise BrowserExtractionError(
            "page appears to require login; credentials are not supported",
            details={"selector": selector},
        )

    items = normalize_items(result.get("items"))
    if not items:
        raise BrowserExtractionError(
            result.get("error") or "no item texts found under selector",
            details={"selector": selector},
        )
    result["items"] = items
    return result


class BrowserExtractionProvider(ExtractionProvider):
    """Renders the page in headless Chromium and reads the item texts from the DOM."""

    name = "playwright"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cookie_selector: str = DEFAULT_COOKIE_SELECTOR,
    ):
        settings = settings or get_settings()
        self.navigation_timeout_ms = settings.browser_navigation_timeout_ms
        self.user_agent = settings.user_agent
        self.cookie_selector = cookie_selector
        self._log = logger.bind(provider=self.name)

    async def extract(self, url: str, selector: str) -> ExtractionResult:
        self._log.info("browser_extraction_started", url=url, selector=selector)
        try:
            async with browser_page(user_agent=self.user_agent) as page:
                await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                await dismiss_cookie_banner(page, self.cookie_selector)
                result = await read_container_items(page, selector)
        except PlaywrightError as e:
            raise BrowserExtractionError(
                f"browser extraction failed: {e}", details={"url": url}
            ) from e

        items = result["items"]
        self._log.info("browser_extraction_succeeded", url=url, items=len(items))
        return ExtractionResult(provider=self.name, items=items, payload=result)
