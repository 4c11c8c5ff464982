"""Targeted scraper for dropdown-driven price pages.

The page offers a material ``<select>``; choosing a material repopulates a
quantity ``<select>`` whose options read like ``"1.000 Stück (123,45 €)"``.
The scraper walks the mapped materials of every source page and keeps the
target quantities only.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from pricing_import.config import Settings, get_settings
from pricing_import.errors.exceptions import TargetedScrapeError
from pricing_import.models.blueprint import DropdownMatrixImport, DropdownSource, MaterialMapping
from pricing_import.models.rows import SourceRow
from pricing_import.services.extraction.browser import (
    DEFAULT_COOKIE_SELECTOR,
    browser_page,
    dismiss_cookie_banner,
)
from pricing_import.services.pricing.mapping import find_material_mapping
from pricing_import.services.pricing.number_parser import (
    normalize_label,
    parse_quantity_price_text,
)
from pricing_import.services.scraping.retry import RetryPolicy

logger = structlog.get_logger(__name__)

QUANTITY_MODE_SETTLE_MS = 400

_PLACEHOLDER = re.compile(r"^bitte", re.IGNORECASE)

_READ_OPTIONS_SCRIPT = """
(nodes) => nodes.map((node) => ({
  value: node.getAttribute("value") || "",
  label: (node.textContent || "").trim(),
}))
"""

_READ_OPTION_TEXTS_SCRIPT = """
(nodes) => Array.from(new Set(nodes.map((node) => (node.textContent || "").trim()).filter(Boolean)))
"""

_CHECK_CONTROL_SCRIPT = """
(selector) => {
  const control = document.querySelector(selector);
  if (!control) return false;
  if (!control.checked) {
    control.click();
    control.dispatchEvent(new Event("change", { bubbles: true }));
  }
  return true;
}
"""


@dataclass(frozen=True)
class MaterialOption:
    value: str
    label: str


@dataclass
class SourceScrapeResult:
    """Rows scraped from one source page."""

    source_url: str
    modifier_labels: Dict[str, str]
    rows: List[SourceRow] = field(default_factory=list)
    material_labels: List[str] = field(default_factory=list)
    missing_quantities: Dict[str, List[int]] = field(default_factory=dict)


@dataclass
class MatrixScrapeResult:
    """Rows of all source pages, in source order."""

    sources: List[SourceScrapeResult] = field(default_factory=list)

    @property
    def rows(self) -> List[SourceRow]:
        return [row for source in self.sources for row in source.rows]

    @property
    def missing_quantities(self) -> Dict[str, List[int]]:
        """Missing target quantities keyed by material label and source modifiers."""
        missing: Dict[str, List[int]] = {}
        for source in self.sources:
            suffix = ", ".join(f"{k}={v}" for k, v in sorted(source.modifier_labels.items()))
            for label, quantities in source.missing_quantities.items():
                key = f"{label} [{suffix}]" if suffix else label
                missing[key] = quantities
        return missing


class DropdownMatrixScraper:
    """Drives the material and quantity dropdowns of one browser page.

    Every racing page interaction goes through the retry policy; sources are
    scraped one after another on the same page.
    """

    def __init__(
        self,
        page: Page,
        config: DropdownMatrixImport,
        retry_policy: Optional[RetryPolicy] = None,
        navigation_timeout_ms: int = 60_000,
        cookie_selector: str = DEFAULT_COOKIE_SELECTOR,
    ):
        self.page = page
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.cookie_selector = cookie_selector
        self._targets = set(config.target_quantities)
        self._log = logger.bind(scraper="dropdown_matrix")

    async def open(self, url: str) -> None:
        """Navigate, accept cookies and switch to the standard quantity mode if configured."""
        await self.page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        await dismiss_cookie_banner(self.page, self.cookie_selector)

        if self.config.quantity_mode_selector:
            found = await self.page.evaluate(_CHECK_CONTROL_SCRIPT, self.config.quantity_mode_selector)
            if not found:
                self._log.warning(
                    "quantity_mode_control_missing", selector=self.config.quantity_mode_selector
                )
            await self.page.wait_for_timeout(QUANTITY_MODE_SETTLE_MS)

    async def list_material_options(self) -> List[MaterialOption]:
        """Read the material options, skipping empty values and "Bitte..." placeholders."""
        selector = f"{self.config.material_select_selector} option"
        raw = await self.retry_policy.run(
            lambda: self.page.eval_on_selector_all(selector, _READ_OPTIONS_SCRIPT)
        )

        options = []
        for item in raw or []:
            value = str(item.get("value") or "")
            label = normalize_label(item.get("label"))
            if not value or not label or _PLACEHOLDER.match(label):
                continue
            options.append(MaterialOption(value=value, label=label))
        return options

    async def select_material(self, option: MaterialOption) -> None:
        async def select_and_settle() -> None:
            await self.page.select_option(self.config.material_select_selector, option.value)
            await self.page.wait_for_timeout(self.config.settle_delay_ms)

        await self.retry_policy.run(select_and_settle)

    async def read_quantity_option_texts(self) -> List[str]:
        texts = await self.retry_policy.run(
            lambda: self.page.eval_on_selector_all(
                self.config.quantity_option_selector, _READ_OPTION_TEXTS_SCRIPT
            )
        )
        return [str(text) for text in texts or []]

    def resolve_options(
        self,
        options: List[MaterialOption],
    ) -> List[Tuple[MaterialMapping, MaterialOption]]:
        """Pair every material mapping with the first page option it matches.

        Raises:
            TargetedScrapeError: If any mapping has no matching option
        """
        resolved = []
        missing = []
        for mapping in self.config.materials:
            option = next(
                (opt for opt in options if find_material_mapping(opt.label, [mapping]) is not None),
                None,
            )
            if option is None:
                missing.append(mapping.source_label)
            else:
                resolved.append((mapping, option))

        if missing:
            raise TargetedScrapeError(
                f"material options not found on page: {', '.join(missing)}",
                details={
                    "missing": missing,
                    "available": [opt.label for opt in options],
                },
            )
        return resolved

    async def scrape_source(self, source: DropdownSource) -> SourceScrapeResult:
        """Scrape all mapped materials of one source page.

        Raises:
            TargetedScrapeError: If a mapped material is not offered by the page
        """
        log = self._log.bind(source_url=source.url, modifiers=source.modifiers)
        await self.open(source.url)
        pairs = self.resolve_options(await self.list_material_options())

        result = SourceScrapeResult(source_url=source.url, modifier_labels=dict(source.modifiers))
        seen_values: set[str] = set()

        for _, option in pairs:
            if option.value in seen_values:
                continue
            seen_values.add(option.value)

            await self.select_material(option)
            by_quantity: Dict[int, SourceRow] = {}
            for index, text in enumerate(await self.read_quantity_option_texts()):
                parsed = parse_quantity_price_text(text)
                if parsed is None or parsed.quantity not in self._targets:
                    continue
                by_quantity[parsed.quantity] = SourceRow(
                    source_material_label=option.label,
                    quantity=parsed.quantity,
                    unit_price=parsed.unit_price,
                    source_text=text,
                    source_index=index,
                    source_url=source.url,
                    modifier_labels=dict(source.modifiers),
                )

            missing = [q for q in self.config.target_quantities if q not in by_quantity]
            result.rows.extend(by_quantity[q] for q in sorted(by_quantity))
            result.material_labels.append(option.label)
            if missing:
                result.missing_quantities[option.label] = missing

            log.info(
                "material_scraped",
                material=option.label,
                found=len(by_quantity),
                targets=len(self.config.target_quantities),
                missing=missing or None,
            )

        return result

    async def scrape(self) -> MatrixScrapeResult:
        result = MatrixScrapeResult()
        for source in self.config.sources:
            result.sources.append(await self.scrape_source(source))
        return result


async def scrape_dropdown_matrix(
    config: DropdownMatrixImport,
    settings: Optional[Settings] = None,
) -> MatrixScrapeResult:
    """Open a headless browser and scrape every source of a dropdown-matrix import.

    Raises:
        TargetedScrapeError: If a material is missing or the browser fails
            after retries
    """
    settings = settings or get_settings()
    try:
        async with browser_page(user_agent=settings.user_agent) as page:
            scraper = DropdownMatrixScraper(
                page,
                config,
                retry_policy=RetryPolicy(max_attempts=settings.scrape_max_attempts),
                navigation_timeout_ms=settings.browser_navigation_timeout_ms,
            )
            return await scraper.scrape()
    except PlaywrightError as e:
        raise TargetedScrapeError(f"browser automation failed: {e}") from e
