"""Unit tests for extraction providers and the fallback chain.

HTTP providers run against httpx.MockTransport; the browser helpers get a
small fake page object instead of a real Chromium.
"""
import json

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from pricing_import.config import Settings
from pricing_import.errors.exceptions import (
    BrowserExtractionError,
    ExtractionError,
    HostedExtractionError,
    StaticHtmlExtractionError,
)
from pricing_import.models.results import ExtractionResult
from pricing_import.services.extraction.base import ExtractionProvider, normalize_items
from pricing_import.services.extraction.browser import dismiss_cookie_banner, read_container_items
from pricing_import.services.extraction.chain import ExtractionChain
from pricing_import.services.extraction.hosted import (
    HostedExtractionProvider,
    build_scrape_request,
    pick_hosted_items,
)
from pricing_import.services.extraction.static_html import (
    SimpleSelector,
    StaticHtmlProvider,
    extract_list_items,
    strip_tags,
)

PAGE_URL = "https://supplier.example.com/flyers"

PRICE_PAGE = """
<html>
  <head><style>li { color: red; }</style></head>
  <body>
    <ul class="nav"><li>Home</li></ul>
    <ul class="prices big" id="price-list">
      <li>100 stk &ndash; <b>10,00&nbsp;€</b></li>
      <li>   </li>
      <li>250 stk - 20,00 €<script>track()</script></li>
    </ul>
  </body>
</html>
"""


def test_normalize_items():
    assert normalize_items([" a ", "", None, 3]) == ["a", "3"]
    assert normalize_items("not a list") == []


class TestHostedExtractionProvider:
    """Tests for the hosted scrape API provider."""

    def _provider(self, handler, api_key="secret") -> HostedExtractionProvider:
        settings = Settings(firecrawl_api_key=api_key, firecrawl_api_base="https://api.test/v1/")
        return HostedExtractionProvider(settings, transport=httpx.MockTransport(handler))

    def test_build_scrape_request(self):
        body = build_scrape_request(PAGE_URL, "ul.prices")

        assert body["url"] == PAGE_URL
        assert body["onlyMainContent"] is False
        assert body["formats"][0]["type"] == "json"
        assert '"ul.prices"' in body["formats"][0]["prompt"]

    @pytest.mark.parametrize("payload", [
        {"data": {"json": {"items": ["a"]}}},
        {"json": {"items": ["a"]}},
        {"data": {"items": ["a"]}},
        {"items": ["a"]},
        {"data": {"extract": {"items": ["a"]}}},
        {"extract": {"items": ["a"]}},
        {"data": {"json": {"items": []}}, "items": ["a"]},
    ])
    def test_pick_hosted_items(self, payload):
        assert pick_hosted_items(payload) == ["a"]

    @pytest.mark.asyncio
    async def test_extracts_items(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"data": {"json": {"items": [" 100 stk 10 € ", ""]}}})

        result = await self._provider(handler).extract(PAGE_URL, "ul.prices")

        assert result.provider == "firecrawl"
        assert result.items == ["100 stk 10 €"]
        assert str(requests[0].url) == "https://api.test/v1/scrape"
        assert requests[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(requests[0].content)["url"] == PAGE_URL

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(HostedExtractionError) as exc_info:
            await self._provider(handler, api_key=None).extract(PAGE_URL, "ul.prices")

        assert "FIRECRAWL_API_KEY" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, text="payment required")

        with pytest.raises(HostedExtractionError) as exc_info:
            await self._provider(handler).extract(PAGE_URL, "ul.prices")

        assert exc_info.value.details["status_code"] == 402

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(HostedExtractionError):
            await self._provider(handler).extract(PAGE_URL, "ul.prices")

    @pytest.mark.asyncio
    async def test_no_items(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"json": {"items": []}}})

        with pytest.raises(HostedExtractionError):
            await self._provider(handler).extract(PAGE_URL, "ul.prices")


class TestStaticHtml:
    """Tests for the static HTML fallback."""

    @pytest.mark.parametrize("selector,expected", [
        ("ul", SimpleSelector(tag="ul")),
        ("#price-list", SimpleSelector(element_id="price-list")),
        (".prices", SimpleSelector(class_name="prices")),
        ("UL.prices", SimpleSelector(tag="ul", class_name="prices")),
        ("ul#price-list", SimpleSelector(tag="ul", element_id="price-list")),
    ])
    def test_parse_selector(self, selector, expected):
        assert SimpleSelector.parse(selector) == expected

    @pytest.mark.parametrize("selector", ["ul > li", "div ul", "[data-x]", ""])
    def test_rejects_unsupported_selector(self, selector):
        with pytest.raises(StaticHtmlExtractionError):
            SimpleSelector.parse(selector)

    def test_strip_tags(self):
        assert strip_tags("<b>10,00&nbsp;€</b><script>x()</script>\n stk") == "10,00 € stk"

    @pytest.mark.parametrize("selector", ["ul.prices", "#price-list", ".big"])
    def test_extracts_items_of_matching_container(self, selector):
        items = extract_list_items(PRICE_PAGE, selector)

        assert items == ["100 stk – 10,00 €", "250 stk - 20,00 €"]

    @pytest.mark.parametrize("selector,markup", [
        ("ul.prices", '<ul data-class="nav" class="prices"><li>100 stk 10,00 €</li></ul>'),
        ("#prices", '<ul data-id="nav" id="prices"><li>100 stk 10,00 €</li></ul>'),
    ])
    def test_ignores_data_attributes_with_similar_names(self, selector, markup):
        assert extract_list_items(markup, selector) == ["100 stk 10,00 €"]

    def test_first_matching_container_wins(self):
        assert extract_list_items(PRICE_PAGE, "ul") == ["Home"]

    def test_no_matching_container(self):
        with pytest.raises(StaticHtmlExtractionError) as exc_info:
            extract_list_items(PRICE_PAGE, "ol")

        assert "no element matched" in exc_info.value.message

    def test_container_without_items(self):
        with pytest.raises(StaticHtmlExtractionError):
            extract_list_items("<div class='prices'><p>Ring</p></div>", ".prices")

    @pytest.mark.asyncio
    async def test_provider_fetches_page(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["User-Agent"] == "test-agent"
            return httpx.Response(200, text=PRICE_PAGE)

        provider = StaticHtmlProvider(
            Settings(user_agent="test-agent"),
            transport=httpx.MockTransport(handler),
        )
        result = await provider.extract(PAGE_URL, "ul.prices")

        assert result.provider == "static-html"
        assert len(result.items) == 2
        assert result.payload == {"selector": "ul.prices", "itemCount": 2}

    @pytest.mark.asyncio
    async def test_provider_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        provider = StaticHtmlProvider(Settings(), transport=httpx.MockTransport(handler))

        with pytest.raises(StaticHtmlExtractionError):
            await provider.extract(PAGE_URL, "ul.prices")


class FakeLocator:
    def __init__(self, error=None):
        self.error = error
        self.clicks = []

    @property
    def first(self):
        return self

    async def click(self, timeout=None):
        self.clicks.append(timeout)
        if self.error:
            raise self.error


class FakePage:
    def __init__(self, evaluate_result=None, locator=None):
        self.evaluate_result = evaluate_result
        self._locator = locator or FakeLocator()

    async def evaluate(self, script, arg=None):
        return self.evaluate_result

    def locator(self, selector):
        return self._locator


class TestBrowserHelpers:
    """Tests for the Playwright page helpers."""

    @pytest.mark.asyncio
    async def test_read_container_items(self):
        page = FakePage({"hasPassword": False, "items": [" a ", "", "b"], "error": None})

        result = await read_container_items(page, "ul.prices")

        assert result["items"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_login_wall(self):
        page = FakePage({"hasPassword": True, "items": ["a"], "error": None})

        with pytest.raises(BrowserExtractionError) as exc_info:
            await read_container_items(page, "ul.prices")

        assert "login" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_container_reports_page_error(self):
        page = FakePage({"hasPassword": False, "items": [], "error": "No element found for selector: ul"})

        with pytest.raises(BrowserExtractionError) as exc_info:
            await read_container_items(page, "ul")

        assert exc_info.value.message == "No element found for selector: ul"

    @pytest.mark.asyncio
    async def test_unexpected_script_result(self):
        with pytest.raises(BrowserExtractionError):
            await read_container_items(FakePage(None), "ul")

    @pytest.mark.asyncio
    async def test_dismiss_cookie_banner(self):
        locator = FakeLocator()

        assert await dismiss_cookie_banner(FakePage(locator=locator), timeout_ms=10) is True
        assert locator.clicks == [10]

    @pytest.mark.asyncio
    async def test_cookie_banner_absent(self):
        locator = FakeLocator(error=PlaywrightError("Timeout 10ms exceeded."))

        assert await dismiss_cookie_banner(FakePage(locator=locator), timeout_ms=10) is False


class FakeProvider(ExtractionProvider):
    def __init__(self, name, items=None, error=None):
        self.name = name
        self.items = items
        self.error = error
        self.calls = 0

    async def extract(self, url, selector):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ExtractionResult(provider=self.name, items=self.items)


class TestExtractionChain:
    """Tests for ExtractionChain fallback order."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        first = FakeProvider("firecrawl", items=["a"])
        second = FakeProvider("playwright", items=["b"])

        result = await ExtractionChain([first, second]).extract(PAGE_URL, "ul")

        assert result.provider == "firecrawl"
        assert result.fallback_errors == {}
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_and_records_errors(self):
        providers = [
            FakeProvider("firecrawl", error=HostedExtractionError("FIRECRAWL_API_KEY not configured")),
            FakeProvider("playwright", error=BrowserExtractionError("timeout")),
            FakeProvider("static-html", items=["100 stk 10 €"]),
        ]

        result = await ExtractionChain(providers).extract(PAGE_URL, "ul")

        assert result.provider == "static-html"
        assert result.fallback_errors == {
            "firecrawl": "FIRECRAWL_API_KEY not configured",
            "playwright": "timeout",
        }
        assert [provider.calls for provider in providers] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_all_failing_raises_extraction_error(self):
        providers = [
            FakeProvider("firecrawl", error=HostedExtractionError("no key")),
            FakeProvider("static-html", error=StaticHtmlExtractionError("no match")),
        ]

        with pytest.raises(ExtractionError) as exc_info:
            await ExtractionChain(providers).extract(PAGE_URL, "ul")

        assert exc_info.value.details["errors"] == {"firecrawl": "no key", "static-html": "no match"}
        assert "firecrawl: no key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        providers = [
            FakeProvider("firecrawl", error=RuntimeError("bug")),
            FakeProvider("static-html", items=["a"]),
        ]

        with pytest.raises(RuntimeError):
            await ExtractionChain(providers).extract(PAGE_URL, "ul")

    def test_requires_a_provider(self):
        with pytest.raises(ValueError):
            ExtractionChain([])

    def test_default_order(self):
        chain = ExtractionChain.default(Settings())

        assert [provider.name for provider in chain.providers] == [
            "firecrawl",
            "playwright",
            "static-html",
        ]
