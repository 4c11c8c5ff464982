"""Extraction providers and the fallback chain."""
from pricing_import.services.extraction.base import ExtractionProvider
from pricing_import.services.extraction.browser import (
    BrowserExtractionProvider,
    browser_page,
    dismiss_cookie_banner,
)
from pricing_import.services.extraction.chain import ExtractionChain
from pricing_import.services.extraction.hosted import HostedExtractionProvider
from pricing_import.services.extraction.static_html import StaticHtmlProvider

__all__ = [
    "ExtractionProvider",
    "BrowserExtractionProvider",
    "browser_page",
    "dismiss_cookie_banner",
    "ExtractionChain",
    "HostedExtractionProvider",
    "StaticHtmlProvider",
]
