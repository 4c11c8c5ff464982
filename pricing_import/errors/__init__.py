"""Error handling module."""
from pricing_import.errors.exceptions import (
    PricingImportError,
    InvalidConfiguration,
    ExtractionError,
    ProviderError,
    HostedExtractionError,
    BrowserExtractionError,
    StaticHtmlExtractionError,
    TargetedScrapeError,
    ParsingError,
    ReconciliationError,
)

__all__ = [
    "PricingImportError",
    "InvalidConfiguration",
    "ExtractionError",
    "ProviderError",
    "HostedExtractionError",
    "BrowserExtractionError",
    "StaticHtmlExtractionError",
    "TargetedScrapeError",
    "ParsingError",
    "ReconciliationError",
]
