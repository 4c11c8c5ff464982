"""Custom exception hierarchy for pricing import errors."""
from typing import Any, Dict, Optional


class PricingImportError(Exception):
    """Base exception for all pricing import errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize error with message and optional diagnostic details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidConfiguration(PricingImportError):
    """Raised when a descriptor, tier table or numeric setting is invalid.

    Always fatal and raised before any network activity.
    """
    pass


class ExtractionError(PricingImportError):
    """Raised when no text items could be extracted from a page."""
    pass


class ProviderError(ExtractionError):
    """Raised by a single extraction provider; the chain falls back on it."""

    provider = "unknown"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.details.setdefault("provider", self.provider)


class HostedExtractionError(ProviderError):
    """Raised when the hosted extraction API fails or is not configured."""

    provider = "firecrawl"


class BrowserExtractionError(ProviderError):
    """Raised when headless browser extraction fails."""

    provider = "playwright"


class StaticHtmlExtractionError(ProviderError):
    """Raised when static HTML extraction fails."""

    provider = "static-html"


class TargetedScrapeError(ExtractionError):
    """Raised when a dropdown-driven page does not offer the expected options."""
    pass


class ParsingError(PricingImportError):
    """Raised when zero rows survive parsing of the extracted items."""
    pass


class ReconciliationError(PricingImportError):
    """Raised when a catalog backend call fails during reconciliation."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.stage = stage
        if stage:
            self.details.setdefault("stage", stage)
