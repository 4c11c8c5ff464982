"""Ordered fallback chain over extraction providers."""
from typing import Dict, Optional, Sequence

import structlog

from pricing_import.config import Settings, get_settings
from pricing_import.errors.exceptions import ExtractionError, ProviderError
from pricing_import.models.results import ExtractionResult
from pricing_import.services.extraction.base import ExtractionProvider
from pricing_import.services.extraction.browser import BrowserExtractionProvider
from pricing_import.services.extraction.hosted import HostedExtractionProvider
from pricing_import.services.extraction.static_html import StaticHtmlProvider

logger = structlog.get_logger(__name__)


class ExtractionChain:
    """Tries providers one after another until one yields items.

    Usage:
        chain = ExtractionChain.default()
        result = await chain.extract("https://example.com/prices", "ul.prices")
    """

    def __init__(self, providers: Sequence[ExtractionProvider]):
        if not providers:
            raise ValueError("extraction chain needs at least one provider")
        self.providers = list(providers)

    @classmethod
    def default(cls, settings: Optional[Settings] = None) -> "ExtractionChain":
        """Hosted API first, then headless browser, then static HTML."""
        settings = settings or get_settings()
        return cls(
            [
                HostedExtractionProvider(settings),
                BrowserExtractionProvider(settings),
                StaticHtmlProvider(settings),
            ]
        )

    async def extract(self, url: str, selector: str) -> ExtractionResult:
        """Run providers in order; each is tried at most once.

        Returns:
            Result of the first successful provider, with the failures of
            the providers tried before it in ``fallback_errors``

        Raises:
            ExtractionError: If every provider failed
        """
        failures: Dict[str, str] = {}
        log = logger.bind(url=url, selector=selector)

        for provider in self.providers:
            try:
                result = await provider.extract(url, selector)
            except ProviderError as e:
                failures[provider.name] = e.message
                log.warning("extraction_provider_failed", provider=provider.name, error=e.message)
                continue

            log.info(
                "extraction_succeeded",
                provider=result.provider,
                items=len(result.items),
                fallbacks=list(failures),
            )
            return result.model_copy(update={"fallback_errors": dict(failures)})

        summary = "; ".join(f"{name}: {message}" for name, message in failures.items())
        raise ExtractionError(
            f"all extraction providers failed ({summary})",
            details={"url": url, "selector": selector, "errors": failures},
        )
