"""Hosted extraction provider (Firecrawl-style scrape API)."""
from typing import Any, Dict, Optional

import httpx
import structlog

from pricing_import.config import Settings, get_settings
from pricing_import.errors.exceptions import HostedExtractionError
from pricing_import.models.results import ExtractionResult
from pricing_import.services.extraction.base import ExtractionProvider, first_non_empty

logger = structlog.get_logger(__name__)

ITEMS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {"type": "string"},
        },
    },
    "required": ["items"],
    "additionalProperties": False,
}


def build_scrape_request(url: str, selector: str) -> Dict[str, Any]:
    """Build the scrape request body asking for the list item texts."""
    prompt = (
        f'Extract plain text from all <li> elements inside the element matching CSS selector '
        f'"{selector}". Return only text values in an items array.'
    )
    return {
        "url": url,
        "onlyMainContent": False,
        "formats": [
            {
                "type": "json",
                "prompt": prompt,
                "schema": ITEMS_SCHEMA,
            }
        ],
    }


def _dig(payload: Any, *path: str) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def pick_hosted_items(payload: Any) -> list[str]:
    """Pick items from the first non-empty known location in the response.

    The API has moved the structured result around between versions, so
    several paths are probed in order.
    """
    return first_non_empty(
        [
            _dig(payload, "data", "json", "items"),
            _dig(payload, "json", "items"),
            _dig(payload, "data", "items"),
            _dig(payload, "items"),
            _dig(payload, "data", "extract", "items"),
            _dig(payload, "extract", "items"),
        ]
    )


class HostedExtractionProvider(ExtractionProvider):
    """Asks the hosted scrape API to extract the item texts.

    Requests are not retried; any failure hands over to the next provider.
    """

    name = "firecrawl"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize provider.

        Args:
            settings: Application settings (defaults to cached settings)
            transport: Optional httpx transport, used by tests
        """
        settings = settings or get_settings()
        self.api_key = settings.firecrawl_api_key
        self.base_url = settings.firecrawl_api_base.rstrip("/")
        self.timeout = settings.hosted_extraction_timeout
        self._transport = transport
        self._log = logger.bind(provider=self.name, base_url=self.base_url)

    async def extract(self, url: str, selector: str) -> ExtractionResult:
        if not self.api_key:
            raise HostedExtractionError("FIRECRAWL_API_KEY not configured")

        body = build_scrape_request(url, selector)
        self._log.info("hosted_extraction_started", url=url, selector=selector)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            ) as client:
                response = await client.post("/scrape", json=body)
        except httpx.HTTPError as e:
            raise HostedExtractionError(
                f"hosted extraction request failed: {e}", details={"url": url}
            ) from e

        if response.is_error:
            raise HostedExtractionError(
                f"hosted extraction HTTP {response.status_code}: {response.text[:500]}",
                details={"url": url, "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise HostedExtractionError(
                "hosted extraction returned invalid JSON", details={"url": url}
            ) from e

        items = pick_hosted_items(payload)
        if not items:
            raise HostedExtractionError(
                "hosted extraction returned no item texts for selector",
                details={"url": url, "selector": selector},
            )

        self._log.info("hosted_extraction_succeeded", url=url, items=len(items))
        return ExtractionResult(
            provider=self.name,
            items=items,
            payload=payload if isinstance(payload, dict) else {"response": payload},
        )
