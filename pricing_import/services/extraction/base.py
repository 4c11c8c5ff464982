"""Abstract extraction provider interface."""
from abc import ABC, abstractmethod
from typing import Any, Iterable

from pricing_import.models.results import ExtractionResult


class ExtractionProvider(ABC):
    """Turns a page URL and a container selector into plain text items.

    Implementations must raise their own ``ProviderError`` subclass on any
    failure, including "page loaded but no items found", so the chain can
    fall back to the next provider.
    """

    name: str = "unknown"

    @abstractmethod
    async def extract(self, url: str, selector: str) -> ExtractionResult:
        """Extract text items from the container matching ``selector``.

        Args:
            url: Page URL
            selector: Selector of the element holding the items

        Returns:
            ExtractionResult with at least one item

        Raises:
            ProviderError: If this provider could not produce items
        """
        pass


def normalize_items(value: Any) -> list[str]:
    """Trim text items and drop empty ones; anything but a list yields []."""
    if not isinstance(value, list):
        return []
    return [text for text in (str(item or "").strip() for item in value) if text]


def first_non_empty(candidates: Iterable[Any]) -> list[str]:
    for candidate in candidates:
        items = normalize_items(candidate)
        if items:
            return items
    return []
