"""Static HTML extraction provider: plain GET plus regex container lookup.

Only a minimal selector grammar is understood: ``tag``, ``#id``, ``.class``,
``tag#id`` and ``tag.class``. Bare ``#id`` and ``.class`` match any tag.
"""
import html
import re
from dataclasses import dataclass
from typing import Iterator, Optional

import httpx
import structlog

from pricing_import.config import Settings, get_settings
from pricing_import.errors.exceptions import StaticHtmlExtractionError
from pricing_import.models.results import ExtractionResult
from pricing_import.services.extraction.base import ExtractionProvider

logger = structlog.get_logger(__name__)

_SELECTOR = re.compile(
    r"^(?P<tag>[a-zA-Z][a-zA-Z0-9]*)?(?:(?P<kind>[#.])(?P<name>[a-zA-Z0-9_-]+))?$"
)
_OPEN_TAG = re.compile(r"<(?P<tag>[a-zA-Z][a-zA-Z0-9]*)\b(?P<attrs>[^>]*)>")
_LIST_ITEM = re.compile(r"<li\b[^>]*>([\s\S]*?)</li>", re.IGNORECASE)
_SCRIPT = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SimpleSelector:
    """A parsed ``tag``, ``#id``, ``.class``, ``tag#id`` or ``tag.class`` selector."""

    tag: Optional[str] = None
    element_id: Optional[str] = None
    class_name: Optional[str] = None

    @classmethod
    def parse(cls, selector: str) -> "SimpleSelector":
        """Parse a selector string.

        Raises:
            StaticHtmlExtractionError: If the selector is outside the grammar
        """
        match = _SELECTOR.match(selector.strip())
        if not match or not (match.group("tag") or match.group("name")):
            raise StaticHtmlExtractionError(
                f"selector not supported by static HTML extraction: {selector!r}",
                details={"selector": selector},
            )
        tag = match.group("tag").lower() if match.group("tag") else None
        kind, name = match.group("kind"), match.group("name")
        return cls(
            tag=tag,
            element_id=name if kind == "#" else None,
            class_name=name if kind == "." else None,
        )

    def matches(self, tag: str, attrs: str) -> bool:
        if self.tag and tag.lower() != self.tag:
            return False
        if self.element_id is not None and _attribute(attrs, "id") != self.element_id:
            return False
        if self.class_name is not None and self.class_name not in _attribute(attrs, "class").split():
            return False
        return True


def _attribute(attrs: str, name: str) -> str:
    match = re.search(rf"(?<![\w-]){name}\s*=\s*[\"']([^\"']*)[\"']", attrs, re.IGNORECASE)
    return match.group(1) if match else ""


def strip_tags(fragment: str) -> str:
    """Drop scripts, styles and tags, decode entities and collapse whitespace."""
    text = _SCRIPT.sub(" ", fragment)
    text = _STYLE.sub(" ", text)
    text = _TAG.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def _containers(document: str, selector: SimpleSelector) -> Iterator[str]:
    for match in _OPEN_TAG.finditer(document):
        tag = match.group("tag")
        if not selector.matches(tag, match.group("attrs")):
            continue
        close = re.compile(rf"</{re.escape(tag)}\s*>", re.IGNORECASE).search(document, match.end())
        if close is None:
            continue
        yield document[match.end():close.start()]


def extract_list_items(document: str, selector: str) -> list[str]:
    """Return the ``li`` texts of the first container matching ``selector``.

    Nested containers of the same tag are not balanced; the container ends
    at the first closing tag.

    Raises:
        StaticHtmlExtractionError: If no container matches or it has no items
    """
    body = next(_containers(document, SimpleSelector.parse(selector)), None)
    if body is None:
        raise StaticHtmlExtractionError(
            f"no element matched selector: {selector}", details={"selector": selector}
        )

    items = [text for text in (strip_tags(m.group(1)) for m in _LIST_ITEM.finditer(body)) if text]
    if not items:
        raise StaticHtmlExtractionError(
            "matched element has no <li> items", details={"selector": selector}
        )
    return items


class StaticHtmlProvider(ExtractionProvider):
    """Fetches raw HTML without running scripts; last resort of the chain."""

    name = "static-html"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.timeout = settings.static_fetch_timeout
        self.user_agent = settings.user_agent
        self._transport = transport
        self._log = logger.bind(provider=self.name)

    async def extract(self, url: str, selector: str) -> ExtractionResult:
        self._log.info("static_extraction_started", url=url, selector=selector)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise StaticHtmlExtractionError(
                f"static fetch failed: {e}", details={"url": url}
            ) from e

        if response.is_error:
            raise StaticHtmlExtractionError(
                f"static fetch HTTP {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        items = extract_list_items(response.text, selector)
        self._log.info("static_extraction_succeeded", url=url, items=len(items))
        return ExtractionResult(
            provider=self.name,
            items=items,
            payload={"selector": selector, "itemCount": len(items)},
        )
