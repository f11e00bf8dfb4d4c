"""Web page and sitemap loaders for ingestion.

Pages are fetched with httpx, reduced to visible text with BeautifulSoup,
whitespace-normalized, and tagged with their source URL and a title.
"""
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse, unquote

import httpx
import structlog
from bs4 import BeautifulSoup

from campusbot import config
from campusbot.errors import PageLoadError

logger = structlog.get_logger()

# Tags whose contents never reach the reader
REMOVE_TAGS = ["script", "style", "noscript", "template", "svg"]

_WHITESPACE = re.compile(r"\s+")


@dataclass
class LoadedPage:
    """Normalized text of one page plus provenance."""

    url: str
    title: str
    text: str


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def title_from_url(url: str, fallback: Optional[str] = None) -> str:
    """Derive a page title from the last non-empty URL path segment."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if segments:
        return unquote(segments[-1])
    return fallback or config.DEFAULT_PAGE_TITLE


def extract_text(html: str) -> tuple[str, Optional[str]]:
    """Extract visible text and the <title> from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")

    html_title = None
    if soup.title and soup.title.string:
        html_title = normalize_whitespace(soup.title.string) or None

    for tag in soup(REMOVE_TAGS):
        tag.decompose()

    text = normalize_whitespace(soup.get_text(separator=" "))
    return text, html_title


def _loc(entry) -> str:
    loc = entry.find("loc")
    return loc.get_text(strip=True) if loc is not None else ""


def parse_sitemap(xml: str) -> tuple[List[str], List[str]]:
    """Parse a sitemap document.

    Returns:
        Tuple of (page URLs, nested sitemap URLs). Only sitemap indexes
        carry nested sitemaps.
    """
    soup = BeautifulSoup(xml, "xml")

    if soup.find("sitemapindex") is not None:
        nested = [_loc(entry) for entry in soup.find_all("sitemap")]
        return [], [u for u in nested if u]

    pages = [_loc(entry) for entry in soup.find_all("url")]
    return [u for u in pages if u], []


class WebPageLoader:
    """Fetches single pages over HTTP."""

    def __init__(
        self,
        timeout: float = None,
        user_agent: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or config.LOADER_TIMEOUT
        self.user_agent = user_agent or config.LOADER_USER_AGENT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    async def fetch(self, url: str) -> str:
        """Fetch a URL and return its body.

        Raises:
            PageLoadError: On transport errors or non-2xx responses
        """
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise PageLoadError(url, str(e) or type(e).__name__) from e

    async def load(self, url: str) -> LoadedPage:
        """Fetch a page and reduce it to normalized text.

        Raises:
            PageLoadError: If the page can't be fetched or has no text
        """
        html = await self.fetch(url)
        text, html_title = extract_text(html)

        if not text:
            raise PageLoadError(url, "no text content")

        page = LoadedPage(url=url, title=title_from_url(url, fallback=html_title), text=text)

        logger.info("page_loaded", url=url, title=page.title, content_length=len(text))
        return page


class SitemapLoader:
    """Resolves a sitemap to the page URLs it lists, following sitemap indexes."""

    def __init__(
        self,
        page_loader: WebPageLoader = None,
        max_depth: int = 3,
    ):
        self.page_loader = page_loader or WebPageLoader()
        self.max_depth = max_depth

    async def discover_urls(self, sitemap_url: str, _depth: int = 0) -> List[str]:
        """Resolve a sitemap (or sitemap index) to page URLs, deduplicated in order.

        Raises:
            PageLoadError: If the top-level sitemap can't be fetched
        """
        xml = await self.page_loader.fetch(sitemap_url)
        pages, nested = parse_sitemap(xml)

        if nested and _depth < self.max_depth:
            for child in nested:
                try:
                    pages.extend(await self.discover_urls(child, _depth + 1))
                except PageLoadError as e:
                    # A broken child sitemap never aborts the parent
                    logger.error("sitemap_load_failed", url=child, error=e.reason)

        seen = set()
        unique = []
        for url in pages:
            if url not in seen:
                seen.add(url)
                unique.append(url)

        logger.info("sitemap_parsed", url=sitemap_url, page_count=len(unique), depth=_depth)
        return unique
