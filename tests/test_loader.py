"""Tests for page extraction and sitemap parsing."""
import httpx
import pytest

from campusbot.errors import PageLoadError
from campusbot.rag.loader import (
    SitemapLoader,
    WebPageLoader,
    extract_text,
    normalize_whitespace,
    parse_sitemap,
    title_from_url,
)

PAGE = """<html><head><title>Contact Us | MITS</title><style>body {color: red}</style></head>
<body>
  <h1>Contact   Us</h1>
  <script>var tracking = true;</script>
  <p>Varikoli P.O,\n\n   Puthencruz</p>
</body></html>"""

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://mgmits.ac.in/a/</loc><lastmod>2024-01-01</lastmod></url>
  <url><loc> https://mgmits.ac.in/b/ </loc></url>
</urlset>"""

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://mgmits.ac.in/post-sitemap1.xml</loc></sitemap>
  <sitemap><loc>https://mgmits.ac.in/broken-sitemap.xml</loc></sitemap>
</sitemapindex>"""


def site(routes: dict) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=body)

    return httpx.MockTransport(handler)


def test_normalize_whitespace():
    assert normalize_whitespace("  a\n\n b\t c  ") == "a b c"


def test_extract_text_drops_scripts_and_styles():
    text, title = extract_text(PAGE)
    assert text == "Contact Us | MITS Contact Us Varikoli P.O, Puthencruz"
    assert title == "Contact Us | MITS"
    assert "tracking" not in text
    assert "color" not in text


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://mgmits.ac.in/contact-us/", "contact-us"),
        ("https://mgmits.ac.in/b-tech-admissions-2021", "b-tech-admissions-2021"),
        ("https://mgmits.ac.in/", "fallback"),
    ],
)
def test_title_from_url(url, expected):
    assert title_from_url(url, fallback="fallback") == expected


def test_parse_urlset():
    pages, nested = parse_sitemap(URLSET)
    assert pages == ["https://mgmits.ac.in/a/", "https://mgmits.ac.in/b/"]
    assert nested == []


def test_parse_sitemap_index():
    pages, nested = parse_sitemap(SITEMAP_INDEX)
    assert pages == []
    assert nested == [
        "https://mgmits.ac.in/post-sitemap1.xml",
        "https://mgmits.ac.in/broken-sitemap.xml",
    ]


async def test_load_page_tags_source_and_title():
    loader = WebPageLoader(transport=site({"https://mgmits.ac.in/contact-us/": PAGE}))

    page = await loader.load("https://mgmits.ac.in/contact-us/")

    assert page.url == "https://mgmits.ac.in/contact-us/"
    assert page.title == "contact-us"
    assert "Puthencruz" in page.text


async def test_load_root_page_uses_html_title():
    loader = WebPageLoader(transport=site({"https://mgmits.ac.in/": PAGE}))
    page = await loader.load("https://mgmits.ac.in/")
    assert page.title == "Contact Us | MITS"


async def test_http_error_raises_page_load_error():
    loader = WebPageLoader(transport=site({}))
    with pytest.raises(PageLoadError) as excinfo:
        await loader.load("https://mgmits.ac.in/missing/")
    assert excinfo.value.url == "https://mgmits.ac.in/missing/"


async def test_page_without_text_raises():
    loader = WebPageLoader(transport=site({"https://mgmits.ac.in/empty/": "<html><script>x()</script></html>"}))
    with pytest.raises(PageLoadError):
        await loader.load("https://mgmits.ac.in/empty/")


async def test_sitemap_index_is_followed_and_broken_children_skipped():
    transport = site({
        "https://mgmits.ac.in/sitemap_index.xml": SITEMAP_INDEX,
        "https://mgmits.ac.in/post-sitemap1.xml": URLSET,
    })
    loader = SitemapLoader(page_loader=WebPageLoader(transport=transport))

    urls = await loader.discover_urls("https://mgmits.ac.in/sitemap_index.xml")

    assert urls == ["https://mgmits.ac.in/a/", "https://mgmits.ac.in/b/"]


async def test_missing_top_level_sitemap_raises():
    loader = SitemapLoader(page_loader=WebPageLoader(transport=site({})))
    with pytest.raises(PageLoadError):
        await loader.discover_urls("https://mgmits.ac.in/sitemap.xml")
