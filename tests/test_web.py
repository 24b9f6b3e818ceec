from __future__ import annotations

import json

import httpx
import pytest

from ragchat.rag.errors import ScrapeError
from ragchat.rag.web import WebClient, html_to_text

ARTICLE = "This is the main article body. " * 6

PAGE = f"""
<html>
  <head><title>Page title</title><style>.x {{ color: red }}</style></head>
  <body>
    <header>Site header</header>
    <nav>Home | About</nav>
    <main><p>{ARTICLE}</p><img src="a.png"><p>More text.</p></main>
    <aside>Sidebar ad</aside>
    <script>var tracking = 1;</script>
    <footer>Copyright</footer>
  </body>
</html>
"""


def test_html_to_text_prefers_main_block():
    text = html_to_text(PAGE)

    assert text.startswith("This is the main article body.")
    assert "More text." in text
    for noise in ("Site header", "Home | About", "Sidebar ad", "tracking", "Copyright", "Page title", "color"):
        assert noise not in text


def test_html_to_text_falls_back_to_body_when_block_is_short():
    html = "<html><body><article>tiny</article><div>Body   text\n\n here</div></body></html>"

    assert html_to_text(html) == "tiny Body text here"


def test_html_to_text_class_based_block():
    html = f'<body><div>noise</div><div class="post-content">{ARTICLE}</div></body>'

    assert html_to_text(html) == ARTICLE.strip()


def test_html_to_text_truncates():
    html = "<body><p>" + "word " * 100 + "</p></body>"

    text = html_to_text(html, max_chars=20)
    assert len(text) == 23
    assert text.endswith("...")


def _client(handler, **kw) -> WebClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kw.setdefault("api_key", "k")
    return WebClient(http=http, search_url="https://search.test/search", **kw)


@pytest.mark.asyncio
async def test_search_parses_organic_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers.get("X-API-KEY")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "organic": [
                    {"title": "One", "link": "https://one.test", "snippet": "s1"},
                    {"title": "No link"},
                    {"title": "Two", "link": "https://two.test"},
                ]
            },
        )

    hits = await _client(handler).search("python asyncio", limit=3)

    assert seen["key"] == "k"
    assert seen["body"] == {"q": "python asyncio", "num": 3}
    assert [(h.title, h.url, h.snippet) for h in hits] == [
        ("One", "https://one.test", "s1"),
        ("Two", "https://two.test", ""),
    ]


@pytest.mark.asyncio
async def test_search_failure_gives_no_hits():
    def handler(request):
        return httpx.Response(500, json={"error": "down"})

    assert await _client(handler).search("q") == []


@pytest.mark.asyncio
async def test_search_without_key_is_skipped():
    def handler(request):
        raise AssertionError("should not be called")

    assert await _client(handler, api_key="").search("q") == []


@pytest.mark.asyncio
async def test_scrape_ok():
    def handler(request):
        assert "ragchat" in request.headers["User-Agent"]
        return httpx.Response(200, text=PAGE, headers={"Content-Type": "text/html"})

    text = await _client(handler).scrape("https://page.test")
    assert text.startswith("This is the main article body.")


@pytest.mark.asyncio
async def test_scrape_http_error_raises():
    def handler(request):
        return httpx.Response(404)

    with pytest.raises(ScrapeError):
        await _client(handler).scrape("https://missing.test")


@pytest.mark.asyncio
async def test_scrape_empty_page_raises():
    def handler(request):
        return httpx.Response(200, text="<html><body><script>x()</script></body></html>")

    with pytest.raises(ScrapeError):
        await _client(handler).scrape("https://empty.test")


def test_html_to_text_role_main_wins_over_later_selectors():
    html = (
        "<html><head><title>T</title><script>x()</script></head><body>"
        f'<div role="main">{ARTICLE}</div><article>{"Other article. " * 10}</article>'
        "</body></html>"
    )

    assert html_to_text(html) == ARTICLE.strip()
