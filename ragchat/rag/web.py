from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

import httpx
from bs4 import BeautifulSoup

from ragchat.rag.errors import ScrapeError
from ragchat.utils.logging import get_logger

USER_AGENT = "Mozilla/5.0 (compatible; ragchat/1.0)"

# page chrome dropped before any text is read
_STRIP_SELECTOR = "head, title, script, style, nav, header, footer, aside, noscript, template"

# tried in order; the first whose text is long enough wins over the whole body
_CONTENT_SELECTORS = (
    "main",
    "[role='main']",
    ".content",
    "#content",
    "article",
    ".post-content",
    ".entry-content",
)
_MIN_BLOCK_CHARS = 100


@dataclass(frozen=True)
class WebHit:
    title: str
    url: str
    snippet: str = ""


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def html_to_text(html: str, max_chars: int = 10000) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for el in soup.select(_STRIP_SELECTOR):
        # nested matches (title inside head) are already gone with their parent
        if not el.decomposed:
            el.decompose()

    content = ""
    for selector in _CONTENT_SELECTORS:
        matches = soup.select(selector)
        if not matches:
            continue
        text = _collapse(" ".join(el.get_text(" ") for el in matches))
        if len(text) > _MIN_BLOCK_CHARS:
            content = text
            break
    if not content:
        content = _collapse((soup.body or soup).get_text(" "))

    if max_chars > 0 and len(content) > max_chars:
        content = content[:max_chars] + "..."
    return content


class WebClient:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        search_url: str,
        api_key: str = "",
        max_chars: int = 10000,
        logger=None,
    ):
        self.http = http
        self.search_url = search_url
        self.api_key = api_key
        self.max_chars = int(max_chars)
        self.log = logger or get_logger()

    async def search(self, query: str, limit: int = 3) -> List[WebHit]:
        """Serper-style web search. Failures are logged and give no hits."""
        if not self.api_key:
            self.log.warning("WEB search skipped | reason=no_api_key")
            return []

        try:
            resp = await self.http.post(
                self.search_url,
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                json={"q": query, "num": limit},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.log.warning("WEB search err | q_len=%s | err=%s", len(query), f"{type(e).__name__}: {e}")
            return []

        hits: List[WebHit] = []
        for item in (data.get("organic") or [])[:limit]:
            link = item.get("link")
            if not link:
                continue
            hits.append(WebHit(title=item.get("title") or link, url=link, snippet=item.get("snippet") or ""))

        self.log.info("WEB search ok | q_len=%s | hits=%s", len(query), len(hits))
        return hits

    async def scrape(self, url: str) -> str:
        try:
            resp = await self.http.get(url, headers={"User-Agent": USER_AGENT}, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ScrapeError(f"Could not fetch {url}: {type(e).__name__}: {e}") from e

        content = html_to_text(resp.text, max_chars=self.max_chars)
        if not content:
            raise ScrapeError(f"No content could be extracted from {url}")
        return content
