"""HTML page fetching for profile scraping."""

from __future__ import annotations

import httpx
from bs4 import BeautifulSoup

DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; relay-agent/0.1)"}


class ScrapeError(RuntimeError):
    """The page could not be fetched."""


async def scrape(
    http: httpx.AsyncClient, url: str, *, headers: dict[str, str] | None = None
) -> BeautifulSoup:
    try:
        response = await http.get(
            url, headers={**DEFAULT_HEADERS, **(headers or {})}, follow_redirects=True
        )
    except httpx.HTTPError as exc:
        raise ScrapeError(f"Failed to scrape {url}: {exc}") from exc
    if response.status_code != 200:
        raise ScrapeError(f"Failed to scrape {url}: HTTP {response.status_code}")
    return BeautifulSoup(response.text, "html.parser")
