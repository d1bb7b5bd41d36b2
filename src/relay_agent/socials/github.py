"""GitHub profile scraping."""

from __future__ import annotations

import re

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from relay_agent.socials.scraper import scrape


class GithubProfile(BaseModel):
    social: str = "github"
    username: str
    name: str = "unknown"
    location: str = "unknown"
    bio: str = ""
    followers: int = 0
    following: int = 0
    stars: int = 0
    repos: int = 0
    projects: int = 0
    links: list[str] = Field(default_factory=list)
    orgs: list[str] = Field(default_factory=list)
    about_me: str | None = None


async def get_github_profile(http: httpx.AsyncClient, username: str) -> GithubProfile:
    """Scrape the public profile page of `username`.

    Raises `ScrapeError` when the page cannot be fetched.
    """

    soup = await scrape(http, f"https://github.com/{username}")
    return parse_profile(soup, username)


def parse_profile(soup: BeautifulSoup, username: str) -> GithubProfile:
    followers, following = _follow_counts(soup)
    about = soup.select_one("#user-profile-frame article")
    return GithubProfile(
        username=username,
        name=_text(soup, ".p-name, .vcard-fullname") or "unknown",
        location=_text(soup, '[itemprop="homeLocation"] span') or "unknown",
        bio=_text(soup, ".user-profile-bio, .user_profile_bio"),
        followers=followers,
        following=following,
        stars=_counter(soup, "#stars-tab .Counter"),
        repos=_counter(soup, "#repositories-tab .Counter"),
        projects=_counter(soup, "#projects-tab .Counter"),
        links=[
            str(link["href"])
            for link in soup.select('[itemprop="social"] a, [itemprop="url"] a')
            if link.get("href")
        ],
        orgs=[
            str(org["data-hovercard-url"])
            for org in soup.select('[data-hovercard-type="organization"]')
            if org.get("data-hovercard-url")
        ],
        about_me=about.get_text(" ", strip=True) if about else None,
    )


def _text(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return node.get_text(" ", strip=True) if node else ""


def _counter(soup: BeautifulSoup, selector: str) -> int:
    return _parse_count(_text(soup, selector))


def _follow_counts(soup: BeautifulSoup) -> tuple[int, int]:
    counts = [
        _parse_count(node.get_text(strip=True))
        for node in soup.select(".js-profile-editable-area a .color-fg-default")
    ]
    counts += [0, 0]
    return counts[0], counts[1]


def _parse_count(text: str) -> int:
    # GitHub abbreviates large counts, e.g. "1.2k".
    match = re.match(r"([\d.,]+)\s*([km]?)", text.strip().lower())
    if not match:
        return 0
    try:
        number = float(match.group(1).replace(",", ""))
    except ValueError:
        return 0
    multiplier = {"k": 1_000, "m": 1_000_000}.get(match.group(2), 1)
    return int(round(number * multiplier))
