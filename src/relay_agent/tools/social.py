"""Social profile lookup tools."""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import BaseModel, Field

from relay_agent.result import Maybe
from relay_agent.socials.github import get_github_profile
from relay_agent.socials.scraper import ScrapeError
from relay_agent.tools.registry import ToolRegistry, ToolSpec
from relay_agent.types import ToolCall

logger = logging.getLogger(__name__)

USERNAME_API = "https://api.instantusername.com"

# Platform slugs understood by the username-availability API.
USERNAME_PLATFORMS = (
    "instagram", "tiktok", "x-(twitter)", "facebook", "youtube", "snapchat",
    "medium", "reddit", "hackernews", "venmo", "soundcloud", "producthunt",
    "spotify", "github", "gitlab", "minecraft", "twitch", "dribbble", "quora",
    "9gag", "vk", "goodreads", "blogger", "patreon", "telegram", "slack",
    "wordpress", "roblox", "strava", "wikipedia", "about.me", "archive.org",
    "artstation", "bandcamp", "behance", "bitbucket", "buymeacoffee",
    "codecademy", "codepen", "dev-community", "deviantart", "docker-hub",
    "duolingo", "etsy", "fiverr", "flickr", "freecodecamp", "giphy",
    "gravatar", "gumroad", "hackerone", "hackerrank", "hashnode", "imgur",
    "kaggle", "keybase", "kofi", "last.fm", "leetcode", "letterboxd",
    "lichess", "linktree", "mastodon.social", "myanimelist", "npm", "pastebin",
    "pypi", "replit.com", "rubygems", "scratch", "sourceforge", "trello",
    "unsplash", "vimeo", "wattpad", "chess.com", "linkedin",
)


class GithubProfileInput(BaseModel):
    username: str = Field(min_length=1, description="The github username")


class UsernameSearchInput(BaseModel):
    query: str = Field(min_length=1, description="The query to search for")


def register_social_tools(registry: ToolRegistry, http: httpx.AsyncClient) -> None:
    """Register `get_github_profile` and `search_username`."""

    async def _github(
        data: GithubProfileInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        try:
            profile = await get_github_profile(http, data.username)
        except ScrapeError as exc:
            logger.warning("%s", exc)
            return Maybe.nothing()
        return Maybe.text(profile)

    async def _search(
        data: UsernameSearchInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        urls = await asyncio.gather(
            *(_account_url(http, platform, data.query) for platform in USERNAME_PLATFORMS)
        )
        found = [url for url in urls if url]
        if not found:
            return Maybe.just(f"The username {data.query} was not found on any known platform.")
        return Maybe.just(
            f"The username {data.query} is an account on the following social media "
            f"platforms: {', '.join(found)}"
        )

    registry.register(
        ToolSpec(
            name="get_github_profile",
            description="Get a github profile data",
            args_schema=GithubProfileInput,
            handler=_github,
            tags=("social",),
        )
    )
    registry.register(
        ToolSpec(
            name="search_username",
            description=(
                "Search for a username accross all social media platforms on the "
                "internet, heavy task."
            ),
            args_schema=UsernameSearchInput,
            handler=_search,
            tags=("social",),
        )
    )


async def _account_url(http: httpx.AsyncClient, platform: str, username: str) -> str | None:
    """Profile URL when `username` is taken on `platform`; None otherwise or on failure."""
    try:
        response = await http.get(f"{USERNAME_API}/c/{platform}/{username}")
        payload = response.json()
    except (httpx.HTTPError, ValueError):
        return None
    if not isinstance(payload, dict) or payload.get("available", True):
        return None
    return payload.get("url") or None
