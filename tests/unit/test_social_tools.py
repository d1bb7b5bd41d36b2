import httpx
import pytest
from bs4 import BeautifulSoup

from relay_agent.socials.github import _parse_count, get_github_profile, parse_profile
from relay_agent.socials.scraper import ScrapeError
from relay_agent.tools.registry import ToolRegistry
from relay_agent.tools.social import USERNAME_API, register_social_tools
from relay_agent.types import ToolCall

PROFILE_HTML = """
<html><body>
  <div class="js-profile-editable-area">
    <span class="p-name vcard-fullname">The Octocat</span>
    <div class="user-profile-bio">Mascot of GitHub</div>
    <a href="/octocat?tab=followers"><span class="color-fg-default">1.2k</span> followers</a>
    <a href="/octocat?tab=following"><span class="color-fg-default">9</span> following</a>
    <li itemprop="homeLocation"><span>San Francisco</span></li>
    <li itemprop="social"><a href="https://twitter.com/octocat">@octocat</a></li>
  </div>
  <a id="repositories-tab"><span class="Counter">8</span></a>
  <a id="stars-tab"><span class="Counter">3</span></a>
  <a data-hovercard-type="organization" data-hovercard-url="/orgs/github/hovercard">github</a>
</body></html>
"""


def test_parse_profile_reads_counts_and_links() -> None:
    profile = parse_profile(BeautifulSoup(PROFILE_HTML, "html.parser"), "octocat")

    assert profile.username == "octocat"
    assert profile.name == "The Octocat"
    assert profile.bio == "Mascot of GitHub"
    assert profile.location == "San Francisco"
    assert profile.followers == 1200
    assert profile.following == 9
    assert profile.repos == 8
    assert profile.stars == 3
    assert profile.projects == 0
    assert profile.links == ["https://twitter.com/octocat"]
    assert profile.orgs == ["/orgs/github/hovercard"]


def test_parse_count_variants() -> None:
    assert _parse_count("1,024") == 1024
    assert _parse_count("2m") == 2_000_000
    assert _parse_count("") == 0
    assert _parse_count("...") == 0


@pytest.mark.asyncio
async def test_missing_profile_raises_scrape_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="Not Found")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(ScrapeError):
            await get_github_profile(http, "nobody-here")


@pytest.mark.asyncio
async def test_github_tool_returns_nothing_on_scrape_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        registry = ToolRegistry()
        register_social_tools(registry, http)
        result = await registry.execute(
            ToolCall(name="get_github_profile", arguments={"username": "octocat"}), "", []
        )

    assert result.error is None
    assert result.result is not None and result.result.is_nothing


@pytest.mark.asyncio
async def test_search_username_lists_taken_platforms() -> None:
    taken = {"github", "reddit"}

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url).startswith(USERNAME_API)
        platform = request.url.path.split("/")[2]
        if platform == "twitch":
            return httpx.Response(200, text="not json")
        if platform in taken:
            return httpx.Response(
                200, json={"available": False, "url": f"https://{platform}.example/octocat"}
            )
        return httpx.Response(200, json={"available": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        registry = ToolRegistry()
        register_social_tools(registry, http)
        result = await registry.execute(
            ToolCall(name="search_username", arguments={"query": "octocat"}), "", []
        )

    text = result.result.get_or_else("")
    assert text.startswith("The username octocat is an account on the following")
    assert "https://reddit.example/octocat" in text
    assert "https://github.example/octocat" in text


@pytest.mark.asyncio
async def test_search_username_not_found_anywhere() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"available": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        registry = ToolRegistry()
        register_social_tools(registry, http)
        result = await registry.execute(
            ToolCall(name="search_username", arguments={"query": "zz"}), "", []
        )

    assert result.result.get_or_else("") == "The username zz was not found on any known platform."
