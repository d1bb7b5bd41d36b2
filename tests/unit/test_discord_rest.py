import json

import httpx
import pytest

from relay_agent.config import DiscordConfig
from relay_agent.directory.ports import MessageFilters
from relay_agent.directory.rest import DiscordRestDirectory

BASE_URL = "https://discord.test/api"


def _directory(handler) -> DiscordRestDirectory:
    config = DiscordConfig(token="token-123", user_id="99", api_base_url=BASE_URL)
    client = httpx.AsyncClient(
        base_url=BASE_URL,
        headers={"Authorization": config.token},
        transport=httpx.MockTransport(handler),
    )
    return DiscordRestDirectory(config, client=client)


@pytest.mark.asyncio
async def test_guild_listing_is_cached() -> None:
    hits: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.path)
        assert request.headers["Authorization"] == "token-123"
        return httpx.Response(200, json=[{"id": "1", "name": "Home"}, {"id": "2", "name": "Work"}])

    directory = _directory(handler)

    first = await directory.list_guilds()
    second = await directory.list_guilds()

    assert [guild.name for guild in first] == ["Home", "Work"]
    assert second == first
    assert hits == ["/api/users/@me/guilds"]


@pytest.mark.asyncio
async def test_failed_listing_is_empty_and_retried() -> None:
    responses = iter(
        [
            httpx.Response(500, json={"message": "oops"}),
            httpx.Response(200, json=[{"id": "5", "name": "general", "type": 0}]),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    directory = _directory(handler)

    assert await directory.list_channels("1") == []
    channels = await directory.list_channels("1")
    assert [(channel.id, channel.name) for channel in channels] == [("5", "general")]


@pytest.mark.asyncio
async def test_members_and_direct_messages_are_parsed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/members"):
            assert request.url.params["limit"] == "1000"
            return httpx.Response(
                200,
                json=[
                    {"user": {"id": "42", "username": "alice", "global_name": "Alice A"}, "nick": "ally"},
                    {"nick": "ghost"},
                ],
            )
        return httpx.Response(
            200,
            json=[
                {"id": "dm-1", "type": 1, "recipients": [{"id": "42", "username": "alice"}]},
                {"id": "group-1", "type": 3, "recipients": [{"id": "7", "username": "x"}]},
            ],
        )

    directory = _directory(handler)

    [member] = await directory.list_members("1")
    assert (member.id, member.name, member.display_name, member.global_name) == (
        "42",
        "alice",
        "ally",
        "Alice A",
    )

    [dm] = await directory.list_direct_message_channels()
    assert (dm.id, dm.name) == ("dm-1", "alice")


@pytest.mark.asyncio
async def test_fetch_messages_applies_filters() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json=[
                {
                    "id": "m1",
                    "author": {"username": "bob"},
                    "content": "hey @me",
                    "timestamp": "2024-01-01T00:00:00+00:00",
                    "mentions": [{"id": "99"}],
                },
                {"id": "m2", "author": {"username": "carol"}, "content": "unrelated", "mentions": []},
            ],
        )

    directory = _directory(handler)
    filters = MessageFilters(limit=10, before="m9", has="image", mentioned=True)

    messages = await directory.fetch_messages("5", filters)

    assert seen == {"limit": "10", "before": "m9", "has": "image"}
    assert [message.id for message in messages] == ["m1"]
    assert messages[0].author == "bob"


@pytest.mark.asyncio
async def test_send_message_and_open_dm() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/users/@me/channels") and request.method == "POST":
            assert json.loads(request.content) == {"recipient_id": "42"}
            return httpx.Response(200, json={"id": "dm-42"})
        if request.url.path.endswith("/users/@me/channels"):
            return httpx.Response(200, json=[])
        assert json.loads(request.content) == {"content": "hello"}
        return httpx.Response(200, json={"id": "msg-1"})

    directory = _directory(handler)
    await directory.list_direct_message_channels()
    assert "direct_messages" in directory.cache

    assert await directory.open_direct_message("42") == "dm-42"
    assert "direct_messages" not in directory.cache
    assert await directory.send_message("dm-42", "hello") == "msg-1"


@pytest.mark.asyncio
async def test_send_failure_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Missing Access"})

    directory = _directory(handler)

    assert await directory.send_message("5", "hello") is None
    assert await directory.list_mentions() == []
