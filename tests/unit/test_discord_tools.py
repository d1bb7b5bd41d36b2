import pytest

from relay_agent.directory.ports import MessageFilters
from relay_agent.resolver import EntityResolver
from relay_agent.tools.discord import register_discord_tools
from relay_agent.tools.registry import ToolRegistry
from relay_agent.types import ChatMessage, DirectoryEntity, ToolCall


class FakeDiscord:
    """In-memory directory and transport."""

    def __init__(self) -> None:
        self.guilds = [DirectoryEntity(id="g1", name="Home")]
        self.channels = {"g1": [DirectoryEntity(id="c1", name="general")]}
        self.members = {"g1": [DirectoryEntity(id="42", name="alice")]}
        self.direct_messages = [DirectoryEntity(id="dm-7", name="bob")]
        self.sent: list[tuple[str, str]] = []
        self.fetched: list[tuple[str, MessageFilters]] = []
        self.send_ok = True

    async def list_guilds(self) -> list[DirectoryEntity]:
        return self.guilds

    async def list_channels(self, guild_id: str) -> list[DirectoryEntity]:
        return self.channels.get(guild_id, [])

    async def list_members(self, guild_id: str) -> list[DirectoryEntity]:
        return self.members.get(guild_id, [])

    async def list_direct_message_channels(self) -> list[DirectoryEntity]:
        return self.direct_messages

    async def send_message(self, channel_id: str, content: str) -> str | None:
        if not self.send_ok:
            return None
        self.sent.append((channel_id, content))
        return "msg-1"

    async def fetch_messages(self, channel_id: str, filters: MessageFilters) -> list[ChatMessage]:
        self.fetched.append((channel_id, filters))
        return [ChatMessage(id="m1", author="bob", content="lunch?", timestamp="2024-01-01")]

    async def list_mentions(self, limit: int = 100) -> list[ChatMessage]:
        return [
            ChatMessage(id="m2", author="carol", content="@you ping"),
            ChatMessage(id="m3", author="dave", content="@everyone party", mentions_everyone=True),
        ]

    async def open_direct_message(self, user_id: str) -> str | None:
        return f"dm-{user_id}"


def _registry(fake: FakeDiscord) -> ToolRegistry:
    registry = ToolRegistry()
    register_discord_tools(registry, fake, fake, EntityResolver(fake, transport=fake))
    return registry


async def _run(registry: ToolRegistry, name: str, **arguments: object) -> str:
    result = await registry.execute(ToolCall(name=name, arguments=arguments), "", [])
    assert result.error is None, result.error
    return result.result.render()


@pytest.mark.asyncio
async def test_listings() -> None:
    registry = _registry(FakeDiscord())

    assert await _run(registry, "get_discord_guilds") == "Home"
    assert await _run(registry, "get_discord_guild_channels", guild_name="home") == "general"
    assert await _run(registry, "get_discord_direct_messages") == "bob"


@pytest.mark.asyncio
async def test_unread_messages_skip_everyone_mentions() -> None:
    registry = _registry(FakeDiscord())

    assert await _run(registry, "get_discord_unread_messages") == "carol: @you ping"


@pytest.mark.asyncio
async def test_get_messages_resolves_channel_and_passes_filters() -> None:
    fake = FakeDiscord()
    registry = _registry(fake)

    text = await _run(registry, "get_discord_messages", channel_name="#general", limit=5, mentioned=True)

    assert text == "[2024-01-01] bob: lunch?"
    channel_id, filters = fake.fetched[0]
    assert channel_id == "c1"
    assert filters.limit == 5
    assert filters.mentioned is True


@pytest.mark.asyncio
async def test_send_to_member_opens_direct_message() -> None:
    fake = FakeDiscord()
    registry = _registry(fake)

    text = await _run(registry, "send_discord_message", channel_name="@alice", content="hi")

    assert text == "Sent message successfully to alice"
    assert fake.sent == [("dm-42", "hi")]


@pytest.mark.asyncio
async def test_send_to_unknown_recipient_reports_failure() -> None:
    fake = FakeDiscord()
    registry = _registry(fake)

    text = await _run(
        registry, "send_discord_message", channel_name="@zzzzz_unknown_handle", content="hi"
    )

    assert text == "Failed to send message: could not find recipient @zzzzz_unknown_handle"
    assert fake.sent == []


@pytest.mark.asyncio
async def test_send_failure_upstream() -> None:
    fake = FakeDiscord()
    fake.send_ok = False
    registry = _registry(fake)

    assert await _run(registry, "send_discord_message", channel_name="#general", content="x") == (
        "Failed to send message"
    )
