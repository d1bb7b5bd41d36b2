from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from relay_agent.agent.orchestrator import Orchestrator
from relay_agent.bot.client import (
    MessageHandler,
    build_context,
    conversation_tags,
    format_timestamp,
    replace_mentions,
    truncate_reply,
)
from relay_agent.config import AgentConfig, MemoryConfig
from relay_agent.memory.store import MemoryStore
from relay_agent.tools.registry import ToolRegistry
from relay_agent.types import ToolCall


class FakeOrchestrator:
    def __init__(self, answer: str = "Hello!") -> None:
        self.answer = answer
        self.requests: list[tuple[str, object]] = []

    async def process_request(self, user_input: str, context=None) -> str:
        self.requests.append((user_input, context))
        return self.answer


class FakeMessage:
    def __init__(self, content: str, *, mentions: list, author=None, guild=None) -> None:
        self.id = 555
        self.content = content
        self.mentions = mentions
        self.author = author or SimpleNamespace(id=1, name="alice", bot=False)
        self.channel = SimpleNamespace(id=10, name="general", topic=None)
        self.guild = guild
        self.created_at = datetime(2024, 3, 1, 15, 4, 5, tzinfo=timezone.utc)
        self.replies: list[str] = []

    async def reply(self, content: str) -> None:
        self.replies.append(content)


BOT = SimpleNamespace(id=99, name="relay")


def _handler(tmp_path: Path, orchestrator: FakeOrchestrator) -> tuple[MessageHandler, MemoryStore]:
    memory = MemoryStore(MemoryConfig(base_path=tmp_path))
    handler = MessageHandler(
        orchestrator=orchestrator,
        memory=memory,
        config=AgentConfig(max_input_chars=40),
        clock=lambda: 1_000.0,
    )
    return handler, memory


def test_replace_mentions() -> None:
    content = "<@99> tell <@!42> about <@7>"

    assert replace_mentions(content, {"99": "relay", "42": "bob"}) == "@relay tell @bob about <@7>"


def test_small_helpers() -> None:
    stamp = datetime(2024, 3, 1, 15, 4, 5, tzinfo=timezone.utc)

    assert format_timestamp(stamp) == "01/03/2024 03:04:05 PM UTC"
    assert format_timestamp(None) == "N/A"
    assert truncate_reply("x" * 10, limit=5) == "xx..."
    assert truncate_reply("short") == "short"
    assert conversation_tags(1, 10) == ["discord", "user:1", "channel:10"]


def test_build_context_for_guild_and_dm() -> None:
    guild = SimpleNamespace(id=5, name="Home", member_count=12)
    in_guild = build_context(FakeMessage("hi", mentions=[], guild=guild), "relay")

    assert in_guild["guild"] == "Home"
    assert in_guild["guild_member_count"] == 12
    assert in_guild["channel"] == "general"
    assert in_guild["is_dm"] is False
    assert in_guild["client_user"] == "relay"

    direct = build_context(FakeMessage("hi", mentions=[]))
    assert direct["guild"] == "DM"
    assert direct["is_dm"] is True


@pytest.mark.asyncio
async def test_ignores_messages_without_mention(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    handler, _ = _handler(tmp_path, orchestrator)

    assert await handler.handle(FakeMessage("just chatting", mentions=[]), BOT) is None
    assert orchestrator.requests == []


@pytest.mark.asyncio
async def test_ignores_bot_authors(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    handler, _ = _handler(tmp_path, orchestrator)
    author = SimpleNamespace(id=2, name="otherbot", bot=True)

    assert await handler.handle(FakeMessage("<@99> hi", mentions=[BOT], author=author), BOT) is None


@pytest.mark.asyncio
async def test_rejects_long_messages(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    handler, _ = _handler(tmp_path, orchestrator)
    message = FakeMessage("<@99> " + "a" * 60, mentions=[BOT])

    reply = await handler.handle(message, BOT)

    assert reply == "Your message is too long. Please keep it under 40 characters."
    assert message.replies == [reply]
    assert orchestrator.requests == []


@pytest.mark.asyncio
async def test_answers_mention_and_remembers_conversation(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator("Sure thing.")
    handler, memory = _handler(tmp_path, orchestrator)
    message = FakeMessage("<@99> remind me", mentions=[BOT])

    reply = await handler.handle(message, BOT)

    assert reply == "Sure thing."
    assert message.replies == ["Sure thing."]
    user_input, context = orchestrator.requests[0]
    assert user_input == "@relay remind me"
    assert "sender: alice" in context.get_or_else("")

    stored = memory.document("message:555")
    assert stored is not None
    assert stored.value == "@relay remind me"
    assert stored.type == "conversation"
    assert "user:1" in stored.tags
    assert stored.ttl == MemoryConfig().conversation_ttl_seconds

    response = memory.document("response:555")
    assert response is not None and "bot-response" in response.tags
    assert memory.document("preferences:1") is not None


class RecordingSynthesizer:
    def __init__(self) -> None:
        self.blocks: list[str] = []

    async def synthesize(self, results_block: str, user_input: str) -> str | None:
        self.blocks.append(results_block)
        return "Green, last time you told me."


class NoToolsClassifier:
    async def classify(self, user_input: str, tools: list[dict]) -> list[ToolCall] | None:
        return None


@pytest.mark.asyncio
async def test_current_message_is_not_recalled_as_memory(tmp_path: Path) -> None:
    memory = MemoryStore(MemoryConfig(base_path=tmp_path))
    synthesizer = RecordingSynthesizer()
    orchestrator = Orchestrator(
        registry=ToolRegistry(),
        classifier=NoToolsClassifier(),
        synthesizer=synthesizer,
        memory=memory,
    )
    handler = MessageHandler(orchestrator=orchestrator, memory=memory, clock=lambda: 1_000.0)
    message = FakeMessage("<@99> what is my favourite colour", mentions=[BOT])

    reply = await handler.handle(message, BOT)

    assert reply == "Green, last time you told me."
    [block] = synthesizer.blocks
    recall = block.split("<memory-recall>")[1].split("</memory-recall>")[0]
    assert "message:555" not in recall
    stored = memory.document("message:555")
    assert stored is not None and stored.value == "@relay what is my favourite colour"
