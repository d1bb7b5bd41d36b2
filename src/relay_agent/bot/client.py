"""Discord gateway bridge: mentions in, orchestrated replies out."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import discord
import httpx
from dotenv import load_dotenv

from relay_agent.agent.orchestrator import Orchestrator
from relay_agent.config import AgentConfig, DiscordConfig, LLMConfig, MemoryConfig
from relay_agent.directory.rest import DiscordRestDirectory
from relay_agent.errors import MemoryPersistenceError, MissingCredentialsError
from relay_agent.llm.fallback import DeterministicBackend
from relay_agent.llm.langchain import LangChainBackend, create_chat_model
from relay_agent.memory.preferences import PreferenceStore, UserPreferences
from relay_agent.memory.store import MemoryStore
from relay_agent.obs.log import configure_logging
from relay_agent.obs.tracing import TraceStore
from relay_agent.resolver import EntityResolver
from relay_agent.result import Maybe
from relay_agent.tools.builtin import build_registry

logger = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000

_MENTION_PATTERN = re.compile(r"<@!?(\d+)>")


def replace_mentions(content: str, users: Mapping[str, str]) -> str:
    """Rewrite `<@id>` tokens as `@username`; unknown ids are left alone."""

    def _substitute(match: re.Match[str]) -> str:
        name = users.get(match.group(1))
        return f"@{name}" if name else match.group(0)

    return _MENTION_PATTERN.sub(_substitute, content)


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%d/%m/%Y %I:%M:%S %p %Z").strip()


def truncate_reply(text: str, limit: int = DISCORD_MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def conversation_tags(author_id: object, channel_id: object, *extra: str) -> list[str]:
    return ["discord", f"user:{author_id}", f"channel:{channel_id}", *extra]


def build_context(message: Any, bot_name: str | None = None) -> dict[str, Any]:
    """Situational facts about a message, passed to the model as `<context>`."""

    channel = message.channel
    guild = message.guild
    return {
        "sender": message.author.name,
        "sender_id": str(message.author.id),
        "message_created_at": format_timestamp(message.created_at),
        "current_time": format_timestamp(datetime.now(timezone.utc)),
        "channel": getattr(channel, "name", None) or "DM",
        "channel_id": str(channel.id),
        "channel_topic": getattr(channel, "topic", None) or "N/A",
        "guild": guild.name if guild is not None else "DM",
        "guild_id": str(guild.id) if guild is not None else "DM",
        "guild_member_count": (guild.member_count or 0) if guild is not None else 0,
        "is_dm": guild is None,
        "client_user": bot_name or "N/A",
    }


class MessageHandler:
    """Handles one incoming message for the bot user.

    Only messages that mention the bot are answered. Both the user's message
    and the reply are kept in memory as `conversation` documents that expire
    after `MemoryConfig.conversation_ttl_seconds`.
    """

    def __init__(
        self,
        *,
        orchestrator: Orchestrator,
        memory: MemoryStore,
        config: AgentConfig | None = None,
        memory_config: MemoryConfig | None = None,
        clock: Any = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self.memory = memory
        self.preferences = PreferenceStore(memory)
        self.config = config or AgentConfig()
        self.memory_config = memory_config or memory.config
        self._clock = clock

    async def handle(self, message: Any, bot_user: Any) -> str | None:
        """Reply to `message` when it mentions `bot_user`; returns the reply sent."""

        if message.author.bot or message.author.id == bot_user.id:
            return None
        if not any(user.id == bot_user.id for user in message.mentions):
            return None

        content = replace_mentions(
            message.content, {str(user.id): user.name for user in message.mentions}
        ).strip()
        if len(content) > self.config.max_input_chars:
            reply = (
                "Your message is too long. Please keep it under "
                f"{self.config.max_input_chars} characters."
            )
            await message.reply(reply)
            return reply

        tags = conversation_tags(message.author.id, message.channel.id)
        self._record_activity(message)

        context = build_context(message, getattr(bot_user, "name", None))
        stored = self.preferences.get(str(message.author.id))
        if stored is not None:
            context["preferences"] = stored.model_dump(exclude_none=True)

        answer = await self.orchestrator.process_request(content, Maybe.text(context))
        reply = truncate_reply(answer)
        await message.reply(reply)
        self._remember(f"message:{message.id}", content, tags)
        self._remember(f"response:{message.id}", answer, [*tags, "bot-response"])
        return reply

    def _remember(self, key: str, value: str, tags: list[str]) -> None:
        try:
            self.memory.set(
                key,
                value,
                type="conversation",
                tags=tags,
                ttl=self.memory_config.conversation_ttl_seconds,
            )
        except MemoryPersistenceError as exc:
            logger.warning("%s", exc)

    def _record_activity(self, message: Any) -> None:
        guild = message.guild
        locale = getattr(guild, "preferred_locale", None)
        changes = UserPreferences(
            language=str(locale) if locale else None,
            custom_settings={
                "guild_id": str(guild.id) if guild is not None else None,
                "last_active_channel": str(message.channel.id),
                "last_active_timestamp": self._clock(),
            },
        )
        try:
            self.preferences.update(str(message.author.id), changes)
        except MemoryPersistenceError as exc:
            logger.warning("%s", exc)


class RelayBot(discord.Client):
    """discord.py client that forwards mentions to a `MessageHandler`."""

    def __init__(
        self,
        *,
        handler: MessageHandler,
        directory: DiscordRestDirectory | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)
        self.handler = handler
        self.directory = directory
        self.http_client = http_client

    async def on_ready(self) -> None:
        logger.info("Logged in as %s", self.user)

    async def on_message(self, message: discord.Message) -> None:
        if self.user is None:
            return
        try:
            await self.handler.handle(message, self.user)
        except discord.DiscordException:
            logger.exception("Failed to reply to message %s", message.id)

    async def close(self) -> None:
        await super().close()
        if self.directory is not None:
            await self.directory.aclose()
        if self.http_client is not None:
            await self.http_client.aclose()


def create_bot(
    discord_config: DiscordConfig,
    llm_config: LLMConfig,
    memory_config: MemoryConfig | None = None,
    agent_config: AgentConfig | None = None,
) -> RelayBot:
    """Wire memory, directory, tools and backends into a ready-to-run client."""

    memory = MemoryStore(memory_config)
    memory.load()
    purged = memory.purge_expired()
    if purged:
        logger.info("Purged %d expired memory documents", purged)

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(15.0))
    directory = DiscordRestDirectory(discord_config)
    registry = build_registry(
        memory=memory,
        http=http_client,
        directory=directory,
        transport=directory,
        resolver=EntityResolver(directory, transport=directory),
    )

    if llm_config.api_key:
        backend: LangChainBackend | DeterministicBackend = LangChainBackend(
            create_chat_model(llm_config)
        )
    else:
        logger.warning("OPENAI_API_KEY is not set; replies use the deterministic backend")
        backend = DeterministicBackend()

    orchestrator = Orchestrator(
        registry=registry,
        classifier=backend,
        synthesizer=backend,
        memory=memory,
        trace_store=TraceStore(),
        config=agent_config,
    )
    handler = MessageHandler(
        orchestrator=orchestrator, memory=memory, config=agent_config, memory_config=memory_config
    )
    return RelayBot(handler=handler, directory=directory, http_client=http_client)


def run() -> None:
    """Console entrypoint; missing Discord credentials abort startup."""

    load_dotenv()
    configure_logging()
    try:
        discord_config = DiscordConfig.from_env()
    except MissingCredentialsError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc

    bot = create_bot(discord_config, LLMConfig.from_env())
    bot.run(discord_config.token, log_handler=None)


if __name__ == "__main__":
    run()
