"""Discord directory and messaging tools."""

from __future__ import annotations

from pydantic import BaseModel, Field

from relay_agent.directory.ports import (
    AttachmentKind,
    DirectoryProvider,
    MessageFilters,
    MessageTransport,
)
from relay_agent.resolver import EntityResolver
from relay_agent.result import Maybe
from relay_agent.tools.registry import ToolRegistry, ToolSpec
from relay_agent.types import ChatMessage, ToolCall

_CHANNEL_NAME_HELP = "The name of the channel (starts with @ for DMs, # for guild channels)"


class NoArguments(BaseModel):
    pass


class GuildChannelsInput(BaseModel):
    guild_name: str = Field(min_length=1, description="The name of the guild")


class GetMessagesInput(BaseModel):
    channel_name: str = Field(min_length=1, description=_CHANNEL_NAME_HELP)
    limit: int = Field(
        default=20, ge=1, le=100, description="The maximum number of messages to retrieve"
    )
    mentioned: bool = Field(
        default=False, description="Whether to filter for messages that mention the user"
    )
    before: str | None = Field(default=None, description="Get messages before this message ID")
    after: str | None = Field(default=None, description="Get messages after this message ID")
    has: AttachmentKind | None = Field(
        default=None, description="Filter messages that have a specific type of content"
    )
    mentions: str | None = Field(
        default=None, description="Array of usernames to filter mentions (comma separated)"
    )


class SendMessageInput(BaseModel):
    channel_name: str = Field(min_length=1, description=_CHANNEL_NAME_HELP)
    content: str = Field(min_length=1, description="The content of the message to send")


def register_discord_tools(
    registry: ToolRegistry,
    directory: DirectoryProvider,
    transport: MessageTransport,
    resolver: EntityResolver,
) -> None:
    """Register the Discord tools.

    Tools:
    - `get_discord_guilds` / `get_discord_guild_channels`: directory listings.
    - `get_discord_direct_messages`: open DM channels by recipient.
    - `get_discord_unread_messages`: mentions, ignoring @everyone and @here.
    - `get_discord_messages` / `send_discord_message`: read or post in a
      channel named loosely, resolved through the entity resolver.
    """

    async def _guilds(data: NoArguments, raw_input: str, calls: list[ToolCall]) -> Maybe[str]:
        guilds = await directory.list_guilds()
        return Maybe.text([guild.name for guild in guilds] or None)

    async def _guild_channels(
        data: GuildChannelsInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        guild = await resolver.resolve_guild(data.guild_name)
        if guild is None:
            return Maybe.just(f"Could not find a guild named {data.guild_name}")
        channels = await directory.list_channels(guild.id)
        return Maybe.text([channel.name for channel in channels] or None)

    async def _direct_messages(
        data: NoArguments, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        channels = await directory.list_direct_message_channels()
        return Maybe.text([channel.name for channel in channels] or None)

    async def _unread(data: NoArguments, raw_input: str, calls: list[ToolCall]) -> Maybe[str]:
        mentions = await transport.list_mentions(limit=100)
        lines = [
            f"{message.author}: {message.content}"
            for message in mentions
            if not message.mentions_everyone
        ]
        return Maybe.text(lines or None)

    async def _messages(
        data: GetMessagesInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        channel = await resolver.resolve(data.channel_name)
        if channel is None:
            return Maybe.just(f"Could not find channel {data.channel_name}")
        filters = MessageFilters(
            limit=data.limit,
            before=data.before,
            after=data.after,
            has=data.has,
            mentions=data.mentions,
            mentioned=data.mentioned,
        )
        messages = await transport.fetch_messages(channel.id, filters)
        return Maybe.text([_format_message(message) for message in messages] or None)

    async def _send(data: SendMessageInput, raw_input: str, calls: list[ToolCall]) -> Maybe[str]:
        channel = await resolver.resolve(data.channel_name)
        if channel is None:
            return Maybe.just(
                f"Failed to send message: could not find recipient {data.channel_name}"
            )
        message_id = await transport.send_message(channel.id, data.content)
        if message_id is None:
            return Maybe.just("Failed to send message")
        return Maybe.just(f"Sent message successfully to {channel.display_name}")

    registry.register_all(
        [
            ToolSpec(
                name="get_discord_guilds",
                description="Get an array of guild discord names that the user is in",
                args_schema=NoArguments,
                handler=_guilds,
                tags=("discord",),
            ),
            ToolSpec(
                name="get_discord_guild_channels",
                description="Get the channels of a specific discord guild",
                args_schema=GuildChannelsInput,
                handler=_guild_channels,
                tags=("discord",),
            ),
            ToolSpec(
                name="get_discord_direct_messages",
                description="Get an array of discord direct message channel names",
                args_schema=NoArguments,
                handler=_direct_messages,
                tags=("discord",),
            ),
            ToolSpec(
                name="get_discord_unread_messages",
                description="Get discord unread mentions, ignoring @everyone and @here",
                args_schema=NoArguments,
                handler=_unread,
                tags=("discord",),
            ),
            ToolSpec(
                name="get_discord_messages",
                description="Get discord messages from a specific channel",
                args_schema=GetMessagesInput,
                handler=_messages,
                tags=("discord",),
            ),
            ToolSpec(
                name="send_discord_message",
                description="Send a message to a specific channel",
                args_schema=SendMessageInput,
                handler=_send,
                tags=("discord",),
            ),
        ]
    )


def _format_message(message: ChatMessage) -> str:
    stamp = f"[{message.timestamp}] " if message.timestamp else ""
    return f"{stamp}{message.author}: {message.content}"
