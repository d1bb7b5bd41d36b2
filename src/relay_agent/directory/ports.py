"""Contracts for the chat platform collaborators."""

from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel, Field

from relay_agent.types import ChatMessage, DirectoryEntity

AttachmentKind = Literal["link", "embed", "file", "image", "video", "audio"]


class MessageFilters(BaseModel):
    """Filters applied when fetching channel history."""

    limit: int = Field(default=50, ge=1, le=100)
    before: str | None = None
    after: str | None = None
    has: AttachmentKind | None = None
    mentions: str | None = None
    mentioned: bool = False


class DirectoryProvider(Protocol):
    """Lists the entities the bot account can see.

    Implementations return an empty list when the upstream call fails.
    """

    async def list_guilds(self) -> list[DirectoryEntity]:
        """Guilds the account is a member of."""

    async def list_channels(self, guild_id: str) -> list[DirectoryEntity]:
        """Channels of one guild."""

    async def list_members(self, guild_id: str) -> list[DirectoryEntity]:
        """Members of one guild; `id` is the user id."""

    async def list_direct_message_channels(self) -> list[DirectoryEntity]:
        """Open one-to-one DM channels, named after their recipient."""


class MessageTransport(Protocol):
    """Reads and writes channel messages.

    Implementations return `None` or an empty list when the upstream call fails.
    """

    async def send_message(self, channel_id: str, content: str) -> str | None:
        """Post `content`; returns the new message id."""

    async def fetch_messages(
        self, channel_id: str, filters: MessageFilters
    ) -> list[ChatMessage]:
        """Recent messages of a channel, newest first."""

    async def list_mentions(self, limit: int = 100) -> list[ChatMessage]:
        """Recent messages that mention the account."""

    async def open_direct_message(self, user_id: str) -> str | None:
        """Open (or reuse) a DM channel with a user; returns its id."""
