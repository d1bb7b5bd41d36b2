"""Discord REST adapter implementing the directory and transport contracts."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from relay_agent.config import DiscordConfig
from relay_agent.directory.cache import DirectoryCache
from relay_agent.directory.ports import MessageFilters
from relay_agent.types import ChatMessage, DirectoryEntity

logger = logging.getLogger(__name__)

_DM_CHANNEL_TYPE = 1


class DiscordRestDirectory:
    """Directory provider and message transport over the Discord HTTP API.

    Listings go through the shared `DirectoryCache`; message reads, mentions
    and sends always hit the API. Every upstream failure is logged and turned
    into an empty result.
    """

    def __init__(
        self,
        config: DiscordConfig,
        *,
        cache: DirectoryCache | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.cache = cache or DirectoryCache()
        self._client = client or httpx.AsyncClient(
            base_url=config.api_base_url,
            headers={
                "Authorization": config.token,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(15.0),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_guilds(self) -> list[DirectoryEntity]:
        async def _fetch() -> list[DirectoryEntity] | None:
            payload = await self._request("GET", "/users/@me/guilds")
            if payload is None:
                return None
            return [
                DirectoryEntity(id=str(item["id"]), name=str(item.get("name", "")))
                for item in payload
            ]

        return await self.cache.get_or_fetch("guilds", _fetch) or []

    async def list_channels(self, guild_id: str) -> list[DirectoryEntity]:
        async def _fetch() -> list[DirectoryEntity] | None:
            payload = await self._request("GET", f"/guilds/{guild_id}/channels")
            if payload is None:
                return None
            return [
                DirectoryEntity(id=str(item["id"]), name=str(item.get("name") or ""))
                for item in payload
                if item.get("name")
            ]

        return await self.cache.get_or_fetch(f"guild_channels_{guild_id}", _fetch) or []

    async def list_members(self, guild_id: str) -> list[DirectoryEntity]:
        async def _fetch() -> list[DirectoryEntity] | None:
            payload = await self._request(
                "GET", f"/guilds/{guild_id}/members", params={"limit": 1000}
            )
            if payload is None:
                return None
            members: list[DirectoryEntity] = []
            for item in payload:
                user = item.get("user") or {}
                if "id" not in user:
                    continue
                members.append(
                    DirectoryEntity(
                        id=str(user["id"]),
                        name=str(user.get("username", "")),
                        display_name=item.get("nick"),
                        global_name=user.get("global_name"),
                    )
                )
            return members

        return await self.cache.get_or_fetch(f"guild_members_{guild_id}", _fetch) or []

    async def list_direct_message_channels(self) -> list[DirectoryEntity]:
        async def _fetch() -> list[DirectoryEntity] | None:
            payload = await self._request("GET", "/users/@me/channels")
            if payload is None:
                return None
            channels: list[DirectoryEntity] = []
            for item in payload:
                if item.get("type") != _DM_CHANNEL_TYPE or not item.get("recipients"):
                    continue
                recipient = item["recipients"][0]
                channels.append(
                    DirectoryEntity(
                        id=str(item["id"]),
                        name=str(recipient.get("username", "")),
                        global_name=recipient.get("global_name"),
                    )
                )
            return channels

        return await self.cache.get_or_fetch("direct_messages", _fetch) or []

    async def send_message(self, channel_id: str, content: str) -> str | None:
        payload = await self._request(
            "POST", f"/channels/{channel_id}/messages", json={"content": content}
        )
        if not payload or "id" not in payload:
            return None
        return str(payload["id"])

    async def fetch_messages(
        self, channel_id: str, filters: MessageFilters
    ) -> list[ChatMessage]:
        params: dict[str, Any] = {"limit": filters.limit}
        for name in ("before", "after", "has", "mentions"):
            value = getattr(filters, name)
            if value:
                params[name] = value

        payload = await self._request(
            "GET", f"/channels/{channel_id}/messages", params=params
        )
        messages = [_parse_message(item) for item in payload or []]
        if filters.mentioned:
            messages = [msg for msg in messages if self.config.user_id in msg.mention_ids]
        return messages

    async def list_mentions(self, limit: int = 100) -> list[ChatMessage]:
        payload = await self._request(
            "GET", "/users/@me/mentions", params={"limit": limit}
        )
        return [_parse_message(item) for item in payload or []]

    async def open_direct_message(self, user_id: str) -> str | None:
        payload = await self._request(
            "POST", "/users/@me/channels", json={"recipient_id": user_id}
        )
        if not payload or "id" not in payload:
            return None
        self.cache.invalidate("direct_messages")
        return str(payload["id"])

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Discord %s %s failed: %s", method, path, exc)
            return None


def _parse_message(item: dict[str, Any]) -> ChatMessage:
    author = item.get("author") or {}
    return ChatMessage(
        id=str(item.get("id", "")),
        author=str(author.get("username", "unknown")),
        content=str(item.get("content", "")),
        timestamp=str(item.get("timestamp", "")),
        mention_ids=[str(m["id"]) for m in item.get("mentions", []) if "id" in m],
        mentions_everyone=bool(item.get("mention_everyone", False)),
    )
