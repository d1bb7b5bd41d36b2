"""Assembly of the default tool set."""

from __future__ import annotations

import httpx

from relay_agent.directory.ports import DirectoryProvider, MessageTransport
from relay_agent.memory.store import MemoryStore
from relay_agent.resolver import EntityResolver
from relay_agent.tools.discord import register_discord_tools
from relay_agent.tools.memory import register_memory_tools
from relay_agent.tools.registry import ToolRegistry
from relay_agent.tools.social import register_social_tools
from relay_agent.tools.weather import WeatherClient, register_weather_tools


def build_registry(
    *,
    memory: MemoryStore,
    http: httpx.AsyncClient,
    directory: DirectoryProvider | None = None,
    transport: MessageTransport | None = None,
    resolver: EntityResolver | None = None,
) -> ToolRegistry:
    """Build the registry used by the orchestrator.

    Tools:
    - weather: `get_current_weather`.
    - social: `get_github_profile`, `search_username`.
    - memory: `append_memory`, `recall_memory`, `store_memory`,
      `forget_memory`, `manage_preferences`, `get_memory_stats`.
    - discord: registered only when a directory and transport are given.

    A name registered twice raises `ValueError` here, at startup.
    """

    registry = ToolRegistry()
    register_weather_tools(registry, WeatherClient(http))
    register_social_tools(registry, http)
    register_memory_tools(registry, memory)
    if directory is not None and transport is not None:
        register_discord_tools(
            registry,
            directory,
            transport,
            resolver or EntityResolver(directory, transport=transport),
        )
    return registry
