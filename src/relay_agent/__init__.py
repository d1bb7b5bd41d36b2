"""Relay Agent package."""

from .config import AgentConfig, DiscordConfig, LLMConfig, MemoryConfig, ResolverConfig
from .result import Maybe

__all__ = [
    "AgentConfig",
    "DiscordConfig",
    "LLMConfig",
    "Maybe",
    "MemoryConfig",
    "ResolverConfig",
]
