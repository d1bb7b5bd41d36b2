"""Configuration models for the assistant bot."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from relay_agent.errors import MissingCredentialsError


class ResolverConfig(BaseModel):
    """Configures fuzzy entity resolution."""

    tolerance: float = Field(default=0.7, ge=0.0, le=1.0)


class MemoryConfig(BaseModel):
    """Configures the disk-backed memory store and its section ranking."""

    base_path: Path = Field(default=Path(".discord/memory"))
    section_size: int = Field(default=3, ge=1)
    important_terms: int = Field(default=10, ge=1)
    top_sections: int = Field(default=5, ge=1)
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    conversation_ttl_seconds: float = Field(default=30 * 24 * 60 * 60, gt=0.0)


class AgentConfig(BaseModel):
    """Configures the orchestration loop."""

    fallback_message: str = "I'm sorry, I couldn't understand that. Please try again."
    max_input_chars: int = Field(default=400, ge=1)


class LLMConfig(BaseModel):
    """Configures the chat model used for classification and synthesis."""

    api_key: str | None = None
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )


class DiscordConfig(BaseModel):
    """Credentials and endpoint for the Discord REST and gateway clients."""

    token: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    api_base_url: str = "https://discord.com/api/v10"

    @classmethod
    def from_env(cls) -> "DiscordConfig":
        """Read credentials from the environment.

        Missing credentials are the only error allowed to abort the process.
        """

        token = os.getenv("DISCORD_TOKEN")
        user_id = os.getenv("DISCORD_USER_ID")
        if not token:
            raise MissingCredentialsError("DISCORD_TOKEN is not set")
        if not user_id:
            raise MissingCredentialsError("DISCORD_USER_ID is not set")
        return cls(token=token, user_id=user_id)
