"""Long-term memory tools."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from relay_agent.errors import MemoryPersistenceError
from relay_agent.memory.preferences import PreferenceStore, UserPreferences
from relay_agent.memory.store import MemoryStore, MemoryType
from relay_agent.result import Maybe
from relay_agent.tools.registry import ToolRegistry, ToolSpec
from relay_agent.types import ToolCall

logger = logging.getLogger(__name__)


class AppendMemoryInput(BaseModel):
    key: str = Field(
        min_length=1,
        description=(
            "The unique identifier or contextual key under which the value will be "
            "stored. This could be a topic, category, or any relevant identifier for "
            "easy retrieval later."
        ),
    )
    value: str = Field(
        min_length=1,
        description=(
            "The detailed information to be stored in memory. This should be a "
            "comprehensive and well-structured description, potentially including "
            "context, relationships, or any other relevant details that would be "
            "valuable for future recall and use."
        ),
    )


class RecallMemoryInput(BaseModel):
    context: str = Field(
        min_length=1,
        description=(
            "The topic, question or key associated with the memory to be retrieved."
        ),
    )


class StoreMemoryInput(BaseModel):
    key: str = Field(min_length=1, description="Unique identifier for the memory")
    content: str = Field(min_length=1, description="The content to store")
    type: MemoryType = Field(description="Type of memory being stored")
    tags: list[str] | None = Field(
        default=None, description="Optional tags for categorizing the memory"
    )
    ttl: float | None = Field(
        default=None, gt=0, description="Optional time-to-live in seconds"
    )


class ForgetMemoryInput(BaseModel):
    key: str | None = Field(default=None, description="Specific memory key to forget")
    type: MemoryType | None = Field(default=None, description="Type of memories to forget")
    before: float | None = Field(
        default=None, description="Forget memories older than this unix timestamp (seconds)"
    )
    tags: list[str] | None = Field(default=None, description="Forget memories with specific tags")


class ManagePreferencesInput(BaseModel):
    user_id: str = Field(min_length=1, description="User ID to manage preferences for")
    action: Literal["get", "set"] = Field(description="Whether to get or set preferences")
    preferences: UserPreferences | None = Field(
        default=None, description="Preferences to store (for set action)"
    )


class NoArguments(BaseModel):
    pass


def register_memory_tools(registry: ToolRegistry, memory: MemoryStore) -> None:
    """Register the memory tools.

    Write failures are reported back to the model as the tool's text instead
    of being dropped.
    """

    preferences = PreferenceStore(memory)

    async def _append(
        data: AppendMemoryInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        try:
            memory.set(data.key, data.value, append=True)
        except MemoryPersistenceError as exc:
            logger.error("%s", exc)
            return Maybe.just(f"Failed to store memory: {exc}")
        return Maybe.just(f"Stored memory under key: {data.key}")

    async def _recall(
        data: RecallMemoryInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        return memory.get(data.context)

    async def _store(
        data: StoreMemoryInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        try:
            memory.set(data.key, data.content, type=data.type, tags=data.tags, ttl=data.ttl)
        except MemoryPersistenceError as exc:
            logger.error("%s", exc)
            return Maybe.just(f"Failed to store memory: {exc}")
        return Maybe.just(f"Successfully stored memory with key: {data.key}")

    async def _forget(
        data: ForgetMemoryInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        try:
            count = memory.forget(key=data.key, type=data.type, before=data.before, tags=data.tags)
        except MemoryPersistenceError as exc:
            logger.error("%s", exc)
            return Maybe.just(f"Failed to forget memories: {exc}")
        return Maybe.just(f"Successfully removed {count} memories")

    async def _preferences(
        data: ManagePreferencesInput, raw_input: str, calls: list[ToolCall]
    ) -> Maybe[str]:
        if data.action == "get":
            stored = preferences.get(data.user_id)
            return Maybe.text(stored) if stored else Maybe.just("No preferences found")
        if data.preferences is None:
            return Maybe.just("Invalid action or missing preferences")
        try:
            preferences.update(data.user_id, data.preferences)
        except MemoryPersistenceError as exc:
            logger.error("%s", exc)
            return Maybe.just(f"Failed to manage preferences: {exc}")
        return Maybe.just(f"Successfully updated preferences for user: {data.user_id}")

    async def _stats(data: NoArguments, raw_input: str, calls: list[ToolCall]) -> Maybe[str]:
        return Maybe.text(memory.stats())

    registry.register_all(
        [
            ToolSpec(
                name="append_memory",
                description=(
                    "Appends or updates a detailed value in the system's memory, "
                    "associated with a specific key"
                ),
                args_schema=AppendMemoryInput,
                handler=_append,
                tags=("memory",),
            ),
            ToolSpec(
                name="recall_memory",
                description=(
                    "Retrieves stored values from the system's memory that are relevant "
                    "to a given context or key"
                ),
                args_schema=RecallMemoryInput,
                handler=_recall,
                tags=("memory",),
            ),
            ToolSpec(
                name="store_memory",
                description="Store typed, tagged information in memory, optionally expiring",
                args_schema=StoreMemoryInput,
                handler=_store,
                tags=("memory",),
            ),
            ToolSpec(
                name="forget_memory",
                description="Remove specific memories from the system",
                args_schema=ForgetMemoryInput,
                handler=_forget,
                tags=("memory",),
            ),
            ToolSpec(
                name="manage_preferences",
                description="Store or retrieve user preferences",
                args_schema=ManagePreferencesInput,
                handler=_preferences,
                tags=("memory", "preferences"),
            ),
            ToolSpec(
                name="get_memory_stats",
                description="Get statistics about the memory system",
                args_schema=NoArguments,
                handler=_stats,
                tags=("memory",),
            ),
        ]
    )
