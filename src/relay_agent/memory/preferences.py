"""Per-user preferences kept as memory documents."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from relay_agent.memory.store import MemoryStore


class UserPreferences(BaseModel):
    language: str | None = None
    timezone: str | None = None
    communication_style: Literal["formal", "casual"] | None = None
    notifications_enabled: bool | None = None
    notification_types: list[str] | None = None
    custom_settings: dict[str, Any] = Field(default_factory=dict)


class PreferenceStore:
    """Reads and merges `UserPreferences` stored under `preferences:<user>`."""

    def __init__(self, memory: MemoryStore) -> None:
        self.memory = memory

    def get(self, user_id: str) -> UserPreferences | None:
        raw = self.memory.fetch(_key(user_id)).get_or_else(None)
        if raw is None:
            return None
        try:
            return UserPreferences.model_validate_json(raw)
        except ValidationError:
            return None

    def update(self, user_id: str, changes: UserPreferences) -> UserPreferences:
        """Merge `changes` over the stored preferences; `custom_settings` merges per key."""
        current = self.get(user_id) or UserPreferences()
        merged = current.model_copy(
            update={
                **changes.model_dump(exclude_none=True, exclude={"custom_settings"}),
                "custom_settings": {**current.custom_settings, **changes.custom_settings},
            }
        )
        self.memory.set(_key(user_id), merged.model_dump_json(), type="preference")
        return merged


def _key(user_id: str) -> str:
    return f"preferences:{user_id}"
