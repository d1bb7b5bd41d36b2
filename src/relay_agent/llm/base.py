"""Backend protocols for tool classification and answer synthesis."""

from __future__ import annotations

from typing import Any, Protocol

from relay_agent.types import ToolCall


class ClassificationBackend(Protocol):
    async def classify(
        self, user_input: str, tools: list[dict[str, Any]]
    ) -> list[ToolCall] | None:
        """Select the tool calls for `user_input`; `None` or `[]` means none.

        Must accept an empty `tools` list.
        """
        ...


class SynthesisBackend(Protocol):
    async def synthesize(self, results_block: str, user_input: str) -> str | None:
        """Compose the final answer from the tagged results block."""
        ...
