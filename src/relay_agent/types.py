"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from relay_agent.result import Maybe


@dataclass(slots=True, frozen=True)
class ToolCall:
    """One tool invocation selected by the classification backend."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ToolResult:
    """Outcome of one executed tool call.

    `error` is set when the call could not run at all (unknown tool, invalid
    arguments). A handler that ran but had nothing to say sets `result` to
    `Maybe.nothing()`.
    """

    function_name: str
    result: Maybe[str] | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None and not self.result.is_nothing


@dataclass(slots=True, frozen=True)
class DirectoryEntity:
    """A guild, channel, member or direct-message channel from the platform."""

    id: str
    name: str
    display_name: str | None = None
    global_name: str | None = None

    def name_variants(self) -> list[str]:
        variants: list[str] = []
        for candidate in (self.name, self.display_name, self.global_name):
            if candidate and candidate.lower() not in variants:
                variants.append(candidate.lower())
        return variants


@dataclass(slots=True, frozen=True)
class ResolvedEntityMatch:
    """Result of resolving a loose reference to a platform entity."""

    id: str
    display_name: str
    score: float


@dataclass(slots=True)
class ChatMessage:
    """A message fetched from a channel."""

    id: str
    author: str
    content: str
    timestamp: str = ""
    mention_ids: list[str] = field(default_factory=list)
    mentions_everyone: bool = False


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    error: str | None = None
