"""Deterministic backend used when no chat model is configured."""

from __future__ import annotations

import re
from typing import Any

from relay_agent.types import ToolCall

_SEGMENT_PATTERN = re.compile(r"<(?P<tag>[\w-]+)>\n(?P<body>.*?)\n?</(?P=tag)>", flags=re.DOTALL)
_EMPTY_BODIES = {"", "No memory", "No context", "No result"}


class DeterministicBackend:
    """Backend that answers from the results block without an LLM.

    It never selects tools, so the orchestrator only ever hands it memory and
    context segments; tool segments are still echoed if a caller supplies them.
    Useful for local and offline environments where `OPENAI_API_KEY` is not
    configured.
    """

    def __init__(self, *, max_lines: int = 3) -> None:
        self.max_lines = max_lines

    async def classify(
        self, user_input: str, tools: list[dict[str, Any]]
    ) -> list[ToolCall] | None:
        return None

    async def synthesize(self, results_block: str, user_input: str) -> str | None:
        lines: list[str] = []
        for tag, body in _parse_segments(results_block):
            if tag == "context":
                continue
            kept = [line.strip() for line in body.splitlines() if line.strip()]
            for line in kept[: self.max_lines]:
                lines.append(f"{len(lines) + 1}. {line}")
        return "\n".join(lines) if lines else None


def _parse_segments(block: str) -> list[tuple[str, str]]:
    segments: list[tuple[str, str]] = []
    for match in _SEGMENT_PATTERN.finditer(block):
        body = match.group("body").strip()
        if body in _EMPTY_BODIES:
            continue
        segments.append((match.group("tag"), body))
    return segments
