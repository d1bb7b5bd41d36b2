"""Classify, execute and synthesize: the request loop behind every reply."""

from __future__ import annotations

import asyncio
import logging

from relay_agent.config import AgentConfig
from relay_agent.llm.base import ClassificationBackend, SynthesisBackend
from relay_agent.memory.store import MemoryStore
from relay_agent.obs.tracing import Timer, TraceRecord, TraceStore, estimate_token_count
from relay_agent.result import Maybe
from relay_agent.tools.registry import ToolRegistry
from relay_agent.types import ToolCall, ToolResult, ToolTrace

logger = logging.getLogger(__name__)


class Orchestrator:
    """Turns one user request into one reply.

    The loop always runs classify, execute, synthesize in that order. When
    classification selects nothing, or fails, the execute step is skipped and
    the answer is synthesized from memory and context alone. Tool calls in a
    batch run concurrently and fail independently. Any exception that reaches
    the top of `process_request` is logged and replaced by the configured
    fallback message.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        classifier: ClassificationBackend,
        synthesizer: SynthesisBackend,
        memory: MemoryStore,
        trace_store: TraceStore | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        self.registry = registry
        self.classifier = classifier
        self.synthesizer = synthesizer
        self.memory = memory
        self.trace_store = trace_store or TraceStore()
        self.config = config or AgentConfig()

    async def process_request(
        self, user_input: str, context: Maybe[str] | None = None
    ) -> str:
        record = await self.run(user_input, context)
        return record.answer

    async def run(self, user_input: str, context: Maybe[str] | None = None) -> TraceRecord:
        """Process one request and return its trace record, answer included."""
        calls: list[ToolCall] = []
        traces: list[ToolTrace] = []
        recalled = False
        block = ""
        fell_back = False

        with Timer() as timer:
            try:
                memory_segment = self.memory.get(user_input)
                recalled = not memory_segment.is_nothing
                calls = await self._classify(user_input)

                results: list[ToolResult] = []
                if calls:
                    logger.info("Executing tool calls: %s", [call.name for call in calls])
                    results, traces = await self._execute(calls, user_input)

                block = format_results_block(results, memory_segment, context)
                answer = await self.synthesizer.synthesize(block, user_input)
                if not answer:
                    fell_back = True
                    answer = self.config.fallback_message
            except Exception:
                logger.exception("Request processing failed")
                fell_back = True
                answer = self.config.fallback_message

        return self.trace_store.create_record(
            question=user_input,
            answer=answer,
            tool_calls=[call.name for call in calls],
            tool_traces=traces,
            memory_recalled=recalled,
            fell_back=fell_back,
            input_tokens=estimate_token_count(user_input) + estimate_token_count(block),
            output_tokens=estimate_token_count(answer),
            latency_ms=timer.elapsed_ms,
        )

    async def _classify(self, user_input: str) -> list[ToolCall]:
        try:
            calls = await self.classifier.classify(user_input, self.registry.schemas())
        except Exception:
            logger.exception("Tool classification failed; answering without tools")
            return []
        return list(calls or [])

    async def _execute(
        self, calls: list[ToolCall], user_input: str
    ) -> tuple[list[ToolResult], list[ToolTrace]]:
        # Traces arrive in completion order, results keep call order.
        traces: list[ToolTrace] = []
        results = await asyncio.gather(
            *(self.registry.execute(call, user_input, calls, traces.append) for call in calls)
        )
        return list(results), traces


def format_results_block(
    results: list[ToolResult],
    memory_segment: Maybe[str],
    context: Maybe[str] | None = None,
) -> str:
    """Tag each tool output with its tool name and append memory and context.

    Failed calls are logged and left out; a call whose handler found nothing
    still gets a segment so the model knows the tool ran.
    """

    segments: list[str] = []
    for result in results:
        if result.error is not None:
            logger.error("[%s] %s", result.function_name, result.error)
            continue
        if result.result is None:
            logger.error("[%s] No result", result.function_name)
            continue
        body = result.result.get_or_else("No result")
        segments.append(f"<{result.function_name}>\n{body}\n</{result.function_name}>")

    segments.append(f"<memory-recall>\n{memory_segment.get_or_else('No memory')}\n</memory-recall>")
    if context is not None:
        segments.append(f"<context>\n{context.get_or_else('No context')}\n</context>")
    return "\n".join(segments)
