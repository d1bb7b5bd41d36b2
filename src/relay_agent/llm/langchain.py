"""LangChain chat-model backend for classification and synthesis."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.prompts import ChatPromptTemplate

from relay_agent.config import LLMConfig
from relay_agent.types import ToolCall

logger = logging.getLogger(__name__)

_CLASSIFY_PROMPT = (
    "Assist the user based on their request using the available tools. "
    "Keep responses clear and relevant."
)

_SYSTEM_PROMPT = """
You are a personal assistant living in the user's Discord account.

Rules:
1) Answer from the tagged blocks you are given. Each `<tool_name>` block holds
   the output of a tool that already ran for this request.
2) `<memory-recall>` holds notes remembered from earlier conversations and
   `<context>` describes who is talking and where.
3) If a tool reported a failure, say so plainly instead of guessing.
4) Keep replies short enough for a chat message and match the user's tone.
""".strip()


class LangChainBackend:
    """Classification and synthesis over any LangChain chat model.

    Classification binds the registry's function schemas with `bind_tools` and
    reads `tool_calls` off the response. Synthesis renders the system prompt,
    the results block and the user input through a `ChatPromptTemplate`.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", _SYSTEM_PROMPT),
                ("system", "{results}"),
                ("human", "{input}"),
            ]
        )

    async def classify(
        self, user_input: str, tools: list[dict[str, Any]]
    ) -> list[ToolCall] | None:
        if not tools:
            return None
        model = self.llm.bind_tools(tools)
        response = await model.ainvoke(
            [SystemMessage(content=_CLASSIFY_PROMPT), HumanMessage(content=user_input)]
        )
        tool_calls = getattr(response, "tool_calls", None) or []
        calls = [
            ToolCall(name=str(call["name"]), arguments=dict(call.get("args") or {}))
            for call in tool_calls
        ]
        logger.debug("Classified %d tool call(s): %s", len(calls), [call.name for call in calls])
        return calls or None

    async def synthesize(self, results_block: str, user_input: str) -> str | None:
        chain = self.prompt | self.llm
        response = await chain.ainvoke({"results": results_block, "input": user_input})
        answer = _message_text(response).strip()
        return answer or None


def create_chat_model(config: LLMConfig) -> Any:
    """Build the OpenAI-compatible chat model described by `config`."""

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return " ".join(parts)
    return str(content)
