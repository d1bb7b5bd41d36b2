import httpx
import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage

from relay_agent.llm.fallback import DeterministicBackend
from relay_agent.llm.langchain import _SYSTEM_PROMPT, LangChainBackend
from relay_agent.memory.store import MemoryStore
from relay_agent.tools.builtin import build_registry


def test_prompt_describes_result_segments() -> None:
    assert "<memory-recall>" in _SYSTEM_PROMPT
    assert "<context>" in _SYSTEM_PROMPT
    assert "failure" in _SYSTEM_PROMPT


def test_builtin_tool_schemas_have_function_shape() -> None:
    registry = build_registry(memory=MemoryStore(), http=httpx.AsyncClient())

    for schema in registry.schemas():
        assert schema["type"] == "function"
        function = schema["function"]
        assert set(function) == {"name", "description", "parameters"}
        parameters = function["parameters"]
        assert parameters["type"] == "object"
        assert set(parameters["required"]) <= set(parameters["properties"])
        for prop in parameters["properties"].values():
            assert "type" in prop

    weather = next(s for s in registry.schemas() if s["function"]["name"] == "get_current_weather")
    assert weather["function"]["parameters"]["properties"]["format"]["enum"] == [
        "celsius",
        "fahrenheit",
    ]


class _BoundModel:
    def __init__(self, response: AIMessage) -> None:
        self.response = response
        self.messages: list = []

    async def ainvoke(self, messages: list) -> AIMessage:
        self.messages = messages
        return self.response


class _ToolCallingModel:
    def __init__(self, response: AIMessage) -> None:
        self.bound = _BoundModel(response)
        self.tools: list = []

    def bind_tools(self, tools: list) -> _BoundModel:
        self.tools = tools
        return self.bound


@pytest.mark.asyncio
async def test_langchain_classify_maps_tool_calls() -> None:
    response = AIMessage(
        content="",
        tool_calls=[
            {
                "name": "get_current_weather",
                "args": {"location": "Boston, MA", "format": "fahrenheit"},
                "id": "call-1",
            }
        ],
    )
    model = _ToolCallingModel(response)
    backend = LangChainBackend(model)
    tools = [{"type": "function", "function": {"name": "get_current_weather"}}]

    calls = await backend.classify("weather in Boston?", tools)

    assert model.tools == tools
    assert calls is not None
    assert [(call.name, call.arguments) for call in calls] == [
        ("get_current_weather", {"location": "Boston, MA", "format": "fahrenheit"})
    ]


@pytest.mark.asyncio
async def test_langchain_classify_handles_no_tools() -> None:
    model = _ToolCallingModel(AIMessage(content="just chatting"))
    backend = LangChainBackend(model)

    assert await backend.classify("hi", []) is None
    assert model.tools == []
    assert await backend.classify("hi", [{"type": "function", "function": {"name": "x"}}]) is None


@pytest.mark.asyncio
async def test_langchain_synthesize_returns_text() -> None:
    model = GenericFakeChatModel(messages=iter([AIMessage(content="  It is sunny.  ")]))
    backend = LangChainBackend(model)

    answer = await backend.synthesize("<weather>\nsunny\n</weather>", "How is the weather?")

    assert answer == "It is sunny."


@pytest.mark.asyncio
async def test_deterministic_backend_extracts_segments() -> None:
    backend = DeterministicBackend()

    assert await backend.classify("anything", [{"type": "function"}]) is None
    answer = await backend.synthesize(
        "<memory-recall>\nnotes: teal is the color\n</memory-recall>\n<context>\nsender: a\n</context>",
        "color?",
    )
    assert answer == "1. notes: teal is the color"
    assert await backend.synthesize("<memory-recall>\nNo memory\n</memory-recall>", "x") is None
