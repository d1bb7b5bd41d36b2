"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relay_agent.result import Maybe
from relay_agent.types import ToolCall, ToolResult, ToolTrace

logger = logging.getLogger(__name__)

FUNCTION_NOT_FOUND = "Function not found in registry"

ToolHandler = Callable[[Any, str, list[ToolCall]], Awaitable[Maybe[str]]]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation.

    The handler receives the validated arguments, the raw user input and every
    tool call of the current batch. It reports "no result" as
    `Maybe.nothing()` rather than raising.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler
    tags: tuple[str, ...] = ()

    async def invoke(
        self, payload: dict[str, Any], raw_input: str = "", calls: list[ToolCall] | None = None
    ) -> Maybe[str]:
        data = self.args_schema.model_validate(payload)
        return await self.handler(data, raw_input, calls or [])

    def parameter_schema(self) -> dict[str, Any]:
        """Arguments as `{type: object, properties, required}` for the LLM backend."""
        schema = self.args_schema.model_json_schema()
        definitions = schema.get("$defs", {})
        return {
            "type": "object",
            "properties": {
                name: _property_schema(prop, definitions)
                for name, prop in schema.get("properties", {}).items()
            },
            "required": list(schema.get("required", [])),
        }

    def as_tool_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema(),
            },
        }


class ToolRegistry:
    """Flat name -> tool mapping, assembled once at startup.

    Registering two tools under one name is a startup error instead of a
    silent overwrite.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def register_all(self, specs: Iterable[ToolSpec]) -> None:
        for spec in specs:
            self.register(spec)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def schemas(self) -> list[dict[str, Any]]:
        return [spec.as_tool_schema() for spec in self._tools.values()]

    async def execute(
        self,
        call: ToolCall,
        raw_input: str,
        calls: list[ToolCall],
        observer: Callable[[ToolTrace], None] | None = None,
    ) -> ToolResult:
        """Run one call of a batch, converting every failure into a `ToolResult` error.

        `observer`, when given, receives a `ToolTrace` for the call, unknown
        tools included. It is passed per call so concurrent requests never
        share a callback.
        """
        start = perf_counter()
        spec = self._tools.get(call.name)
        if spec is None:
            logger.warning("Tool call for unregistered function %r", call.name)
            result = ToolResult(function_name=call.name, error=FUNCTION_NOT_FOUND)
        else:
            try:
                output = await spec.invoke(call.arguments, raw_input, calls)
                result = ToolResult(function_name=call.name, result=output)
            except ValidationError as exc:
                logger.warning("Invalid arguments for %s: %s", call.name, exc)
                result = ToolResult(
                    function_name=call.name,
                    error=f"Invalid arguments: {exc.error_count()} validation error(s)",
                )
            except Exception as exc:
                logger.exception("Tool %s raised", call.name)
                result = ToolResult(function_name=call.name, error=str(exc) or type(exc).__name__)
        latency_ms = (perf_counter() - start) * 1000.0

        if observer is not None:
            preview = result.result.render() if result.result is not None else ""
            observer(
                ToolTrace(
                    name=call.name,
                    input_payload=dict(call.arguments),
                    output_preview=preview[:320],
                    latency_ms=latency_ms,
                    error=result.error,
                )
            )
        return result


def _property_schema(prop: dict[str, Any], definitions: dict[str, Any]) -> dict[str, Any]:
    """Flatten one pydantic JSON-schema property to `{type, description, enum?}`."""
    resolved = _resolve(prop, definitions)
    output: dict[str, Any] = {"type": resolved.get("type", "string")}

    description = prop.get("description") or resolved.get("description")
    if description:
        output["description"] = description
    if "enum" in resolved:
        output["enum"] = list(resolved["enum"])
    if output["type"] == "array" and "items" in resolved:
        output["items"] = {"type": _resolve(resolved["items"], definitions).get("type", "string")}
    if output["type"] == "object" and "properties" in resolved:
        output["properties"] = {
            name: _property_schema(child, definitions)
            for name, child in resolved["properties"].items()
        }
    return output


def _resolve(prop: dict[str, Any], definitions: dict[str, Any]) -> dict[str, Any]:
    if "$ref" in prop:
        name = prop["$ref"].rsplit("/", 1)[-1]
        return _resolve(definitions.get(name, {}), definitions)
    if "anyOf" in prop:
        options = [option for option in prop["anyOf"] if option.get("type") != "null"]
        if options:
            return _resolve(options[0], definitions)
    return prop
