"""Optional result wrapper and type-dispatched value formatting."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import singledispatch
from typing import Any, Generic, TypeVar

import yaml
from pydantic import BaseModel

T = TypeVar("T")
U = TypeVar("U")

NOTHING_TEXT = "N/A"


@dataclass(slots=True, frozen=True)
class Maybe(Generic[T]):
    """A value that is either present (`just`) or absent (`nothing`).

    Tools return `Maybe[str]` instead of raising, so the orchestrator can treat
    "no result" and "upstream failure" identically.
    """

    value: T | None = None
    present: bool = False

    @classmethod
    def just(cls, value: T) -> "Maybe[T]":
        return cls(value=value, present=True)

    @classmethod
    def nothing(cls) -> "Maybe[T]":
        return cls()

    @classmethod
    def text(cls, value: Any) -> "Maybe[str]":
        """Wrap any value as formatted text; `None` becomes nothing."""
        if value is None:
            return cls.nothing()
        if isinstance(value, Maybe):
            return value.map(format_value)
        return cls.just(format_value(value))

    @property
    def is_nothing(self) -> bool:
        return not self.present

    def map(self, fn: Callable[[T], U]) -> "Maybe[U]":
        if not self.present:
            return Maybe.nothing()
        return Maybe.just(fn(self.value))  # type: ignore[arg-type]

    def get_or_else(self, default: T) -> T:
        if not self.present:
            return default
        return self.value  # type: ignore[return-value]

    def render(self) -> str:
        if not self.present:
            return NOTHING_TEXT
        return format_value(self.value)


@singledispatch
def format_value(value: Any) -> str:
    """Format a tool value as text for the synthesis prompt."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_yaml(dataclasses.asdict(value))
    return str(value)


@format_value.register(type(None))
def _(value: None) -> str:
    return NOTHING_TEXT


@format_value.register
def _(value: str) -> str:
    return value


@format_value.register
def _(value: bool) -> str:
    return "Yes" if value else "No"


@format_value.register(int)
@format_value.register(float)
def _(value: int | float) -> str:
    return str(value)


@format_value.register(list)
@format_value.register(tuple)
def _(value: list[Any] | tuple[Any, ...]) -> str:
    if all(isinstance(item, (str, int, float, bool)) for item in value):
        return ", ".join(format_value(item) for item in value)
    return _to_yaml([_plain(item) for item in value])


@format_value.register(dict)
def _(value: Mapping[str, Any]) -> str:
    return _to_yaml(_plain(value))


@format_value.register
def _(value: BaseModel) -> str:
    return _to_yaml(value.model_dump(mode="json", exclude_none=True))


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _to_yaml(data: Any) -> str:
    return yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    ).strip()
