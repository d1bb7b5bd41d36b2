"""Current-weather lookup backed by the Open-Meteo API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field

from relay_agent.result import Maybe
from relay_agent.tools.registry import ToolRegistry, ToolSpec
from relay_agent.types import ToolCall

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


class TemperatureUnit(str, Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


class WeatherInput(BaseModel):
    location: str = Field(min_length=1, description="The city and state, e.g. San Francisco, CA")
    format: TemperatureUnit = Field(
        description="The temperature unit to use. Infer this from the users location.",
    )


class WeatherClient:
    """Geocodes a place name and reads its current conditions."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self.http = http

    async def current(self, location: str, unit: TemperatureUnit) -> dict[str, Any] | None:
        try:
            place = await self._geocode(location)
            if place is None:
                return None
            response = await self.http.get(
                FORECAST_URL,
                params={
                    "latitude": place["latitude"],
                    "longitude": place["longitude"],
                    "current": "temperature_2m,wind_speed_10m",
                    "temperature_unit": unit.value,
                },
            )
            response.raise_for_status()
            current = response.json().get("current") or {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Weather lookup for %r failed: %s", location, exc)
            return None

        if "temperature_2m" not in current:
            return None
        resolved = ", ".join(
            part for part in (place.get("name"), place.get("admin1"), place.get("country")) if part
        )
        return {
            "location": location,
            "resolved_location": resolved,
            "temp": current["temperature_2m"],
            "unit": "C" if unit is TemperatureUnit.CELSIUS else "F",
            "wind_speed_kmh": current.get("wind_speed_10m"),
        }

    async def _geocode(self, location: str) -> dict[str, Any] | None:
        # Open-Meteo only matches the place name, not "City, ST".
        name = location.split(",", 1)[0].strip()
        response = await self.http.get(
            GEOCODING_URL, params={"name": name, "count": 1, "format": "json"}
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        return results[0] if results else None


def register_weather_tools(registry: ToolRegistry, client: WeatherClient) -> None:
    """Register `get_current_weather`."""

    async def _weather(data: WeatherInput, raw_input: str, calls: list[ToolCall]) -> Maybe[str]:
        report = await client.current(data.location, data.format)
        return Maybe.text(report)

    registry.register(
        ToolSpec(
            name="get_current_weather",
            description="Get the current weather",
            args_schema=WeatherInput,
            handler=_weather,
            tags=("weather",),
        )
    )
