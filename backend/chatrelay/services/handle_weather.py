"""Weather Handlers — getWeather via Open-Meteo behind its own circuit breaker.

Invariants:
    - Every HTTP call goes through the `weather` breaker; when it is open the
      tool fails with service_degraded without touching the network
    - Transport failures and non-2xx responses count against the breaker
"""

import logging

import httpx

from chatrelay.core.errors import ToolExecutionError
from chatrelay.services.define_weather_tools import GetWeatherArgs
from chatrelay.services.tool_context import ToolContext

logger = logging.getLogger(__name__)


class WeatherHandlers:

    def __init__(self, ctx: ToolContext):
        self.ctx = ctx

    async def get_weather(self, args: GetWeatherArgs) -> dict:
        error_ctx = self.ctx.error_context("getWeather")
        if self.ctx.http is None or self.ctx.weather_breaker is None:
            raise ToolExecutionError("Weather lookups are not configured", error_ctx)

        async def fetch() -> dict:
            response = await self.ctx.http.get(self.ctx.weather_api_url, params={
                "latitude": args.latitude,
                "longitude": args.longitude,
                "current": "temperature_2m",
                "hourly": "temperature_2m",
                "daily": "sunrise,sunset",
                "timezone": "auto",
            })
            response.raise_for_status()
            return response.json()

        try:
            data = await self.ctx.weather_breaker.call(fetch, error_ctx)
        except httpx.HTTPStatusError as e:
            raise ToolExecutionError(
                f"Weather API request failed: {e.response.status_code}", error_ctx,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ToolExecutionError(f"Weather API request failed: {e}", error_ctx) from e

        if not isinstance(data, dict) or "current" not in data:
            raise ToolExecutionError("Invalid weather data received from API", error_ctx)
        return data
