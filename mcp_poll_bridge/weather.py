"""National Weather Service tools served over the polling transport."""

import logging
from typing import Annotated, Any

import httpx
from pydantic import Field

from .config import Settings
from .core import PollingMCP
from .errors import UpstreamUnavailableError

__all__ = ["NWSClient", "format_alert", "format_period", "register_weather_tools"]

logger = logging.getLogger(__name__)


class NWSClient:
    """Fetch-and-parse helper for the NWS JSON API."""

    __slots__ = ("_base_url", "_timeout", "_transport", "_user_agent")

    def __init__(
        self,
        base_url: str = "https://api.weather.gov",
        user_agent: str = "weather-app/1.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "NWSClient":
        return cls(
            base_url=settings.nws_api_base,
            user_agent=settings.user_agent,
            timeout=settings.request_timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_json(self, url: str) -> Any:
        headers = {"User-Agent": self._user_agent, "Accept": "application/geo+json"}
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as err:
                raise UpstreamUnavailableError(f"HTTP error! status: {err.response.status_code}") from err
            except (httpx.HTTPError, ValueError) as err:
                raise UpstreamUnavailableError(str(err) or type(err).__name__) from err

    async def fetch(self, url: str) -> Any | None:
        """GET ``url`` and decode JSON; any failure yields ``None``."""
        try:
            return await self._get_json(url)
        except UpstreamUnavailableError as err:
            logger.error("Error making NWS request to %s: %s", url, err)
            return None


def format_alert(feature: dict[str, Any]) -> str:
    props = feature.get("properties") or {}
    return "\n".join(
        [
            f"Event: {props.get('event') or 'Unknown'}",
            f"Area: {props.get('areaDesc') or 'Unknown'}",
            f"Severity: {props.get('severity') or 'Unknown'}",
            f"Status: {props.get('status') or 'Unknown'}",
            f"Headline: {props.get('headline') or 'No headline'}",
            "---",
        ]
    )


def format_period(period: dict[str, Any]) -> str:
    temperature = period.get("temperature")
    if temperature is None:
        temperature = "Unknown"
    return "\n".join(
        [
            f"{period.get('name') or 'Unknown'}:",
            f"Temperature: {temperature}°{period.get('temperatureUnit') or 'F'}",
            f"Wind: {period.get('windSpeed') or 'Unknown'} {period.get('windDirection') or ''}",
            f"{period.get('shortForecast') or 'No forecast available'}",
            "---",
        ]
    )


def register_weather_tools(mcp: PollingMCP, client: NWSClient) -> None:
    """Register the ``get-alerts`` and ``get-forecast`` tools on ``mcp``."""

    @mcp.tool(name="get-alerts", description="Get weather alerts for a state")
    async def get_alerts(
        state: Annotated[str, Field(min_length=2, max_length=2, description="Two-letter state code (e.g. CA, NY)")],
    ) -> str:
        state_code = state.upper()
        data = await client.fetch(f"{client.base_url}/alerts?area={state_code}")
        if not isinstance(data, dict):
            return "Failed to retrieve alerts data"

        features = data.get("features") or []
        if not features:
            return f"No active alerts for {state_code}"

        alerts = "\n".join(format_alert(feature) for feature in features)
        return f"Active alerts for {state_code}:\n\n{alerts}"

    @mcp.tool(name="get-forecast", description="Get weather forecast for a location")
    async def get_forecast(
        latitude: Annotated[float, Field(ge=-90, le=90, description="Latitude of the location")],
        longitude: Annotated[float, Field(ge=-180, le=180, description="Longitude of the location")],
    ) -> str:
        points = await client.fetch(f"{client.base_url}/points/{latitude:.4f},{longitude:.4f}")
        if not isinstance(points, dict):
            return (
                f"Failed to retrieve grid point data for coordinates: {latitude}, {longitude}. "
                "This location may not be supported by the NWS API (only US locations are supported)."
            )

        forecast_url = (points.get("properties") or {}).get("forecast")
        if not forecast_url:
            return "Failed to get forecast URL from grid point data"

        forecast = await client.fetch(forecast_url)
        if not isinstance(forecast, dict):
            return "Failed to retrieve forecast data"

        periods = (forecast.get("properties") or {}).get("periods") or []
        if not periods:
            return "No forecast periods available"

        text = "\n".join(format_period(period) for period in periods)
        return f"Forecast for {latitude}, {longitude}:\n\n{text}"
