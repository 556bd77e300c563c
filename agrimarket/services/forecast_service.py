"""
Forecast Service

Live forecast from Open-Meteo for a profile location. Results are cached in a
single local slot keyed by coordinates, so a second location simply replaces
the first.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from agrimarket import config
from agrimarket.errors import ForecastUnavailable
from agrimarket.schemas.widgets import Forecast, ForecastCurrent, ForecastDay

logger = logging.getLogger(__name__)

CACHE_KEY = "weather_cache"

WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Snow fall",
    75: "Heavy snow",
}


def describe_weather(code: int) -> str:
    return WEATHER_DESCRIPTIONS.get(code, "Unknown")


class LocalStore:
    """Tiny key-value store: a JSON file when a path is given, memory otherwise."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._memory: Dict[str, Any] = {}

    def _load(self) -> Dict[str, Any]:
        if self.path is None:
            return self._memory
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {str(e)}")
            return {}

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        if self.path is None:
            self._memory = data
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")


class ForecastService:
    """Geocodes a place name and fetches its current weather and daily outlook."""

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        ttl_seconds: int = config.WEATHER_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or LocalStore(config.WEATHER_CACHE_PATH)
        self.http_client = http_client
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        client = self.http_client or httpx.AsyncClient(timeout=15)
        try:
            response = await client.get(url, params=params)
            if response.status_code >= 400:
                raise ForecastUnavailable(f"Failed to fetch weather: {response.status_code}")
            return response.json()
        except httpx.HTTPError as e:
            raise ForecastUnavailable(f"Failed to fetch weather: {str(e)}") from e
        except ValueError as e:
            raise ForecastUnavailable("Failed to fetch weather: unreadable response") from e
        finally:
            if self.http_client is None:
                await client.aclose()

    async def geocode(self, location: str) -> Tuple[float, float, str]:
        """
        Resolve a place name to coordinates.

        Raises:
            ForecastUnavailable: If the place is unknown or the lookup fails
        """
        payload = await self._get_json(
            config.OPEN_METEO_GEOCODING_URL,
            {"name": location, "count": 1, "language": "en", "format": "json"},
        )
        results = payload.get("results") or []
        if not results:
            raise ForecastUnavailable(
                "Unable to determine your location. Please set a location in your profile."
            )
        top = results[0]
        name = top.get("name", location)
        if top.get("admin1"):
            name = f"{name}, {top['admin1']}"
        return top["latitude"], top["longitude"], name

    async def fetch_forecast(self, latitude: float, longitude: float) -> Tuple[ForecastCurrent, list]:
        payload = await self._get_json(
            config.OPEN_METEO_FORECAST_URL,
            {
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
                "daily": "temperature_2m_max,temperature_2m_min,weather_code",
                "timezone": "auto",
            },
        )
        try:
            current = payload["current"]
            daily = payload["daily"]
            now = ForecastCurrent(
                temperature=round(current["temperature_2m"]),
                weather_code=current["weather_code"],
                description=describe_weather(current["weather_code"]),
                wind_speed=round(current["wind_speed_10m"]),
                humidity=current["relative_humidity_2m"],
            )
            days = [
                ForecastDay(
                    date=day,
                    temp_max=round(daily["temperature_2m_max"][i]),
                    temp_min=round(daily["temperature_2m_min"][i]),
                    weather_code=daily["weather_code"][i],
                    description=describe_weather(daily["weather_code"][i]),
                )
                for i, day in enumerate(daily["time"])
            ]
        except (KeyError, IndexError, TypeError) as e:
            raise ForecastUnavailable("Failed to fetch weather: unexpected response") from e
        return now, days

    async def forecast_for(self, location: str) -> Forecast:
        """Forecast for a place name, served from the cache when fresh."""
        latitude, longitude, name = await self.geocode(location)

        cached = self.store.get(CACHE_KEY)
        now = self.clock()
        if (
            cached
            and cached.get("lat") == latitude
            and cached.get("lon") == longitude
            and now - cached.get("timestamp", 0) < self.ttl_seconds
        ):
            logger.debug(f"Forecast cache hit for {latitude},{longitude}")
            forecast = Forecast.model_validate(cached["data"])
            return forecast.model_copy(update={"location_name": name, "cached": True})

        current, daily = await self.fetch_forecast(latitude, longitude)
        forecast = Forecast(
            location_name=name,
            latitude=latitude,
            longitude=longitude,
            current=current,
            daily=daily,
        )
        self.store.set(CACHE_KEY, {
            "data": forecast.model_dump(mode="json"),
            "timestamp": now,
            "lat": latitude,
            "lon": longitude,
        })
        return forecast
