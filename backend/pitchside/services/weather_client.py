from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from statistics import mean
from time import monotonic
from typing import Any

import httpx
import structlog

from pitchside.config import Settings

logger = structlog.get_logger(__name__)

RETRYABLE_HTTP_STATUS = {408, 429, 500, 502, 503, 504}
HOURLY_ITEMS = 8
MAX_DAILY_ENTRIES = 7
HISTORIC_DAYS = 7
HISTORIC_CONDITIONS = ("Clear", "Partly Cloudy", "Cloudy", "Light Rain", "Moderate Rain")
HISTORIC_ICONS = ("01d", "02d", "03d", "04d", "09d", "10d")


class WeatherProviderError(RuntimeError):
    """Raised when the weather source cannot be used at all (e.g. no API key)."""


@dataclass
class WeatherClient:
    settings: Settings
    _cache: dict[str, tuple[float, Any]] = field(default_factory=dict, init=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_by_coordinates(
        self, latitude: float, longitude: float, facility_name: str | None = None
    ) -> dict:
        lat, lon = standardize_coordinates(latitude, longitude)
        cache_key = f"coord:{lat},{lon}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.debug("weather_cache_hit", cache_key=cache_key)
            return _with_city_name(cached, facility_name)

        logger.info("weather_fetch", latitude=lat, longitude=lon)
        current_data, forecast_data = await self._fetch_pair({"lat": lat, "lon": lon})
        payload = process_weather_data(current_data, forecast_data)
        self._cache_set(cache_key, payload, ttl_seconds=self.settings.api_cache_ttl_seconds)
        return _with_city_name(payload, facility_name)

    async def fetch_by_city(self, city: str, facility_name: str | None = None) -> dict:
        normalized_city = city.strip().lower()
        if not normalized_city:
            raise WeatherProviderError("City name is empty.")

        cache_key = f"city:{normalized_city}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.debug("weather_cache_hit", cache_key=cache_key)
            return _with_city_name(cached, facility_name)

        logger.info("weather_fetch", city=city.strip())
        current_data, forecast_data = await self._fetch_pair({"q": city.strip()})
        payload = process_weather_data(current_data, forecast_data)
        self._cache_set(cache_key, payload, ttl_seconds=self.settings.api_cache_ttl_seconds)

        # Seed the coordinate key so both lookups agree for the same place.
        coord = current_data.get("coord")
        if isinstance(coord, dict) and coord.get("lat") is not None and coord.get("lon") is not None:
            lat, lon = standardize_coordinates(float(coord["lat"]), float(coord["lon"]))
            self._cache_set(f"coord:{lat},{lon}", payload, ttl_seconds=self.settings.api_cache_ttl_seconds)
        return _with_city_name(payload, facility_name)

    async def _fetch_pair(self, location_params: dict[str, Any]) -> tuple[dict, dict]:
        if not self.settings.openweather_api_key:
            logger.error("weather_api_key_missing")
            raise WeatherProviderError("OpenWeatherMap API key is not configured.")

        params = {**location_params, "units": "metric", "appid": self.settings.openweather_api_key}
        current_data, forecast_data = await asyncio.gather(
            self._get_json(url=f"{self.settings.openweather_base_url}/weather", params=params),
            self._get_json(url=f"{self.settings.openweather_base_url}/forecast", params=params),
        )
        return current_data, forecast_data

    async def _get_json(self, *, url: str, params: dict[str, Any] | None = None) -> Any:
        attempts = self.settings.api_retry_attempts
        for attempt in range(attempts + 1):
            try:
                response = await self._client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_HTTP_STATUS or attempt >= attempts:
                    logger.error("weather_api_error", url=url, status_code=status_code)
                    raise
            except httpx.RequestError as exc:
                if attempt >= attempts:
                    logger.error("weather_api_unreachable", url=url, error=str(exc))
                    raise
            logger.warning("weather_api_retry", url=url, attempt=attempt + 1)
            await asyncio.sleep(0.35 * (attempt + 1))

        raise RuntimeError("Failed to fetch upstream JSON payload.")

    def _cache_get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if monotonic() >= expires_at:
            self._cache.pop(key, None)
            return None
        return payload

    def _cache_set(self, key: str, payload: Any, *, ttl_seconds: int) -> None:
        self._cache[key] = (monotonic() + max(1, ttl_seconds), payload)


def standardize_coordinates(latitude: float, longitude: float) -> tuple[float, float]:
    return round(latitude, 6), round(longitude, 6)


def process_weather_data(current_data: dict, forecast_data: dict, *, today: date | None = None) -> dict:
    main = current_data.get("main", {})
    wind = current_data.get("wind", {})
    forecast_list = [item for item in forecast_data.get("list", []) if isinstance(item, dict)]
    city_name = current_data.get("name") or forecast_data.get("city", {}).get("name") or ""

    return {
        "current": {
            "temp": main.get("temp"),
            "feels_like": main.get("feels_like"),
            "humidity": main.get("humidity"),
            "pressure": main.get("pressure"),
            "wind_speed": wind.get("speed"),
            "weather": current_data.get("weather", []),
            "dt": current_data.get("dt"),
        },
        "hourly": process_hourly_forecast(forecast_list),
        "daily": process_daily_forecast(forecast_list),
        "historic": synthesize_historic(main.get("temp"), today=today),
        "city": {"name": city_name},
    }


def process_hourly_forecast(forecast_list: list[dict]) -> list[dict]:
    return [
        {
            "dt": item.get("dt"),
            "temp": item.get("main", {}).get("temp"),
            "humidity": item.get("main", {}).get("humidity"),
            "wind_speed": item.get("wind", {}).get("speed"),
            "weather": item.get("weather", []),
            "pop": item.get("pop") or 0,
        }
        for item in forecast_list[:HOURLY_ITEMS]
    ]


def process_daily_forecast(forecast_list: list[dict]) -> list[dict]:
    by_day: dict[str, list[dict]] = defaultdict(list)
    for item in forecast_list:
        stamp = item.get("dt")
        if stamp is None:
            continue
        by_day[_utc_datetime(stamp).date().isoformat()].append(item)

    daily_rows: list[dict] = []
    for items in by_day.values():
        temps = [item["main"]["temp"] for item in items if item.get("main", {}).get("temp") is not None]
        if not temps:
            continue
        midday_item = min(items, key=lambda item: abs(_utc_datetime(item["dt"]).hour - 12))
        daily_rows.append(
            {
                "dt": midday_item["dt"],
                "temp": {
                    "min": min(temps),
                    "max": max(temps),
                    "day": midday_item.get("main", {}).get("temp", temps[0]),
                },
                "humidity": _mean_of(item.get("main", {}).get("humidity") for item in items),
                "wind_speed": _mean_of(item.get("wind", {}).get("speed") for item in items),
                "weather": midday_item.get("weather", []),
                "pop": max((item.get("pop") or 0) for item in items),
            }
        )

    daily_rows.sort(key=lambda row: row["dt"])
    return daily_rows[:MAX_DAILY_ENTRIES]


def synthesize_historic(current_temp: float | None, *, today: date | None = None) -> list[dict]:
    """Deterministic seven-day history seeded by the current temperature.

    The upstream API has no history endpoint on the free tier, so these rows
    are a stable stand-in rather than observations.
    """
    if current_temp is None:
        return []
    reference_day = today or date.today()
    base_seed = round(float(current_temp))

    rows: list[dict] = []
    for offset in range(HISTORIC_DAYS, 0, -1):
        day = reference_day - timedelta(days=offset)
        base_temp = base_seed + ((day.day * day.month) % 5 - 2)
        rows.append(
            {
                "date": day.isoformat(),
                "temp": {"min": base_temp - 3, "max": base_temp + 4, "avg": base_temp},
                "humidity": 60 + ((day.day + day.month) % 30),
                "wind_speed": 3 + ((day.day * day.month) % 7),
                "weather": HISTORIC_CONDITIONS[(day.day + day.month) % len(HISTORIC_CONDITIONS)],
                "icon": HISTORIC_ICONS[(day.day + day.month) % len(HISTORIC_ICONS)],
            }
        )
    return rows


def _with_city_name(payload: dict, facility_name: str | None) -> dict:
    if not facility_name:
        return payload
    return {**payload, "city": {"name": facility_name}}


def _utc_datetime(stamp: float) -> datetime:
    return datetime.fromtimestamp(float(stamp), tz=timezone.utc)


def _mean_of(values: Any) -> float | None:
    numeric_values = [float(value) for value in values if value is not None]
    if not numeric_values:
        return None
    return float(mean(numeric_values))
