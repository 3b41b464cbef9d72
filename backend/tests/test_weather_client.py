import asyncio
from datetime import date, datetime, timezone

import httpx
import pytest

from pitchside.config import Settings
from pitchside.services.weather_client import (
    WeatherClient,
    WeatherProviderError,
    process_daily_forecast,
    process_hourly_forecast,
    process_weather_data,
    standardize_coordinates,
    synthesize_historic,
)

TODAY = date(2026, 10, 18)


def _stamp(day: int, hour: int) -> int:
    return int(datetime(2026, 10, day, hour, tzinfo=timezone.utc).timestamp())


def _forecast_item(day: int, hour: int, temp: float, humidity: int, wind: float, pop: float | None) -> dict:
    return {
        "dt": _stamp(day, hour),
        "main": {"temp": temp, "humidity": humidity},
        "wind": {"speed": wind},
        "weather": [{"main": "Clouds", "description": f"clouds at {hour}h", "icon": "03d"}],
        "pop": pop,
    }


def _current_data() -> dict:
    return {
        "name": "London",
        "coord": {"lat": 51.5072, "lon": -0.1276},
        "main": {"temp": 20.4, "feels_like": 19.8, "humidity": 58, "pressure": 1012},
        "wind": {"speed": 4.2},
        "weather": [{"main": "Clouds", "description": "broken clouds", "icon": "04d"}],
        "dt": _stamp(18, 10),
    }


def _forecast_data() -> dict:
    return {
        "city": {"name": "London"},
        "list": [
            _forecast_item(18, 9, 14.0, 60, 3.0, 0.1),
            _forecast_item(18, 12, 18.0, 50, 5.0, 0.4),
            _forecast_item(18, 15, 17.0, 55, 4.0, 0.2),
            _forecast_item(19, 12, 12.0, 80, 6.0, 0.9),
        ],
    }


def test_daily_forecast_groups_by_day_around_midday() -> None:
    rows = process_daily_forecast(_forecast_data()["list"])

    assert len(rows) == 2
    first, second = rows
    assert first["dt"] == _stamp(18, 12)
    assert first["temp"] == {"min": 14.0, "max": 18.0, "day": 18.0}
    assert first["humidity"] == 55
    assert first["wind_speed"] == 4
    assert first["pop"] == 0.4
    assert first["weather"][0]["description"] == "clouds at 12h"
    assert second["temp"] == {"min": 12.0, "max": 12.0, "day": 12.0}


def test_daily_forecast_is_capped_at_seven_days() -> None:
    items = [_forecast_item(10 + idx, 12, 15.0, 60, 3.0, 0.0) for idx in range(9)]

    rows = process_daily_forecast(items)

    assert len(rows) == 7
    assert rows[0]["dt"] == _stamp(10, 12)


def test_hourly_forecast_keeps_first_eight_and_defaults_pop() -> None:
    items = [_forecast_item(18, hour, 15.0, 60, 3.0, None) for hour in range(10)]

    rows = process_hourly_forecast(items)

    assert len(rows) == 8
    assert all(row["pop"] == 0 for row in rows)
    assert rows[0]["temp"] == 15.0


def test_synthesized_history_is_deterministic() -> None:
    first = synthesize_historic(20.4, today=TODAY)
    second = synthesize_historic(20.4, today=TODAY)

    assert first == second
    assert len(first) == 7
    assert first[0]["date"] == "2026-10-11"
    assert first[-1]["date"] == "2026-10-17"
    assert first[-1]["temp"] == {"min": 15, "max": 22, "avg": 18}
    assert synthesize_historic(None, today=TODAY) == []


def test_process_weather_data_normalizes_payload() -> None:
    payload = process_weather_data(_current_data(), _forecast_data(), today=TODAY)

    assert payload["current"]["temp"] == 20.4
    assert payload["current"]["wind_speed"] == 4.2
    assert payload["current"]["weather"][0]["main"] == "Clouds"
    assert len(payload["hourly"]) == 4
    assert len(payload["daily"]) == 2
    assert len(payload["historic"]) == 7
    assert payload["city"] == {"name": "London"}


def test_standardize_coordinates_rounds_to_six_places() -> None:
    assert standardize_coordinates(51.50721234, -0.12764321) == (51.507212, -0.127643)


def _mock_client(handler, **overrides) -> WeatherClient:  # noqa: ANN001
    settings = Settings(
        openweather_api_key="test-key",
        openweather_base_url="https://owm.test/data/2.5",
        **overrides,
    )
    client = WeatherClient(settings=settings)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def test_fetch_by_city_caches_and_seeds_coordinates() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        assert request.url.params["appid"] == "test-key"
        assert request.url.params["units"] == "metric"
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=_current_data())
        return httpx.Response(200, json=_forecast_data())

    async def run() -> tuple[dict, dict, dict]:
        client = _mock_client(handler)
        try:
            first = await client.fetch_by_city(" London ", facility_name="Lord's")
            second = await client.fetch_by_city("london")
            by_coordinates = await client.fetch_by_coordinates(51.5072, -0.1276)
        finally:
            await client.close()
        return first, second, by_coordinates

    first, second, by_coordinates = asyncio.run(run())

    assert sorted(calls) == ["/data/2.5/forecast", "/data/2.5/weather"]
    assert first["city"] == {"name": "Lord's"}
    assert second["city"] == {"name": "London"}
    assert by_coordinates == second


def test_transient_upstream_error_is_retried() -> None:
    attempts = {"weather": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/weather"):
            attempts["weather"] += 1
            if attempts["weather"] == 1:
                return httpx.Response(503, json={"message": "busy"})
            return httpx.Response(200, json=_current_data())
        return httpx.Response(200, json=_forecast_data())

    async def run() -> dict:
        client = _mock_client(handler, api_retry_attempts=1)
        try:
            return await client.fetch_by_coordinates(51.5072, -0.1276)
        finally:
            await client.close()

    payload = asyncio.run(run())

    assert attempts["weather"] == 2
    assert payload["current"]["temp"] == 20.4


def test_client_error_is_not_retried() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(401, json={"message": "Invalid API key"})

    async def run() -> dict:
        client = _mock_client(handler, api_retry_attempts=2)
        try:
            return await client.fetch_by_city("London")
        finally:
            await client.close()

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(run())
    assert calls
    assert len(calls) == len(set(calls))


def test_missing_api_key_raises_provider_error() -> None:
    async def run() -> dict:
        client = WeatherClient(settings=Settings(openweather_api_key=""))
        try:
            return await client.fetch_by_city("London")
        finally:
            await client.close()

    with pytest.raises(WeatherProviderError):
        asyncio.run(run())
