from __future__ import annotations

import math
from typing import Any


def as_float(value: object) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def finite_or_none(value: object) -> float | None:
    parsed = as_float(value)
    if parsed is None or not math.isfinite(parsed):
        return None
    return parsed


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mps_to_kph(speed: float) -> int:
    return round_half_up(speed * 3.6)


def first_condition(entry: dict[str, Any] | None) -> dict[str, Any]:
    if not isinstance(entry, dict):
        return {}
    weather = entry.get("weather")
    if isinstance(weather, list) and weather and isinstance(weather[0], dict):
        return weather[0]
    return {}


def current_block(payload: dict[str, Any]) -> dict[str, Any]:
    current = payload.get("current")
    return current if isinstance(current, dict) else {}


def daily_entry(payload: dict[str, Any], index: int) -> dict[str, Any] | None:
    daily = payload.get("daily")
    if isinstance(daily, list) and len(daily) > index and isinstance(daily[index], dict):
        return daily[index]
    return None


def hourly_entry(payload: dict[str, Any], index: int) -> dict[str, Any] | None:
    hourly = payload.get("hourly")
    if isinstance(hourly, list) and len(hourly) > index and isinstance(hourly[index], dict):
        return hourly[index]
    return None


def current_temperature(payload: dict[str, Any]) -> float | None:
    return finite_or_none(current_block(payload).get("temp"))


def current_condition(payload: dict[str, Any]) -> str | None:
    main = first_condition(current_block(payload)).get("main")
    if not isinstance(main, str) or not main.strip():
        return None
    return main.strip().lower()


def current_description(payload: dict[str, Any]) -> str | None:
    description = first_condition(current_block(payload)).get("description")
    if isinstance(description, str) and description.strip():
        return description.strip()
    return current_condition(payload)


def current_precipitation_pct(payload: dict[str, Any]) -> int | None:
    pop = finite_or_none((hourly_entry(payload, 0) or {}).get("pop"))
    if pop is None:
        return None
    return round_half_up(pop * 100)


def current_wind_kph(payload: dict[str, Any]) -> int | None:
    speed = finite_or_none(current_block(payload).get("wind_speed"))
    if speed is None:
        return None
    return mps_to_kph(speed)
