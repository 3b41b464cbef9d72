"""Template answers built straight from the weather payload.

Used when the conversational model is unavailable. Keyword groups are checked
in a fixed priority order and the first one that can be answered wins.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from pitchside.services.date_correction import format_long_date
from pitchside.services.payload_readers import (
    current_block,
    daily_entry,
    finite_or_none,
    first_condition,
    hourly_entry,
    mps_to_kph,
    round_half_up,
)

UMBRELLA_THRESHOLD_PCT = 30


def respond(query: str, payload: dict[str, Any], subject_name: str, *, today: date | None = None) -> str:
    reference_day = today or date.today()
    formatted_today = format_long_date(reference_day)
    formatted_tomorrow = format_long_date(reference_day + timedelta(days=1))
    lowered = query.lower()

    for keywords, answer in (
        (("rain", "precipitation"), _rain_answer),
        (("tomorrow",), _tomorrow_answer),
        (("temperature", "hot", "cold", "warm"), _temperature_answer),
        (("wind",), _wind_answer),
        (("humid",), _humidity_answer),
    ):
        if any(keyword in lowered for keyword in keywords):
            text = answer(payload, subject_name, formatted_today, formatted_tomorrow)
            if text is not None:
                return text

    return _summary_answer(payload, subject_name, formatted_today)


def _rain_answer(payload: dict, name: str, formatted_today: str, formatted_tomorrow: str) -> str | None:
    pop = finite_or_none((hourly_entry(payload, 0) or {}).get("pop"))
    if pop is None:
        pop = finite_or_none((daily_entry(payload, 0) or {}).get("pop"))
    if pop is None:
        return None

    chance = round_half_up(pop * 100)
    advice = (
        "You might want to bring an umbrella."
        if chance > UMBRELLA_THRESHOLD_PCT
        else "It should be mostly dry."
    )
    return f"For today ({formatted_today}), the chance of rain at {name} is {chance}%. {advice}"


def _tomorrow_answer(payload: dict, name: str, formatted_today: str, formatted_tomorrow: str) -> str | None:
    tomorrow = daily_entry(payload, 1)
    if tomorrow is None:
        return None

    temp = tomorrow.get("temp") if isinstance(tomorrow.get("temp"), dict) else {}
    description = first_condition(tomorrow).get("description") or "conditions unavailable"
    pop = finite_or_none(tomorrow.get("pop"))
    return (
        f"Tomorrow's forecast ({formatted_tomorrow}) for {name}: {_whole(temp.get('day'))}°C, {description}. "
        f"Precipitation chance: {_whole(pop * 100 if pop is not None else None)}%."
    )


def _temperature_answer(payload: dict, name: str, formatted_today: str, formatted_tomorrow: str) -> str | None:
    current = current_block(payload)
    if finite_or_none(current.get("temp")) is None:
        return None

    text = f"The current temperature at {name} ({formatted_today}) is {_whole(current.get('temp'))}°C"
    if finite_or_none(current.get("feels_like")) is not None:
        text += f", and it feels like {_whole(current.get('feels_like'))}°C"
    return text + "."


def _wind_answer(payload: dict, name: str, formatted_today: str, formatted_tomorrow: str) -> str | None:
    speed = finite_or_none(current_block(payload).get("wind_speed"))
    if speed is None:
        return None
    return f"The current wind speed at {name} is {mps_to_kph(speed)} km/h."


def _humidity_answer(payload: dict, name: str, formatted_today: str, formatted_tomorrow: str) -> str | None:
    humidity = finite_or_none(current_block(payload).get("humidity"))
    if humidity is None:
        return None
    return f"The current humidity at {name} is {_whole(humidity)}%."


def _summary_answer(payload: dict, name: str, formatted_today: str) -> str:
    current = current_block(payload)
    description = first_condition(current).get("description") or "conditions unavailable"
    speed = finite_or_none(current.get("wind_speed"))
    wind = str(mps_to_kph(speed)) if speed is not None else "N/A"

    text = (
        f"Current weather at {name} ({formatted_today}): {_whole(current.get('temp'))}°C, {description}. "
        f"Humidity: {_whole(current.get('humidity'))}%. Wind: {wind} km/h."
    )

    today_forecast = daily_entry(payload, 0)
    if today_forecast is not None and isinstance(today_forecast.get("temp"), dict):
        temp = today_forecast["temp"]
        text += f" Today's high: {_whole(temp.get('max'))}°C, low: {_whole(temp.get('min'))}°C."
    return text


def _whole(value: object, fallback: str = "N/A") -> str:
    parsed = finite_or_none(value)
    if parsed is None:
        return fallback
    return str(round_half_up(parsed))
