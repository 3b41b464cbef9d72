from __future__ import annotations

from datetime import date
from typing import Any

from pitchside.schemas import WeatherFact
from pitchside.services.date_correction import correct_date_references
from pitchside.services.payload_readers import (
    current_condition,
    current_description,
    current_precipitation_pct,
    current_temperature,
    current_wind_kph,
)

TEMPERATURE_TOLERANCE_C = 2.0
PRECIPITATION_TOLERANCE_PCT = 15.0
WIND_TOLERANCE_KPH = 5.0


def validate(
    fact: WeatherFact,
    payload: dict[str, Any],
    response_text: str,
    *,
    today: date | None = None,
) -> tuple[WeatherFact, str, str]:
    """Check a fact against the payload, returning (fact, correction note, corrected text).

    Each field is only touched when present on the fact and available in the
    payload. The input fact is left unchanged.
    """
    corrected_text = correct_date_references(response_text, today=today)
    validated = fact.model_copy()
    notes: list[str] = []

    if validated.temperature is not None:
        actual_temp = current_temperature(payload)
        if actual_temp is not None and abs(validated.temperature - actual_temp) > TEMPERATURE_TOLERANCE_C:
            validated.verified = False
            validated.temperature = actual_temp
            notes.append(f"Note: The current temperature is actually {actual_temp:.1f}°C.")

    if validated.precipitation is not None:
        actual_precip = current_precipitation_pct(payload)
        if actual_precip is not None and abs(validated.precipitation - actual_precip) > PRECIPITATION_TOLERANCE_PCT:
            validated.verified = False
            validated.precipitation = actual_precip
            notes.append(f"The precipitation probability is {actual_precip}%.")

    if validated.wind is not None:
        actual_wind = current_wind_kph(payload)
        if actual_wind is not None and abs(validated.wind - actual_wind) > WIND_TOLERANCE_KPH:
            validated.verified = False
            validated.wind = actual_wind
            notes.append(f"Current wind speed is {actual_wind} km/h.")

    if validated.condition is not None:
        actual_condition = current_condition(payload)
        if actual_condition is not None and validated.condition != actual_condition:
            claimed = validated.condition
            validated.verified = False
            validated.condition = actual_condition
            if is_significant_mismatch(actual_condition, claimed):
                notes.append(f"Current conditions are {current_description(payload)}.")

    correction_note = " ".join(notes).strip()
    if correction_note:
        validated.correction_note = correction_note
    return validated, correction_note, corrected_text


def is_significant_mismatch(actual: str, claimed: str) -> bool:
    if actual == "rain":
        return claimed == "clear"
    if actual in {"thunderstorm", "snow"}:
        return claimed != actual
    return False
