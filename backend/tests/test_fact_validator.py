import re
from datetime import date

from pitchside.schemas import WeatherFact
from pitchside.services.date_correction import AnchoredDateRule, correct_date_references, format_long_date
from pitchside.services.fact_validator import is_significant_mismatch, validate

TODAY = date(2026, 10, 18)


def _payload(main: str = "Rain", description: str = "moderate rain") -> dict:
    return {
        "current": {
            "temp": 25.0,
            "feels_like": 26.0,
            "humidity": 70,
            "wind_speed": 5.0,
            "weather": [{"main": main, "description": description, "icon": "10d"}],
        },
        "hourly": [{"dt": 1, "temp": 25.0, "pop": 0.42}],
        "daily": [],
        "historic": [],
    }


def test_clear_claim_under_rain_is_corrected_with_note() -> None:
    fact = WeatherFact(temperature=25, condition="clear", verified=True)

    validated, note, text = validate(fact, _payload(), "Lovely clear skies today.", today=TODAY)

    assert validated.condition == "rain"
    assert validated.verified is False
    assert validated.temperature == 25
    assert "moderate rain" in note
    assert validated.correction_note == note
    assert text == "Lovely clear skies today."


def test_temperature_tolerance_boundary_is_strict() -> None:
    within, within_note, _ = validate(WeatherFact(temperature=27.0, verified=True), _payload(), "", today=TODAY)
    beyond, beyond_note, _ = validate(WeatherFact(temperature=27.01, verified=True), _payload(), "", today=TODAY)

    assert within.temperature == 27.0
    assert within.verified is True
    assert within_note == ""
    assert beyond.temperature == 25.0
    assert beyond.verified is False
    assert beyond_note == "Note: The current temperature is actually 25.0°C."


def test_precipitation_and_wind_are_corrected_beyond_tolerance() -> None:
    fact = WeatherFact(precipitation=60, wind=30, verified=True)

    validated, note, _ = validate(fact, _payload(), "", today=TODAY)

    assert validated.precipitation == 42
    assert validated.wind == 18
    assert note == "The precipitation probability is 42%. Current wind speed is 18 km/h."


def test_values_within_tolerance_are_kept() -> None:
    fact = WeatherFact(precipitation=50, wind=21, verified=True)

    validated, note, _ = validate(fact, _payload(), "", today=TODAY)

    assert validated.precipitation == 50
    assert validated.wind == 21
    assert validated.verified is True
    assert note == ""


def test_minor_condition_mismatch_is_overwritten_silently() -> None:
    fact = WeatherFact(condition="clear", verified=True)

    validated, note, _ = validate(fact, _payload(main="Clouds", description="broken clouds"), "", today=TODAY)

    assert validated.condition == "clouds"
    assert validated.verified is False
    assert note == ""
    assert validated.correction_note is None


def test_missing_payload_values_leave_fact_alone() -> None:
    fact = WeatherFact(temperature=40, condition="snow", precipitation=90, wind=100, verified=True)

    validated, note, _ = validate(fact, {}, "", today=TODAY)

    assert validated == fact
    assert note == ""


def test_input_fact_is_not_mutated() -> None:
    fact = WeatherFact(temperature=10, verified=True)

    validate(fact, _payload(), "", today=TODAY)

    assert fact.temperature == 10
    assert fact.verified is True


def test_verified_never_flips_back_to_true() -> None:
    for claimed in (10.0, 24.0, 25.0, 26.5, 40.0):
        for verified in (True, False):
            validated, _, _ = validate(
                WeatherFact(temperature=claimed, verified=verified), _payload(), "", today=TODAY
            )
            assert not (validated.verified and not verified)


def test_significant_mismatch_table() -> None:
    assert is_significant_mismatch("rain", "clear") is True
    assert is_significant_mismatch("rain", "clouds") is False
    assert is_significant_mismatch("snow", "rain") is True
    assert is_significant_mismatch("thunderstorm", "clouds") is True
    assert is_significant_mismatch("clouds", "clear") is False


def test_wrong_tomorrow_date_is_rewritten() -> None:
    corrected = correct_date_references("Tomorrow, which is March 3, 2027, will be sunny.", today=TODAY)

    assert corrected == "Tomorrow, which is October 19, 2026, will be sunny."


def test_wrong_today_date_is_rewritten() -> None:
    corrected = correct_date_references("Today, November 2, 2026 looks clear.", today=TODAY)

    assert corrected == "Today, which is October 18, 2026 looks clear."


def test_distant_date_in_tomorrow_reply_becomes_tomorrow() -> None:
    corrected = correct_date_references(
        "Rain is expected tomorrow. By December 25, 2026 things change.", today=TODAY
    )

    assert corrected == "Rain is expected tomorrow. By October 19, 2026 things change."


def test_distant_date_without_tomorrow_is_left_alone() -> None:
    text = "The season ends on December 25, 2026."

    assert correct_date_references(text, today=TODAY) == text


def test_date_correction_is_idempotent() -> None:
    samples = (
        "Tomorrow March 3, 2027 looks wet, and tomorrow, April 1, 2027 too.",
        "Today, November 2, 2026 and tomorrow, which is October 19, 2026.",
        "Correct already: today, which is October 18, 2026.",
    )
    for text in samples:
        once = correct_date_references(text, today=TODAY)
        assert correct_date_references(once, today=TODAY) == once


def test_correct_dates_are_untouched() -> None:
    text = f"Tomorrow, which is {format_long_date(date(2026, 10, 19))}, brings showers."

    assert correct_date_references(text, today=TODAY) == text


def test_validate_returns_date_corrected_text() -> None:
    _, _, text = validate(WeatherFact(), _payload(), "Tomorrow, June 1, 2027 stays dry.", today=TODAY)

    assert text == "Tomorrow, which is October 19, 2026 stays dry."


def test_anchored_rules_compile_their_pattern_once() -> None:
    rule = AnchoredDateRule("tomorrow", offset_days=1)

    assert rule.pattern is rule.pattern
    assert rule.pattern.flags & re.IGNORECASE
    assert rule.apply("Tomorrow, May 5, 2027 is dry.", TODAY) == "Tomorrow, which is October 19, 2026 is dry."
    assert rule == AnchoredDateRule("tomorrow", offset_days=1)
