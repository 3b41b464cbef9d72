"""Pull structured weather facts out of free-form assistant replies.

A reply may carry a ``<weather_data>{...}</weather_data>`` block. When it parses,
its fields are trusted as-is (``verified=True``) and the block is removed from
the visible text. Otherwise an ordered set of independent matchers scans the
prose, each contributing at most one field.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import structlog

from pitchside.schemas import WeatherFact
from pitchside.services.payload_readers import finite_or_none

logger = structlog.get_logger(__name__)

BLOCK_END = "</weather_data>"
BLOCK_PATTERN = re.compile(r"<weather_data>([\s\S]*?)</weather_data>")
UNTERMINATED_BLOCK_PATTERN = re.compile(r"<weather_data>[\s\S]*$")
CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")

VISUAL_TYPES = ("default", "chart", "forecast")
NUMBER = r"(?<![\d.])(-?\d+(?:\.\d+)?)"

# Order matters: the first keyword found in the text decides the condition.
CONDITION_KEYWORDS = (
    ("sunny", "clear"),
    ("clear", "clear"),
    ("cloud", "clouds"),
    ("overcast", "clouds"),
    ("partly cloudy", "clouds"),
    ("rain", "rain"),
    ("shower", "rain"),
    ("drizzle", "rain"),
    ("storm", "thunderstorm"),
    ("thunder", "thunderstorm"),
    ("lightning", "thunderstorm"),
    ("snow", "snow"),
    ("sleet", "snow"),
    ("hail", "snow"),
    ("fog", "mist"),
    ("mist", "mist"),
    ("haze", "mist"),
)
CONDITIONS = ("clear", "clouds", "rain", "thunderstorm", "snow", "mist")


@dataclass(frozen=True)
class NumberMatcher:
    field: str
    pattern: re.Pattern[str]

    def match(self, text: str) -> dict[str, Any] | None:
        found = self.pattern.search(text)
        if found is None:
            return None
        raw = next((group for group in found.groups() if group is not None), None)
        value = finite_or_none(raw)
        if value is None:
            return None
        return {self.field: value}


@dataclass(frozen=True)
class VisualTypeMatcher:
    field: str = "visual_type"

    def match(self, text: str) -> dict[str, Any] | None:
        lowered = text.lower()
        if "forecast" in lowered and ("days" in lowered or "tomorrow" in lowered):
            return {self.field: "forecast"}
        if any(word in lowered for word in ("average", "trend", "comparison", "historical")):
            return {self.field: "chart"}
        return {self.field: "default"}


@dataclass(frozen=True)
class ConditionMatcher:
    keywords: tuple[tuple[str, str], ...] = CONDITION_KEYWORDS
    field: str = "condition"

    def match(self, text: str) -> dict[str, Any] | None:
        lowered = text.lower()
        for keyword, condition in self.keywords:
            if keyword in lowered:
                return {self.field: condition}
        return None


TEXT_MATCHERS = (
    NumberMatcher(
        "temperature",
        re.compile(
            rf"{NUMBER}\s?°\s?C|{NUMBER}\s?degrees|temperature\s?(?:is|of|at)\s?{NUMBER}",
            re.IGNORECASE,
        ),
    ),
    NumberMatcher(
        "precipitation",
        re.compile(
            rf"{NUMBER}%\s?(?:chance|probability|chance of|risk of|possibility of)\s?"
            r"(?:of\s)?(?:precipitation|rain|snow|showers)",
            re.IGNORECASE,
        ),
    ),
    NumberMatcher(
        "wind",
        re.compile(rf"wind(?:\s?speed)?\s?(?:of|at|is)?\s?{NUMBER}\s?(?:km/h|mph|m/s)", re.IGNORECASE),
    ),
    VisualTypeMatcher(),
    ConditionMatcher(),
)


def extract(response: str) -> tuple[WeatherFact, str]:
    """Return the extracted fact and the reply with any structured block removed."""
    text = response or ""
    block = BLOCK_PATTERN.search(text)
    cleaned_text = strip_structured_blocks(text)

    if block is not None:
        structured = _parse_block(block.group(1))
        if structured is not None:
            return _fact_from_structured(structured), cleaned_text

    return extract_from_text(cleaned_text), cleaned_text


def extract_from_text(text: str) -> WeatherFact:
    fields: dict[str, Any] = {}
    for matcher in TEXT_MATCHERS:
        result = matcher.match(text)
        if result:
            fields.update(result)
    return WeatherFact(verified=False, **fields)


def strip_structured_blocks(text: str) -> str:
    cleaned = BLOCK_PATTERN.sub("", text)
    cleaned = UNTERMINATED_BLOCK_PATTERN.sub("", cleaned)
    return cleaned.replace(BLOCK_END, "").strip()


def coerce_scalar(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def normalize_condition(value: Any) -> str | None:
    """Map a free-form condition word onto one of CONDITIONS, or None."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in CONDITIONS:
        return lowered
    for keyword, condition in CONDITION_KEYWORDS:
        if keyword in lowered:
            return condition
    return None


def _parse_block(raw: str) -> dict[str, Any] | None:
    body = CODE_FENCE_PATTERN.sub("", raw.strip())
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        logger.warning("structured_block_parse_failed", error=str(exc), length=len(raw))
        return None
    if not isinstance(parsed, dict):
        logger.warning("structured_block_not_an_object", kind=type(parsed).__name__)
        return None
    return parsed


def _fact_from_structured(data: dict[str, Any]) -> WeatherFact:
    fields = {key: coerce_scalar(data.get(key)) for key in ("temperature", "condition", "precipitation", "wind")}
    visual_type = coerce_scalar(data.get("visualType", data.get("visual_type")))
    condition = normalize_condition(fields["condition"])

    return WeatherFact(
        temperature=finite_or_none(fields["temperature"]),
        condition=condition,
        precipitation=finite_or_none(fields["precipitation"]),
        wind=finite_or_none(fields["wind"]),
        visual_type=visual_type if visual_type in VISUAL_TYPES else "default",
        verified=True,
    )
