from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

import httpx
import structlog

from pitchside.config import Settings
from pitchside.schemas import ChatResponse, ChatTurn, WeatherFact
from pitchside.services import fact_extractor, fact_validator, fallback_responder
from pitchside.services.date_correction import day_name, format_long_date
from pitchside.services.payload_readers import (
    current_block,
    current_condition,
    current_precipitation_pct,
    current_temperature,
    current_wind_kph,
    finite_or_none,
)

logger = structlog.get_logger(__name__)

FALLBACK_ANNOTATION = "(using direct weather data due to connection issues)"
MAX_PROMPT_HOURS = 24
MAX_TRACKED_SESSIONS = 1000

SYSTEM_PROMPT_TEMPLATE = """You are a helpful weather assistant for a sports facility called "{facility_name}".
Your task is to answer weather-related questions based ONLY on the provided weather data.

VERY IMPORTANT DATE INFORMATION:
- Today is {today_name}, {today}
- Tomorrow is {tomorrow_name}, {tomorrow}
- The day after tomorrow is {after_name}, {after}

When referring to dates, ALWAYS use these exact dates. Never make up or guess future dates.

VERY IMPORTANT ACCURACY REQUIREMENTS:
- Always use the EXACT temperature values from the data (±0.5°C)
- Report exact precipitation chances matching the data
- Always specify wind speed in km/h using the exact values in the data
- Never make up weather information not present in the provided data
- If asked about suitable conditions for sports, provide practical advice based on weather conditions
- Always specify which day you're referring to (today, tomorrow, etc.)
- If data is not available for a specific request, clearly state that limitation

The dt fields in the data are Unix timestamps in seconds. Format dates in a user-friendly way.

Your answers should be concise, friendly, and informative, including specific numerical data when relevant.

Always provide practical context for weather information:
- For high temperatures (>28°C), suggest hydration and sun protection
- For rain probability (>30%), suggest appropriate gear or indoor alternatives
- For wind (>20 km/h), mention how it might affect sports activities
- For good weather conditions, be enthusiastic about outdoor opportunities

CRITICAL: After your response, include a structured JSON object with the following weather information inside <weather_data> tags:
{{
  "temperature": Current temperature in °C as a NUMBER (not an array),
  "condition": Weather condition as a STRING (not an array): "clear", "clouds", "rain", "thunderstorm", "snow", "mist",
  "precipitation": Chance of precipitation as percentage NUMBER (not an array),
  "wind": Wind speed in km/h as a NUMBER (not an array),
  "visualType": "default", "chart", or "forecast" as a STRING (not an array)
}}

IMPORTANT: All JSON values must be single values, NOT arrays. Use null for any values you cannot determine from the data. Do not make up data."""


class ModelUnavailableError(RuntimeError):
    """Raised when the conversational model cannot produce a usable reply."""


@dataclass
class GeminiClient:
    settings: Settings
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    async def generate(self, parts: list[str]) -> str:
        if not self.settings.gemini_api_key:
            raise ModelUnavailableError("Gemini API key is not configured.")

        response = await self._client.post(
            f"{self.settings.gemini_base_url}/models/{self.settings.gemini_model}:generateContent",
            params={"key": self.settings.gemini_api_key},
            json={
                "contents": [{"parts": [{"text": part} for part in parts]}],
                "generationConfig": {
                    "temperature": self.settings.gemini_temperature,
                    "maxOutputTokens": self.settings.gemini_max_output_tokens,
                },
            },
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise ModelUnavailableError("Model returned a non-JSON body.") from exc
        return first_candidate_text(body)


def first_candidate_text(body: Any) -> str:
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise ModelUnavailableError("Model returned no candidates.")
    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content") if isinstance(candidate.get("content"), dict) else {}
    parts = content.get("parts") if isinstance(content.get("parts"), list) else []
    text = parts[0].get("text") if parts and isinstance(parts[0], dict) else None
    if not isinstance(text, str) or not text.strip():
        raise ModelUnavailableError("Model returned an empty candidate.")
    return text


def simplify_payload(payload: dict[str, Any], facility_name: str) -> dict[str, Any]:
    current = current_block(payload)

    def first_weather(entry: dict) -> Any:
        weather = entry.get("weather")
        return weather[0] if isinstance(weather, list) and weather else None

    return {
        "current": {
            key: current.get(key)
            for key in ("temp", "feels_like", "humidity", "wind_speed", "weather", "dt", "pressure", "uvi")
        },
        "hourly": [
            {
                "dt": hour.get("dt"),
                "temp": hour.get("temp"),
                "pop": hour.get("pop"),
                "humidity": hour.get("humidity"),
                "wind_speed": hour.get("wind_speed"),
                "weather": first_weather(hour),
            }
            for hour in (payload.get("hourly") or [])[:MAX_PROMPT_HOURS]
        ],
        "daily": [
            {
                "dt": day.get("dt"),
                "temp": day.get("temp"),
                "humidity": day.get("humidity"),
                "pop": day.get("pop"),
                "wind_speed": day.get("wind_speed"),
                "weather": first_weather(day),
                "sunrise": day.get("sunrise"),
                "sunset": day.get("sunset"),
                "uvi": day.get("uvi"),
            }
            for day in payload.get("daily") or []
        ],
        "historic": [
            {key: day.get(key) for key in ("date", "temp", "humidity", "wind_speed", "weather", "icon")}
            for day in payload.get("historic") or []
        ],
        "locationName": facility_name,
    }


def format_history(history: list[ChatTurn], facility_name: str, *, turns: int = 10) -> str:
    recent = history[-turns:]
    formatted = "\n".join(
        f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in recent
    )
    if len(history) > turns:
        earlier_questions = ", ".join(f'"{turn.content}"' for turn in history[:-turns] if turn.role == "user")
        summary = (
            f"Previous conversation summary: The user has asked about weather at {facility_name}, "
            f"including {earlier_questions}"
        )
        formatted = f"{summary}\n\n{formatted}"
    return formatted


def build_system_prompt(facility_name: str, *, today: date | None = None) -> str:
    reference_day = today or date.today()
    tomorrow = reference_day + timedelta(days=1)
    after = reference_day + timedelta(days=2)
    return SYSTEM_PROMPT_TEMPLATE.format(
        facility_name=facility_name,
        today_name=day_name(reference_day),
        today=format_long_date(reference_day),
        tomorrow_name=day_name(tomorrow),
        tomorrow=format_long_date(tomorrow),
        after_name=day_name(after),
        after=format_long_date(after),
    )


def initial_fact(payload: dict[str, Any]) -> WeatherFact:
    return WeatherFact(
        temperature=current_temperature(payload),
        condition=current_condition(payload) or "clear",
        precipitation=current_precipitation_pct(payload),
        wind=current_wind_kph(payload),
        visual_type="default",
        verified=True,
    )


def greeting(facility_name: str, *, today: date | None = None) -> str:
    reference_day = today or date.today()
    return (
        f"Hello! I'm your weather assistant for {facility_name}. Ask me about current conditions, "
        f"forecasts, or historical weather patterns! Today is {format_long_date(reference_day)}."
    )


def build_suggestions(payload: dict[str, Any], *, today: date | None = None) -> list[str]:
    reference_day = today or date.today()
    suggestions = ["How's the weather right now?"]

    next_hours = (payload.get("hourly") or [])[:12]
    if any((finite_or_none(hour.get("pop")) or 0) > 0.3 for hour in next_hours):
        suggestions.append("Will it rain today?")

    upcoming_days = [day for day in (payload.get("daily") or [])[:3] if isinstance(day.get("temp"), dict)]
    if any((finite_or_none(day["temp"].get("max")) or 0) > 30 for day in upcoming_days):
        suggestions.append("Is it going to be hot this week?")
    elif any((finite_or_none(day["temp"].get("min")) or 99) < 10 for day in upcoming_days):
        suggestions.append("Is it going to be cold this week?")

    # Sunday=0 .. Saturday=6, matching the weekend countdown used in the UI.
    day_of_week = (reference_day.weekday() + 1) % 7
    if day_of_week < 5:
        if 6 - day_of_week <= 3:
            suggestions.append("How's the weather looking for this weekend?")
        else:
            suggestions.append("What's the forecast for the next 3 days?")
    else:
        suggestions.append("What's the weather forecast for tomorrow?")

    condition = current_condition(payload)
    temp = current_temperature(payload)
    wind_speed = finite_or_none(current_block(payload).get("wind_speed"))
    if condition in {"rain", "thunderstorm"}:
        suggestions.append("Are there any indoor alternatives today?")
    elif condition == "clear" and (temp or 0) > 25 and (wind_speed or 0) < 15:
        suggestions.append("Is this good weather for cricket?")
    elif (wind_speed or 0) > 20:
        suggestions.append("How will the wind affect cricket today?")
    else:
        suggestions.append("Is it good weather for outdoor sports?")
    return suggestions


SPEECH_REPLACEMENTS = (
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"\[(.*?)\]\(.*?\)"), r"\1"),
    (re.compile(r"\n+"), " "),
    (re.compile(r"(\d+)\s?°C"), r"\1 degrees Celsius"),
    (re.compile(r"%"), " percent"),
    (re.compile(r"km/h"), "kilometers per hour"),
)


def speech_text(text: str) -> str:
    """Plain sentence form of a reply for speech synthesis."""
    spoken = fact_extractor.strip_structured_blocks(text)
    for pattern, replacement in SPEECH_REPLACEMENTS:
        spoken = pattern.sub(replacement, spoken)
    return spoken.strip()


@dataclass
class WeatherAssistant:
    settings: Settings
    model_client: Any
    max_tracked_sessions: int = MAX_TRACKED_SESSIONS
    _failures: dict[str, int] = field(default_factory=dict, init=False)

    async def answer(
        self,
        *,
        query: str,
        payload: dict[str, Any],
        facility_name: str,
        history: list[ChatTurn] | None = None,
        session_id: str | None = None,
        today: date | None = None,
    ) -> ChatResponse:
        history = history or []

        if session_id is not None and self._failures.get(session_id, 0) >= self.settings.fallback_after_failures:
            # Serve this turn from the payload, then give the model another chance next turn.
            logger.info("chat_fallback_forced", session_id=session_id, failures=self._failures.pop(session_id))
            return self._fallback(query, payload, facility_name, today=today)

        try:
            raw_reply = await self.model_client.generate(
                [
                    build_system_prompt(facility_name, today=today),
                    f"Provided weather data (JSON): {json.dumps(simplify_payload(payload, facility_name))}",
                    "Previous conversation:\n"
                    + format_history(history, facility_name, turns=self.settings.chat_history_turns),
                    f"User query: {query}",
                ]
            )
        except (httpx.HTTPError, ModelUnavailableError) as exc:
            failures = self._record_failure(session_id)
            logger.warning("chat_model_failed", session_id=session_id, failures=failures, error=str(exc))
            return self._fallback(query, payload, facility_name, today=today)

        if session_id is not None:
            self._failures.pop(session_id, None)
        extracted, cleaned_text = fact_extractor.extract(raw_reply)
        fact, correction_note, corrected_text = fact_validator.validate(
            extracted, payload, cleaned_text, today=today
        )
        message = corrected_text
        if correction_note:
            message += f"\n\n*Correction: {correction_note}*"
        if not message.strip():
            return self._fallback(query, payload, facility_name, today=today)
        return ChatResponse(
            message=message,
            speech=speech_text(message),
            fact=fact,
            source="model",
            correction_note=correction_note or None,
        )

    def _record_failure(self, session_id: str | None) -> int | None:
        """Count a model failure for a session. Anonymous requests are not tracked."""
        if session_id is None:
            return None
        failures = self._failures.pop(session_id, 0) + 1
        while len(self._failures) >= self.max_tracked_sessions:
            # Evict the least recently failed session.
            self._failures.pop(next(iter(self._failures)))
        self._failures[session_id] = failures
        return failures

    def _fallback(
        self, query: str, payload: dict[str, Any], facility_name: str, *, today: date | None
    ) -> ChatResponse:
        text = fallback_responder.respond(query, payload, facility_name, today=today)
        extracted, cleaned_text = fact_extractor.extract(text)
        fact, correction_note, corrected_text = fact_validator.validate(
            extracted, payload, cleaned_text, today=today
        )
        return ChatResponse(
            message=f"{corrected_text}\n\n*{FALLBACK_ANNOTATION}*",
            speech=speech_text(corrected_text),
            fact=fact,
            source="fallback",
            correction_note=correction_note or None,
        )
