from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_name: str = "Pitchside Weather API"
    app_version: str = "1.0.0"
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_temperature: float = 0.2
    gemini_max_output_tokens: int = 800
    api_cache_ttl_seconds: int = 600
    api_retry_attempts: int = 2
    request_timeout_seconds: float = 12.0
    chat_history_turns: int = 10
    fallback_after_failures: int = 2
    log_level: str = "INFO"
    frontend_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    cache_ttl_raw = os.getenv("API_CACHE_TTL_SECONDS", "").strip()
    retry_attempts_raw = os.getenv("API_RETRY_ATTEMPTS", "").strip()
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()
    history_turns_raw = os.getenv("CHAT_HISTORY_TURNS", "").strip()
    fallback_after_raw = os.getenv("FALLBACK_AFTER_FAILURES", "").strip()

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    try:
        cache_ttl_seconds = int(cache_ttl_raw) if cache_ttl_raw else 600
    except ValueError:
        cache_ttl_seconds = 600

    try:
        retry_attempts = int(retry_attempts_raw) if retry_attempts_raw else 2
    except ValueError:
        retry_attempts = 2

    try:
        request_timeout_seconds = float(timeout_raw) if timeout_raw else 12.0
    except ValueError:
        request_timeout_seconds = 12.0

    try:
        chat_history_turns = int(history_turns_raw) if history_turns_raw else 10
    except ValueError:
        chat_history_turns = 10

    try:
        fallback_after_failures = int(fallback_after_raw) if fallback_after_raw else 2
    except ValueError:
        fallback_after_failures = 2

    return Settings(
        openweather_api_key=os.getenv("OPENWEATHER_API_KEY", "").strip(),
        openweather_base_url=os.getenv("OPENWEATHER_BASE_URL", "").strip() or Settings.openweather_base_url,
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_model=os.getenv("GEMINI_MODEL", "").strip() or Settings.gemini_model,
        gemini_base_url=os.getenv("GEMINI_BASE_URL", "").strip() or Settings.gemini_base_url,
        api_cache_ttl_seconds=max(60, cache_ttl_seconds),
        api_retry_attempts=max(0, retry_attempts),
        request_timeout_seconds=max(1.0, request_timeout_seconds),
        chat_history_turns=max(1, chat_history_turns),
        fallback_after_failures=max(1, fallback_after_failures),
        log_level=os.getenv("LOG_LEVEL", "").strip().upper() or Settings.log_level,
        frontend_origins=parsed_origins or Settings.frontend_origins,
    )
