from __future__ import annotations

from datetime import datetime, timezone

import httpx
import structlog
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from pitchside.config import get_settings
from pitchside.schemas import ChatRequest, ChatResponse, Location, MetricKind, TimeWindow
from pitchside.services.assistant import (
    GeminiClient,
    WeatherAssistant,
    build_suggestions,
    greeting,
    initial_fact,
)
from pitchside.services.chart_geometry import map_to_geometry
from pitchside.services.logging_service import configure_logging
from pitchside.services.series_builder import build_series
from pitchside.services.weather_client import WeatherClient, WeatherProviderError


settings = get_settings()
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)

weather_client = WeatherClient(settings=settings)
model_client = GeminiClient(settings=settings)
assistant = WeatherAssistant(settings=settings, model_client=model_client)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await weather_client.close()
    await model_client.close()


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/weather")
async def weather(
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    city: str | None = Query(default=None, min_length=2, max_length=80),
    facility_name: str | None = Query(default=None, max_length=120),
) -> dict:
    location = _location_or_422(latitude=latitude, longitude=longitude, city=city)
    return await _fetch_payload(location, facility_name)


@app.get("/api/weather/chart")
async def weather_chart(
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    city: str | None = Query(default=None, min_length=2, max_length=80),
    window: TimeWindow = Query(default=TimeWindow.ALL),
    metric: MetricKind = Query(default=MetricKind.TEMPERATURE),
    width_budget: float | None = Query(default=None, gt=0, le=4000),
    height_budget: float | None = Query(default=None, gt=0, le=2000),
) -> dict:
    location = _location_or_422(latitude=latitude, longitude=longitude, city=city)
    payload = await _fetch_payload(location, None)

    series = build_series(payload, window, metric)
    geometry = map_to_geometry(series, width_budget=width_budget, height_budget=height_budget)
    return {
        "series": series,
        "geometry": geometry,
        "placeholder": None if series["has_data"] else f"No {metric.value} data available",
    }


@app.post("/api/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest) -> ChatResponse:
    weather_payload = await _fetch_payload(payload.location, payload.facility_name)
    return await assistant.answer(
        query=payload.query.strip(),
        payload=weather_payload,
        facility_name=payload.facility_name,
        history=payload.history,
        session_id=payload.session_id,
    )


@app.get("/api/chat/suggestions")
async def chat_suggestions(
    facility_name: str = Query(min_length=1, max_length=120),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    city: str | None = Query(default=None, min_length=2, max_length=80),
) -> dict:
    location = _location_or_422(latitude=latitude, longitude=longitude, city=city)
    weather_payload = await _fetch_payload(location, facility_name)
    return {
        "greeting": greeting(facility_name),
        "fact": initial_fact(weather_payload).model_dump(),
        "suggestions": build_suggestions(weather_payload),
    }


def _location_or_422(*, latitude: float | None, longitude: float | None, city: str | None) -> Location:
    try:
        return Location(city=city, latitude=latitude, longitude=longitude)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="Provide either city or latitude and longitude.") from exc


async def _fetch_payload(location: Location, facility_name: str | None) -> dict:
    try:
        if location.latitude is not None and location.longitude is not None:
            return await weather_client.fetch_by_coordinates(
                latitude=location.latitude,
                longitude=location.longitude,
                facility_name=facility_name,
            )
        return await weather_client.fetch_by_city(city=location.city or "", facility_name=facility_name)
    except (WeatherProviderError, httpx.HTTPError) as exc:
        logger.warning("weather_payload_unavailable", error=str(exc))
        raise HTTPException(status_code=502, detail=f"Weather provider error: {exc}") from exc
