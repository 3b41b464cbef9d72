from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TimeWindow(str, Enum):
    ALL = "all"
    LAST_7_DAYS = "7days"
    LAST_3_DAYS = "3days"


class MetricKind(str, Enum):
    TEMPERATURE = "temperature"
    PRECIPITATION = "precipitation"
    HUMIDITY = "humidity"


VisualType = Literal["default", "chart", "forecast"]


class WeatherFact(BaseModel):
    """Structured weather summary attached to one assistant message."""

    temperature: float | None = None
    condition: str | None = None
    precipitation: float | None = None
    wind: float | None = Field(default=None, description="Wind speed in km/h.")
    visual_type: VisualType = "default"
    verified: bool = False
    correction_note: str | None = None


class Location(BaseModel):
    model_config = ConfigDict(extra="ignore")

    city: str | None = Field(default=None, description="City name to look up if coordinates are not provided.")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_location_inputs(self) -> "Location":
        has_coordinates = self.latitude is not None and self.longitude is not None
        if not has_coordinates and (self.city is None or not self.city.strip()):
            raise ValueError("Provide either city or latitude and longitude.")
        return self


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, max_length=1000)
    location: Location
    facility_name: str = Field(min_length=1, max_length=120)
    history: list[ChatTurn] = Field(default_factory=list)
    session_id: str | None = Field(default=None, max_length=120)


class ChatResponse(BaseModel):
    message: str
    speech: str = Field(default="", description="Reply as plain sentences for speech synthesis.")
    fact: WeatherFact
    source: Literal["model", "fallback"]
    correction_note: str | None = None
