from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from pitchside.schemas import MetricKind, TimeWindow
from pitchside.services.payload_readers import finite_or_none

FORECAST_CAP_DAYS = 3
HISTORIC_WINDOW_DAYS = {TimeWindow.LAST_7_DAYS: 7, TimeWindow.LAST_3_DAYS: 3}

# (line name, historic key, forecast key) per metric.
SERIES_LINES: dict[MetricKind, tuple[tuple[str, str, str], ...]] = {
    MetricKind.TEMPERATURE: (
        ("min", "historic_min", "forecast_min"),
        ("max", "historic_max", "forecast_max"),
        ("avg", "historic_avg", "forecast_avg"),
    ),
    MetricKind.PRECIPITATION: (("value", "historic_synthesized", "forecast"),),
    MetricKind.HUMIDITY: (("value", "historic", "forecast"),),
}

METRIC_UNITS = {
    MetricKind.TEMPERATURE: "°C",
    MetricKind.PRECIPITATION: "%",
    MetricKind.HUMIDITY: "%",
}


def filter_by_window(payload: dict[str, Any], window: TimeWindow) -> tuple[list[dict], list[dict]]:
    historic = [row for row in payload.get("historic") or [] if isinstance(row, dict)]
    forecast = [row for row in payload.get("daily") or [] if isinstance(row, dict)]

    days = HISTORIC_WINDOW_DAYS.get(window)
    if days is not None:
        historic = historic[-days:]
        # Forecast is capped at three days for every narrowed window, 7days included.
        forecast = forecast[:FORECAST_CAP_DAYS]
    return historic, forecast


def synthesized_precipitation(humidity: float) -> float:
    """Precipitation proxy for past days, derived from humidity. Not a measurement."""
    return max(0.0, min(100.0, (humidity - 40) / 2)) / 100


def build_series(payload: dict[str, Any], window: TimeWindow, metric: MetricKind) -> dict:
    historic_rows, forecast_rows = filter_by_window(payload, window)

    if metric == MetricKind.TEMPERATURE:
        historic_values = [_historic_temperature(row) for row in historic_rows]
        forecast_values = [_forecast_temperature(row) for row in forecast_rows]
    elif metric == MetricKind.PRECIPITATION:
        historic_values = [_historic_precipitation(row) for row in historic_rows]
        forecast_values = [_single(row.get("pop")) for row in forecast_rows]
    else:
        historic_values = [_single(row.get("humidity")) for row in historic_rows]
        forecast_values = [_single(row.get("humidity")) for row in forecast_rows]

    historic_pairs = [(row, values) for row, values in zip(historic_rows, historic_values) if values is not None]
    forecast_pairs = [(row, values) for row, values in zip(forecast_rows, forecast_values) if values is not None]

    series: dict[str, Any] = {"metric": metric.value, "window": window.value, "unit": METRIC_UNITS[metric]}
    for index, (_, historic_key, forecast_key) in enumerate(SERIES_LINES[metric]):
        series[historic_key] = [values[index] for _, values in historic_pairs]
        series[forecast_key] = [values[index] for _, values in forecast_pairs]

    if metric == MetricKind.PRECIPITATION:
        series["historic_is_synthesized"] = True

    series["historic_labels"] = [_weekday_from_iso(row.get("date")) for row, _ in historic_pairs]
    series["forecast_labels"] = [
        "Today" if idx == 0 else _weekday_from_unix(row.get("dt")) for idx, (row, _) in enumerate(forecast_pairs)
    ]
    series["has_data"] = bool(historic_pairs or forecast_pairs)
    return series


def series_sides(series: dict) -> list[tuple[str, list[float], list[float]]]:
    """Return (line name, historic values, forecast values) for each plotted line."""
    metric = MetricKind(series["metric"])
    return [
        (name, list(series.get(historic_key) or []), list(series.get(forecast_key) or []))
        for name, historic_key, forecast_key in SERIES_LINES[metric]
    ]


def _single(value: object) -> tuple[float] | None:
    parsed = finite_or_none(value)
    if parsed is None:
        return None
    return (parsed,)


def _historic_temperature(row: dict) -> tuple[float, float, float] | None:
    temp = row.get("temp") if isinstance(row.get("temp"), dict) else {}
    values = (finite_or_none(temp.get("min")), finite_or_none(temp.get("max")), finite_or_none(temp.get("avg")))
    if any(value is None for value in values):
        return None
    return values  # type: ignore[return-value]


def _forecast_temperature(row: dict) -> tuple[float, float, float] | None:
    temp = row.get("temp") if isinstance(row.get("temp"), dict) else {}
    values = (finite_or_none(temp.get("min")), finite_or_none(temp.get("max")), finite_or_none(temp.get("day")))
    if any(value is None for value in values):
        return None
    return values  # type: ignore[return-value]


def _historic_precipitation(row: dict) -> tuple[float] | None:
    humidity = finite_or_none(row.get("humidity"))
    if humidity is None:
        return None
    return (synthesized_precipitation(humidity),)


def _weekday_from_iso(value: object) -> str:
    if not isinstance(value, str):
        return ""
    try:
        return date.fromisoformat(value[:10]).strftime("%a")
    except ValueError:
        return ""


def _weekday_from_unix(value: object) -> str:
    stamp = finite_or_none(value)
    if stamp is None:
        return ""
    return datetime.fromtimestamp(stamp, tz=timezone.utc).strftime("%a")
