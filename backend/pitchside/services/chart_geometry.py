from __future__ import annotations

import math
from dataclasses import dataclass

from pitchside.schemas import MetricKind
from pitchside.services.series_builder import series_sides

LEFT_MARGIN = 50
TOP_MARGIN = 30
BOTTOM_MARGIN = 30
SIDE_PADDING = 100
TEMPERATURE_PADDING = 5
PERCENT_TICKS = (0, 25, 50, 75, 100)


@dataclass(frozen=True)
class ChartLayout:
    chart_type: str
    plot_height: float
    width_cap: float
    width_budget: float | None
    gap: float
    dense_gap: float
    dense_threshold: int = 10

    def element_width(self, total: int, width_budget: float | None) -> float:
        budget = width_budget if width_budget is not None else self.width_budget
        if budget is None:
            return self.width_cap
        return min(self.width_cap, budget / total)

    def gap_for(self, total: int) -> float:
        return self.dense_gap if total > self.dense_threshold else self.gap


CHART_LAYOUTS = {
    MetricKind.TEMPERATURE: ChartLayout("line", plot_height=220, width_cap=80, width_budget=800, gap=10, dense_gap=5),
    # Bars keep a fixed 30px width and 20px gap whatever the budget.
    MetricKind.PRECIPITATION: ChartLayout("bar", plot_height=160, width_cap=30, width_budget=None, gap=20, dense_gap=20),
    MetricKind.HUMIDITY: ChartLayout("area", plot_height=160, width_cap=60, width_budget=750, gap=15, dense_gap=10),
}


def map_to_geometry(series: dict, width_budget: float | None = None, height_budget: float | None = None) -> dict:
    metric = MetricKind(series["metric"])
    layout = CHART_LAYOUTS[metric]
    sides = series_sides(series)
    historic_count = len(sides[0][1])
    forecast_count = len(sides[0][2])
    total = historic_count + forecast_count
    plot_height = float(height_budget) if height_budget else layout.plot_height

    if total == 0:
        return {
            "chart_type": layout.chart_type,
            "has_data": False,
            "width": 0,
            "height": 0,
            "lines": [],
            "x_ticks": [],
            "y_ticks": [],
            "divider_x": None,
            "divider_label": None,
        }

    element_width = layout.element_width(total, width_budget)
    gap = layout.gap_for(total)
    stride = element_width + gap
    baseline = TOP_MARGIN + plot_height

    scale = 100.0 if metric == MetricKind.PRECIPITATION else 1.0
    if metric == MetricKind.TEMPERATURE:
        all_values = [value for _, historic, forecast in sides for value in historic + forecast]
        y_min = math.floor(min(all_values)) - TEMPERATURE_PADDING
        y_max = math.ceil(max(all_values)) + TEMPERATURE_PADDING
    else:
        y_min, y_max = 0, 100

    def slot_x(index: int) -> float:
        return LEFT_MARGIN + index * stride

    def to_y(value: float) -> float:
        return TOP_MARGIN + plot_height - (value * scale - y_min) / (y_max - y_min) * plot_height

    lines: list[dict] = []
    for name, historic, forecast in sides:
        for side, values, offset in (("historic", historic, 0), ("forecast", forecast, historic_count)):
            if not values:
                continue
            points = [
                {"x": _r(slot_x(offset + idx) + element_width / 2), "y": _r(to_y(value)), "value": value}
                for idx, value in enumerate(values)
            ]
            entry: dict = {"name": name, "side": side, "points": points, "path_d": _line_path(points)}
            if layout.chart_type == "area":
                entry["area_d"] = _area_path(
                    points,
                    start_x=slot_x(offset),
                    end_x=slot_x(offset + len(values) - 1) + element_width,
                    baseline=baseline,
                )
            elif layout.chart_type == "bar":
                entry["path_d"] = None
                entry["bars"] = [
                    {
                        "x": _r(slot_x(offset + idx)),
                        "y": point["y"],
                        "width": _r(element_width),
                        "height": _r(baseline - point["y"]),
                        "value": point["value"],
                    }
                    for idx, point in enumerate(points)
                ]
            lines.append(entry)

    labels = list(series.get("historic_labels") or []) + list(series.get("forecast_labels") or [])
    x_ticks = [
        {"x": _r(slot_x(idx) + element_width / 2), "label": labels[idx] if idx < len(labels) else ""}
        for idx in range(total)
    ]

    if metric == MetricKind.TEMPERATURE:
        tick_values = [y_min + i * ((y_max - y_min) / 5) for i in range(6)]
        y_ticks = [{"y": _r(to_y(value)), "label": f"{round(value)}°C"} for value in tick_values]
    else:
        y_ticks = [
            {"y": _r(TOP_MARGIN + plot_height - (percent / 100) * plot_height), "label": f"{percent}%"}
            for percent in PERCENT_TICKS
        ]

    divider_x = None
    if historic_count and forecast_count:
        divider_x = _r(LEFT_MARGIN + historic_count * stride - gap / 2)

    return {
        "chart_type": layout.chart_type,
        "has_data": True,
        "width": _r(stride * total + SIDE_PADDING),
        "height": _r(TOP_MARGIN + plot_height + BOTTOM_MARGIN),
        "element_width": _r(element_width),
        "gap": gap,
        "y_min": y_min,
        "y_max": y_max,
        "lines": lines,
        "x_ticks": x_ticks,
        "y_ticks": y_ticks,
        "divider_x": divider_x,
        "divider_label": "Today" if divider_x is not None else None,
    }


def _line_path(points: list[dict]) -> str | None:
    if len(points) < 2:
        return None
    head, *tail = points
    segments = [f"M {_fmt(head['x'])} {_fmt(head['y'])}"]
    segments.extend(f"L {_fmt(point['x'])} {_fmt(point['y'])}" for point in tail)
    return " ".join(segments)


def _area_path(points: list[dict], *, start_x: float, end_x: float, baseline: float) -> str | None:
    if len(points) < 2:
        return None
    segments = [f"M {_fmt(start_x)} {_fmt(baseline)}"]
    segments.extend(f"L {_fmt(point['x'])} {_fmt(point['y'])}" for point in points)
    segments.append(f"L {_fmt(end_x)} {_fmt(baseline)} Z")
    return " ".join(segments)


def _r(value: float) -> float:
    return round(value, 2)


def _fmt(value: float) -> str:
    return f"{round(value, 2):g}"
