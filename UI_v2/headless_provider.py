"""Headless Coordinate Provider: лінійна трансформація + рендер через Pillow.

Використовується replay-інструментом і e2e-тестами замість справжнього
chart-віджета. Поведінка навмисно проста:
- вісь X — logical index бару; `bar_spacing = width / (to - from + 1)`;
- вісь Y — автомасштаб за high/low (або value) видимих барів з полями;
- `time_to_coordinate` повертає None для часу поза завантаженими даними.
"""

from __future__ import annotations

import itertools
import logging
from bisect import bisect_left
from collections.abc import Sequence
from typing import Any

from PIL import Image, ImageDraw

from chart_core.chart_types import CrosshairEvent
from chart_core.provider import CrosshairCallback, RangeCallback
from config.config import CANDLE_DOWN_COLOR, CANDLE_UP_COLOR, CHART_BACKGROUND
from core.contracts import (
    ChartMarker,
    PriceLineSpec,
    SeriesPoint,
    SessionBandPoint,
    ViewportRange,
)
from core.formatters import css_color_to_rgba

logger = logging.getLogger("UI_v2.headless_provider")

_DEFAULT_VISIBLE_BARS = 120
_PRICE_MARGIN = 0.1
_BAND_HEIGHT_RATIO = 0.08
_AREA_COLOR = "rgba(6, 182, 212, 1)"


class HeadlessChartProvider:
    """In-process chart-віджет з усіма опційними можливостями."""

    def __init__(
        self,
        width: int = 800,
        height: int = 600,
        *,
        visible_bars: int = _DEFAULT_VISIBLE_BARS,
        background: str = CHART_BACKGROUND,
    ) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self.visible_bars = max(1, int(visible_bars))
        self.background = background
        self.points: list[SeriesPoint] = []
        self.band: list[SessionBandPoint] = []
        self.markers: list[ChartMarker] = []
        self.comparison: list[SeriesPoint] = []
        self.price_lines: dict[int, PriceLineSpec] = {}
        self.precision = 5
        self.min_move = 0.00001
        self.auto_scale = True
        self._times: list[int] = []
        self._range: ViewportRange | None = None
        self._handles = itertools.count(1)
        self._crosshair_callbacks: list[CrosshairCallback] = []
        self._click_callbacks: list[CrosshairCallback] = []
        self._range_callbacks: list[RangeCallback] = []

    # ── Дані ────────────────────────────────────────────────────────────

    def set_data(self, points: Sequence[SeriesPoint]) -> None:
        self.points = list(points)
        self._times = [int(p["time"]) for p in self.points]
        if not self.points:
            self._range = None
        elif self._range is None:
            self._range = self._tail_range(self.visible_bars)

    def set_band_data(self, points: Sequence[SessionBandPoint]) -> None:
        self.band = list(points)

    def set_markers(self, markers: Sequence[ChartMarker]) -> None:
        self.markers = list(markers)

    def set_comparison_data(self, points: Sequence[SeriesPoint]) -> None:
        self.comparison = list(points)

    def create_price_line(self, spec: PriceLineSpec) -> int:
        handle = next(self._handles)
        self.price_lines[handle] = spec
        return handle

    def remove_price_line(self, handle: int) -> None:
        self.price_lines.pop(handle, None)

    def apply_price_format(self, precision: int, min_move: float) -> None:
        self.precision = int(precision)
        self.min_move = float(min_move)

    def enable_auto_scale(self) -> None:
        self.auto_scale = True

    def resize(self, width: int, height: int) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))

    # ── Трансформація ───────────────────────────────────────────────────

    def _bar_spacing(self) -> float:
        if self._range is None:
            return float(self.width)
        span = max(1.0, self._range["to"] - self._range["from"] + 1)
        return self.width / span

    def logical_to_x(self, index: float) -> float | None:
        if self._range is None:
            return None
        spacing = self._bar_spacing()
        return (index - self._range["from"]) * spacing + spacing / 2

    def time_to_coordinate(self, time: int) -> float | None:
        if not self._times:
            return None
        ts = int(time)
        if ts < self._times[0] or ts > self._times[-1]:
            return None
        idx = bisect_left(self._times, ts)
        if self._times[idx] == ts:
            return self.logical_to_x(idx)
        # між барами лінійна інтерполяція індексу
        left_t, right_t = self._times[idx - 1], self._times[idx]
        frac = (ts - left_t) / (right_t - left_t)
        return self.logical_to_x(idx - 1 + frac)

    def _visible_points(self) -> list[tuple[int, SeriesPoint]]:
        if self._range is None or not self.points:
            return []
        lo = max(0, int(self._range["from"]))
        hi = min(len(self.points) - 1, int(self._range["to"]) + 1)
        return [(i, self.points[i]) for i in range(lo, hi + 1)]

    def _price_bounds(self) -> tuple[float, float] | None:
        lows: list[float] = []
        highs: list[float] = []
        for _, point in self._visible_points() or list(enumerate(self.points)):
            if "value" in point:
                lows.append(float(point["value"]))  # type: ignore[typeddict-item]
                highs.append(float(point["value"]))  # type: ignore[typeddict-item]
            else:
                lows.append(float(point["low"]))  # type: ignore[typeddict-item]
                highs.append(float(point["high"]))  # type: ignore[typeddict-item]
        if not lows:
            return None
        lo, hi = min(lows), max(highs)
        if hi == lo:
            pad = abs(hi) * 0.01 or 1.0
        else:
            pad = (hi - lo) * _PRICE_MARGIN
        return lo - pad, hi + pad

    def price_to_coordinate(self, price: float) -> float | None:
        bounds = self._price_bounds()
        if bounds is None:
            return None
        lo, hi = bounds
        return self.height * (1.0 - (float(price) - lo) / (hi - lo))

    # ── Viewport ────────────────────────────────────────────────────────

    def _tail_range(self, bars: int) -> ViewportRange:
        last = len(self.points) - 1
        return {"from": float(max(0, last - bars + 1)), "to": float(last)}

    def get_visible_logical_range(self) -> ViewportRange | None:
        if self._range is None:
            return None
        return {"from": self._range["from"], "to": self._range["to"]}

    def set_visible_logical_range(self, value: ViewportRange) -> None:
        self._range = {"from": float(value["from"]), "to": float(value["to"])}
        self._notify_range()

    def scroll_to_live(self) -> None:
        if not self.points:
            return
        span = self.visible_bars
        if self._range is not None:
            span = max(1, int(round(self._range["to"] - self._range["from"])) + 1)
        self._range = self._tail_range(span)
        self._notify_range()

    def fit_content(self) -> None:
        if not self.points:
            return
        self._range = {"from": 0.0, "to": float(len(self.points) - 1)}
        self._notify_range()

    # ── Підписки / емуляція вводу ───────────────────────────────────────

    def subscribe_crosshair_move(self, callback: CrosshairCallback) -> None:
        self._crosshair_callbacks.append(callback)

    def subscribe_click(self, callback: CrosshairCallback) -> None:
        self._click_callbacks.append(callback)

    def subscribe_visible_range_change(self, callback: RangeCallback) -> None:
        self._range_callbacks.append(callback)

    def _notify_range(self) -> None:
        current = self.get_visible_logical_range()
        for callback in list(self._range_callbacks):
            callback(current)

    def _event_at(self, time: int | None, x: float, y: float) -> CrosshairEvent:
        if time is None:
            return CrosshairEvent()
        idx = bisect_left(self._times, int(time))
        data = None
        if idx < len(self._times) and self._times[idx] == int(time):
            data = dict(self.points[idx])
        return CrosshairEvent(time=int(time), point=(x, y), series_data=data)

    def emit_crosshair(self, time: int | None, x: float = 0.0, y: float = 0.0) -> None:
        event = self._event_at(time, x, y)
        for callback in list(self._crosshair_callbacks):
            callback(event)

    def emit_pointer_leave(self) -> None:
        self.emit_crosshair(None)

    def emit_click(self, time: int | None, x: float = 0.0, y: float = 0.0) -> None:
        event = self._event_at(time, x, y)
        for callback in list(self._click_callbacks):
            callback(event)

    # ── Рендер ──────────────────────────────────────────────────────────

    def take_screenshot(self) -> Image.Image:
        """Базовий шар графіка: band, свічки/area, price-lines, маркери."""

        image = Image.new("RGBA", (self.width, self.height), css_color_to_rgba(self.background))
        visible = self._visible_points()
        if not visible:
            return image
        spacing = self._bar_spacing()
        self._draw_band(image, spacing)
        draw = ImageDraw.Draw(image)
        if "value" in visible[0][1]:
            self._draw_area(draw, visible)
        else:
            self._draw_candles(draw, visible, spacing)
        self._draw_price_lines(draw)
        self._draw_markers(draw)
        return image

    def _draw_band(self, image: Image.Image, spacing: float) -> None:
        if not self.band:
            return
        band_top = self.height * (1.0 - _BAND_HEIGHT_RATIO)
        layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for point in self.band:
            if not point.get("value"):
                continue
            x = self.time_to_coordinate(int(point["time"]))
            if x is None:
                continue
            try:
                fill = css_color_to_rgba(point["color"])
            except ValueError:
                logger.debug("[HeadlessProvider] Невідомий колір band: %s", point["color"])
                continue
            draw.rectangle(
                (x - spacing / 2, band_top, x + spacing / 2, self.height), fill=fill
            )
        image.alpha_composite(layer)

    def _draw_candles(
        self,
        draw: ImageDraw.ImageDraw,
        visible: list[tuple[int, SeriesPoint]],
        spacing: float,
    ) -> None:
        half_body = max(1.0, spacing * 0.35)
        up = css_color_to_rgba(CANDLE_UP_COLOR)
        down = css_color_to_rgba(CANDLE_DOWN_COLOR)
        for idx, point in visible:
            x = self.logical_to_x(idx)
            ys = [
                self.price_to_coordinate(float(point[key]))  # type: ignore[literal-required]
                for key in ("open", "high", "low", "close")
            ]
            if x is None or any(y is None for y in ys):
                continue
            y_open, y_high, y_low, y_close = ys  # type: ignore[misc]
            color = up if point["close"] >= point["open"] else down  # type: ignore[typeddict-item]
            draw.line((x, y_high, x, y_low), fill=color, width=1)
            top, bottom = min(y_open, y_close), max(y_open, y_close)
            draw.rectangle((x - half_body, top, x + half_body, max(bottom, top + 1)), fill=color)

    def _draw_area(
        self, draw: ImageDraw.ImageDraw, visible: list[tuple[int, SeriesPoint]]
    ) -> None:
        coords: list[tuple[float, float]] = []
        for idx, point in visible:
            x = self.logical_to_x(idx)
            y = self.price_to_coordinate(float(point["value"]))  # type: ignore[typeddict-item]
            if x is not None and y is not None:
                coords.append((x, y))
        if len(coords) >= 2:
            draw.line(coords, fill=css_color_to_rgba(_AREA_COLOR), width=2)

    def _draw_price_lines(self, draw: ImageDraw.ImageDraw) -> None:
        for spec in self.price_lines.values():
            y = self.price_to_coordinate(spec["price"])
            if y is None or not 0 <= y <= self.height:
                continue
            color = css_color_to_rgba(spec["color"])
            for x0 in range(0, self.width, 10):
                draw.line((x0, y, min(x0 + 5, self.width), y), fill=color, width=1)

    def _draw_markers(self, draw: ImageDraw.ImageDraw) -> None:
        for marker in self.markers:
            x = self.time_to_coordinate(int(marker["time"]))
            if x is None:
                continue
            y = self.height - 12 if marker.get("position") == "belowBar" else 12
            try:
                color = css_color_to_rgba(marker.get("color") or "white")
            except ValueError:
                color = (255, 255, 255, 255)
            draw.ellipse((x - 3, y - 3, x + 3, y + 3), fill=color)


__all__ = ("HeadlessChartProvider",)
