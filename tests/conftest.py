"""Спільні фікстури: фейковий Coordinate Provider та генератори серій."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from PIL import Image

from chart_core.chart_types import CrosshairEvent


class FakeCoordinateProvider:
    """Лише обов'язкові методи провайдера; усе записується у `calls`."""

    def __init__(self, width: int = 200, height: int = 100) -> None:
        self.width = width
        self.height = height
        self.calls: list[tuple[str, Any]] = []
        self.data: list[dict[str, Any]] = []
        self.band: list[dict[str, Any]] | None = None
        self.range: dict[str, float] | None = None
        self.time_x: dict[int, float] = {}
        self.price_y: Callable[[float], float | None] = lambda price: price
        self.crosshair_callbacks: list[Callable[[CrosshairEvent], None]] = []
        self.click_callbacks: list[Callable[[CrosshairEvent], None]] = []

    def set_data(self, points):  # type: ignore[no-untyped-def]
        self.calls.append(("set_data", len(points)))
        self.data = list(points)

    def set_band_data(self, points):  # type: ignore[no-untyped-def]
        self.calls.append(("set_band_data", len(points)))
        self.band = list(points)

    def time_to_coordinate(self, time: int) -> float | None:
        return self.time_x.get(int(time))

    def price_to_coordinate(self, price: float) -> float | None:
        return self.price_y(price)

    def get_visible_logical_range(self):  # type: ignore[no-untyped-def]
        self.calls.append(("get_visible_logical_range", None))
        return dict(self.range) if self.range is not None else None

    def set_visible_logical_range(self, value):  # type: ignore[no-untyped-def]
        self.calls.append(("set_visible_logical_range", dict(value)))
        self.range = dict(value)

    def scroll_to_live(self) -> None:
        self.calls.append(("scroll_to_live", None))

    def fit_content(self) -> None:
        self.calls.append(("fit_content", None))

    def subscribe_crosshair_move(self, callback) -> None:  # type: ignore[no-untyped-def]
        self.crosshair_callbacks.append(callback)

    def subscribe_click(self, callback) -> None:  # type: ignore[no-untyped-def]
        self.click_callbacks.append(callback)

    # -- емуляція вводу --

    def emit_move(
        self,
        time: int | None,
        point: tuple[float, float] | None = (10.0, 20.0),
        data: dict[str, Any] | None = None,
    ) -> None:
        event = CrosshairEvent(time=time, point=point if time is not None else None, series_data=data)
        for callback in list(self.crosshair_callbacks):
            callback(event)

    def emit_click(self, time: int | None) -> None:
        event = CrosshairEvent(time=time, point=(1.0, 1.0) if time is not None else None)
        for callback in list(self.click_callbacks):
            callback(event)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class CapableFakeProvider(FakeCoordinateProvider):
    """Провайдер з усіма опційними можливостями."""

    def __init__(self, width: int = 200, height: int = 100) -> None:
        super().__init__(width, height)
        self.markers: list[dict[str, Any]] | None = None
        self.price_lines: dict[int, dict[str, Any]] = {}
        self.comparison: list[dict[str, Any]] | None = None
        self.price_format: tuple[int, float] | None = None
        self.resizes: list[tuple[int, int]] = []
        self.range_callbacks: list[Callable[[Any], None]] = []
        self.screenshot_color = (10, 10, 10, 255)
        self._next_handle = 0

    def set_markers(self, markers):  # type: ignore[no-untyped-def]
        self.calls.append(("set_markers", len(markers)))
        self.markers = list(markers)

    def take_screenshot(self) -> Image.Image:
        self.calls.append(("take_screenshot", None))
        return Image.new("RGBA", (self.width, self.height), self.screenshot_color)

    def enable_auto_scale(self) -> None:
        self.calls.append(("enable_auto_scale", None))

    def create_price_line(self, spec):  # type: ignore[no-untyped-def]
        self._next_handle += 1
        self.price_lines[self._next_handle] = dict(spec)
        return self._next_handle

    def remove_price_line(self, handle) -> None:  # type: ignore[no-untyped-def]
        self.price_lines.pop(handle, None)

    def set_comparison_data(self, points):  # type: ignore[no-untyped-def]
        self.comparison = list(points)

    def apply_price_format(self, precision: int, min_move: float) -> None:
        self.price_format = (precision, min_move)

    def resize(self, width: int, height: int) -> None:
        self.resizes.append((width, height))
        self.width, self.height = width, height

    def subscribe_visible_range_change(self, callback) -> None:  # type: ignore[no-untyped-def]
        self.range_callbacks.append(callback)

    def emit_range(self, value: dict[str, float] | None) -> None:
        self.range = dict(value) if value is not None else None
        for callback in list(self.range_callbacks):
            callback(value)


def make_candles(start: int, count: int, *, step: int = 60, base: float = 1.1) -> list[dict[str, Any]]:
    return [
        {
            "time": start + i * step,
            "open": base + i * 0.001,
            "high": base + i * 0.001 + 0.002,
            "low": base + i * 0.001 - 0.002,
            "close": base + i * 0.001 + 0.001,
        }
        for i in range(count)
    ]


def make_values(start: int, count: int, *, step: int = 60) -> list[dict[str, Any]]:
    return [{"time": start + i * step, "value": 1000.0 + i} for i in range(count)]


@pytest.fixture
def fake_provider() -> FakeCoordinateProvider:
    return FakeCoordinateProvider()


@pytest.fixture
def capable_provider() -> CapableFakeProvider:
    return CapableFakeProvider()
