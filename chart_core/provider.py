"""Інтерфейс Coordinate Provider та перелік його опційних можливостей.

Coordinate Provider — зовнішній chart-віджет: він володіє canvas, перетворює
час/ціну у пікселі і тримає видимий logical range. Рушій спілкується з ним лише
через методи нижче.

Опційні можливості (маркери, знімок, price-lines, …) перевіряються ОДИН раз
при ініціалізації (`ProviderCapabilities.detect`), а не ad hoc у місцях виклику.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from core.contracts import SeriesPoint, SessionBandPoint, ViewportRange

from .chart_types import CrosshairEvent

CrosshairCallback = Callable[[CrosshairEvent], None]
RangeCallback = Callable[[ViewportRange | None], None]


@runtime_checkable
class CoordinateProvider(Protocol):
    """Обов'язковий мінімум chart-віджета."""

    def set_data(self, points: Sequence[SeriesPoint]) -> None: ...

    def set_band_data(self, points: Sequence[SessionBandPoint]) -> None: ...

    def time_to_coordinate(self, time: int) -> float | None: ...

    def price_to_coordinate(self, price: float) -> float | None: ...

    def get_visible_logical_range(self) -> ViewportRange | None: ...

    def set_visible_logical_range(self, value: ViewportRange) -> None: ...

    def scroll_to_live(self) -> None: ...

    def fit_content(self) -> None: ...

    def subscribe_crosshair_move(self, callback: CrosshairCallback) -> None: ...

    def subscribe_click(self, callback: CrosshairCallback) -> None: ...


# Назви опційних методів -> поле ProviderCapabilities.
_CAPABILITY_METHODS: dict[str, tuple[str, ...]] = {
    "markers": ("set_markers",),
    "screenshot": ("take_screenshot",),
    "auto_scale": ("enable_auto_scale",),
    "price_lines": ("create_price_line", "remove_price_line"),
    "comparison": ("set_comparison_data",),
    "price_format": ("apply_price_format",),
    "resize": ("resize",),
    "range_subscription": ("subscribe_visible_range_change",),
}


@dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    """Знімок опційних можливостей провайдера."""

    markers: bool = False
    screenshot: bool = False
    auto_scale: bool = False
    price_lines: bool = False
    comparison: bool = False
    price_format: bool = False
    resize: bool = False
    range_subscription: bool = False

    @classmethod
    def detect(cls, provider: Any) -> ProviderCapabilities:
        flags = {
            name: all(callable(getattr(provider, method, None)) for method in methods)
            for name, methods in _CAPABILITY_METHODS.items()
        }
        return cls(**flags)

    def missing(self) -> list[str]:
        return [name for name in _CAPABILITY_METHODS if not getattr(self, name)]


__all__ = (
    "CoordinateProvider",
    "CrosshairCallback",
    "RangeCallback",
    "ProviderCapabilities",
)
