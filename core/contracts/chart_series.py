"""Канонічні контракти chart-engine: точки серій, оверлеї, маркери.

Призначення:
- SSOT для TypedDict, які приходять ззовні (data source, scan producer,
  marker producer) або віддаються назовні (tooltip, band-серія);
- chart_core імпортує типи звідси, а не описує їх локально.

Одиниці:
- `time` — Unix timestamp у секундах (int), унікальний ключ точки;
- ціни — float у валюті інструмента.
"""

from __future__ import annotations

from typing import Literal, TypedDict, Union

# ── Точки серій ──────────────────────────────────────────────────────────


class CandlePoint(TypedDict):
    """OHLC-свічка для цінової серії."""

    time: int
    open: float
    high: float
    low: float
    close: float


class ValuePoint(TypedDict):
    """Скалярна точка (equity/агрегат)."""

    time: int
    value: float


SeriesPoint = Union[CandlePoint, ValuePoint]

SeriesType = Literal["CANDLE", "AREA"]


class SessionBandPoint(TypedDict):
    """Точка похідної гістограми killzone: 1 + колір або 0 + transparent."""

    time: int
    value: int
    color: str


# `from` є ключовим словом, тому функціональний синтаксис.
ViewportRange = TypedDict("ViewportRange", {"from": float, "to": float})


# ── Результат сканера (read-only для рушія) ──────────────────────────────


class ChartZone(TypedDict, total=False):
    """Цінова зона: supply/demand/gap/liquidity."""

    id: str
    label: str
    type: str
    priceStart: float
    priceEnd: float
    timeStart: int
    timeEnd: int | None
    color: str


class ChartLine(TypedDict, total=False):
    """Відрізок (x — час у секундах, y — ціна)."""

    id: str
    label: str
    type: str
    x1: int
    y1: float
    x2: int
    y2: float
    color: str


class ScanResult(TypedDict, total=False):
    """Зріз аналізу, з якого компоновщик бере зони та лінії."""

    zones: list[ChartZone]
    lines: list[ChartLine]


# ── Маркери / угоди ──────────────────────────────────────────────────────


class ChartMarker(TypedDict, total=False):
    """Дискретна анотована точка на серії."""

    time: int
    position: str
    shape: str
    color: str
    text: str
    title: str


class ActiveTrade(TypedDict, total=False):
    """Відкрита угода, для якої малюємо ENTRY/SL/TP price-lines."""

    id: str
    type: Literal["LONG", "SHORT"]
    entryPrice: float
    sl: float
    tp: float


class PriceLineSpec(TypedDict):
    """Опис горизонтальної price-line для Coordinate Provider."""

    price: float
    color: str
    title: str
    line_style: Literal["solid", "dashed"]


# ── Вихідні payload ──────────────────────────────────────────────────────


class TooltipPayload(TypedDict):
    """Невеликий payload підказки під курсором."""

    x: float
    y: float
    primary_label: str
    secondary_label: str


__all__ = (
    "CandlePoint",
    "ValuePoint",
    "SeriesPoint",
    "SeriesType",
    "SessionBandPoint",
    "ViewportRange",
    "ChartZone",
    "ChartLine",
    "ScanResult",
    "ChartMarker",
    "ActiveTrade",
    "PriceLineSpec",
    "TooltipPayload",
)
