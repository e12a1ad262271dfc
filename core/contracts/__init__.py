"""Контракти (schemas) між шарами chart-engine.

Тут зберігаються TypedDict/dataclass-описання payload, які приходять від
зовнішніх колабораторів (data source, scan producer, marker producer) або
віддаються назовні (tooltip, band-серія).

Принцип: contract-first — спочатку описуємо payload, потім імплементуємо.
"""

from __future__ import annotations

from .chart_series import (  # noqa: F401
    ActiveTrade,
    CandlePoint,
    ChartLine,
    ChartMarker,
    ChartZone,
    PriceLineSpec,
    ScanResult,
    SeriesPoint,
    SeriesType,
    SessionBandPoint,
    TooltipPayload,
    ValuePoint,
    ViewportRange,
)
from .session_time import (  # noqa: F401
    SessionWindow,
    find_session_window,
    find_session_window_for_hour,
    hour_in_window,
    local_hour,
)

__all__ = [
    # Серії
    "CandlePoint",
    "ValuePoint",
    "SeriesPoint",
    "SeriesType",
    "SessionBandPoint",
    "ViewportRange",
    # Оверлеї
    "ChartZone",
    "ChartLine",
    "ScanResult",
    "ChartMarker",
    "ActiveTrade",
    "PriceLineSpec",
    "TooltipPayload",
    # Сесійний час
    "SessionWindow",
    "hour_in_window",
    "local_hour",
    "find_session_window_for_hour",
    "find_session_window",
]
