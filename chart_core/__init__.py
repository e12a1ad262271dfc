"""Рушій синхронізації графіка та оверлеїв.

Публічні точки входу:
- `ChartController` — один екземпляр графіка поверх Coordinate Provider;
- `SeriesReconciler` / `normalize_series` / `classify_update` — звірка серій;
- `compute_session_band` — гістограма killzone-сесій;
- `OverlayCompositor` — зони/лінії scan-результату поверх графіка.
"""

from .chart_types import (
    CrosshairEvent,
    OverlayFrameStats,
    ReconcileResult,
    ReconciliationState,
    UpdateKind,
)
from .config import CHART_ENGINE_CONFIG, ChartEngineConfig, default_session_windows
from .controller import ChartController
from .frame_scheduler import FrameScheduler
from .history import Debouncer, LazyHistoryTrigger, should_request_history
from .overlay import OverlayCompositor, VisibleTimeBounds
from .price_lines import TradeLinesCache, build_trade_line_specs
from .provider import CoordinateProvider, ProviderCapabilities
from .reconciler import SeriesReconciler, classify_update, normalize_series, shift_range
from .session_bands import compute_session_band, session_legend

__all__ = (
    "CHART_ENGINE_CONFIG",
    "ChartController",
    "ChartEngineConfig",
    "CoordinateProvider",
    "CrosshairEvent",
    "Debouncer",
    "FrameScheduler",
    "LazyHistoryTrigger",
    "OverlayCompositor",
    "OverlayFrameStats",
    "ProviderCapabilities",
    "ReconcileResult",
    "ReconciliationState",
    "SeriesReconciler",
    "TradeLinesCache",
    "UpdateKind",
    "VisibleTimeBounds",
    "build_trade_line_specs",
    "classify_update",
    "compute_session_band",
    "default_session_windows",
    "normalize_series",
    "session_legend",
    "shift_range",
    "should_request_history",
)
