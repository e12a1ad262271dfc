"""Звірка (reconcile) серії графіка з попереднім станом.

Призначення:
- нормалізувати snapshot: відкинути точки без `time`, дедуплікувати за `time`
  (виграє останнє входження), відсортувати за зростанням;
- класифікувати оновлення: fresh / prepend / time-jump / incremental;
- записати дані у Coordinate Provider і, якщо треба, скоригувати viewport.

Порядок у `SeriesReconciler.apply` фіксований:
dedup → sort → classify → (capture range) → write → viewport-correct.
Тому кадр оверлею після `apply` завжди бачить консистентну трансформацію.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from prometheus_client import Counter

from core.contracts import SeriesPoint, SeriesType, ViewportRange
from core.serialization import safe_int

from .chart_types import ReconciliationState, ReconcileResult, UpdateKind
from .config import ChartEngineConfig
from .provider import CoordinateProvider, ProviderCapabilities

logger = logging.getLogger("chart_core.reconciler")

CHART_RECONCILE_TOTAL = Counter(
    "chart_engine_reconcile_total",
    "Total number of series reconciliations by update kind.",
    ["kind"],
)
CHART_DROPPED_POINTS_TOTAL = Counter(
    "chart_engine_dropped_points_total",
    "Total number of malformed series points dropped during normalization.",
)


# -- Pure-функції -------------------------------------------------------------


def normalize_series(
    snapshot: Iterable[Mapping[str, Any]] | None,
) -> tuple[list[SeriesPoint], int]:
    """Дедуплікує та сортує snapshot, не чіпаючи вхідні dict-и.

    Повертає (points, dropped_count). Точки без валідного `time` відкидаються
    мовчки (лише лічильник), це не помилка для викликача.
    """

    by_time: dict[int, dict[str, Any]] = {}
    dropped = 0
    for raw in snapshot or ():
        if not isinstance(raw, Mapping):
            dropped += 1
            continue
        ts = safe_int(raw.get("time"))
        if ts is None:
            dropped += 1
            continue
        point = dict(raw)
        point["time"] = ts
        by_time[ts] = point

    points = [by_time[ts] for ts in sorted(by_time)]
    return points, dropped  # type: ignore[return-value]


def classify_update(
    state: ReconciliationState,
    points: list[SeriesPoint],
    *,
    time_jump_threshold_sec: int,
) -> UpdateKind:
    """Класифікує нормалізовану серію відносно `state` (порядок = пріоритет)."""

    if not points:
        return UpdateKind.EMPTY
    if state.previous_count == 0:
        return UpdateKind.FRESH

    first_time = points[0]["time"]
    last_time = points[-1]["time"]
    if (
        len(points) > state.previous_count
        and state.first_time is not None
        and first_time < state.first_time
    ):
        return UpdateKind.PREPEND
    if (
        state.last_time is not None
        and abs(last_time - state.last_time) > time_jump_threshold_sec
    ):
        return UpdateKind.TIME_JUMP
    return UpdateKind.INCREMENTAL


def shift_range(value: ViewportRange, delta: float) -> ViewportRange:
    """Зсуває обидва кінці logical range на `delta` барів."""

    return {"from": value["from"] + delta, "to": value["to"] + delta}


# -- Reconciler ---------------------------------------------------------------


@dataclass(slots=True)
class SeriesReconciler:
    """Звіряє snapshot-и з явним `ReconciliationState` та пише їх у провайдер."""

    config: ChartEngineConfig = field(default_factory=ChartEngineConfig)

    def reconcile(
        self,
        state: ReconciliationState,
        symbol_key: str | None,
        snapshot: Iterable[Mapping[str, Any]] | None,
    ) -> ReconcileResult:
        """Pure-частина: нормалізація, класифікація, новий стан (без провайдера)."""

        symbol_changed = symbol_key != state.symbol_key
        base = state.reset_for(symbol_key) if symbol_changed else state
        if symbol_changed and state.symbol_key is not None:
            logger.info(
                "[ChartReconciler] Swap %s -> %s: стан звірки скинуто",
                state.symbol_key,
                symbol_key,
            )

        points, dropped = normalize_series(snapshot)
        if dropped:
            CHART_DROPPED_POINTS_TOTAL.inc(dropped)
            logger.debug(
                "[ChartReconciler] %s: відкинуто %d точок без time", symbol_key, dropped
            )

        kind = classify_update(
            base, points, time_jump_threshold_sec=self.config.time_jump_threshold_sec
        )

        if points:
            new_state = replace(
                base,
                previous_count=len(points),
                first_time=points[0]["time"],
                last_time=points[-1]["time"],
            )
        else:
            new_state = replace(base, previous_count=0, first_time=None, last_time=None)

        inserted = 0
        if kind is UpdateKind.PREPEND:
            inserted = len(points) - base.previous_count
            new_state = new_state.with_fetch_in_flight(False)

        return ReconcileResult(
            kind=kind,
            points=points,
            state=new_state,
            previous_state=base,
            symbol_changed=symbol_changed,
            inserted_count=inserted,
            dropped_count=dropped,
        )

    def apply(
        self,
        provider: CoordinateProvider,
        state: ReconciliationState,
        symbol_key: str | None,
        snapshot: Iterable[Mapping[str, Any]] | None,
        *,
        series_type: SeriesType = "CANDLE",
        capabilities: ProviderCapabilities | None = None,
    ) -> ReconcileResult:
        """Повний цикл звірки з записом у провайдер та корекцією viewport."""

        result = self.reconcile(state, symbol_key, snapshot)
        kind = result.kind

        viewport_before: ViewportRange | None = None
        if kind is UpdateKind.PREPEND:
            # Range треба зняти ДО setData: після запису провайдер уже «стрибнув».
            viewport_before = provider.get_visible_logical_range()

        provider.set_data(result.points)

        viewport_after: ViewportRange | None = None
        if kind is UpdateKind.PREPEND:
            if viewport_before is not None:
                viewport_after = shift_range(viewport_before, result.inserted_count)
                provider.set_visible_logical_range(viewport_after)
            logger.debug(
                "[ChartReconciler] %s: prepend +%d барів, range %s -> %s",
                symbol_key,
                result.inserted_count,
                viewport_before,
                viewport_after,
            )
        elif kind in (UpdateKind.FRESH, UpdateKind.TIME_JUMP):
            if series_type == "CANDLE":
                if capabilities is not None and capabilities.auto_scale:
                    provider.enable_auto_scale()  # type: ignore[attr-defined]
                provider.scroll_to_live()
            else:
                # Equity-криву дивимось цілком, а не «з живого краю».
                provider.fit_content()
            logger.debug(
                "[ChartReconciler] %s: %s, %d точок",
                symbol_key,
                kind.value,
                len(result.points),
            )

        CHART_RECONCILE_TOTAL.labels(kind=kind.value).inc()
        return replace(
            result, viewport_before=viewport_before, viewport_after=viewport_after
        )


__all__ = (
    "normalize_series",
    "classify_update",
    "shift_range",
    "SeriesReconciler",
    "CHART_RECONCILE_TOTAL",
)
