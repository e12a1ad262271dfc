"""Базові типи та перерахування для chart-core."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from core.contracts import SeriesPoint, ViewportRange


class UpdateKind(Enum):
    """Форма оновлення серії відносно попереднього стану."""

    EMPTY = "empty"
    FRESH = "fresh"
    PREPEND = "prepend"
    TIME_JUMP = "time_jump"
    INCREMENTAL = "incremental"


@dataclass(frozen=True, slots=True)
class ReconciliationState:
    """Стан звірки серії на один екземпляр графіка.

    Значення immutable: reconciler повертає новий стан, викликач зберігає його
    у себе і передає наступного разу явно.
    """

    previous_count: int = 0
    first_time: int | None = None
    last_time: int | None = None
    symbol_key: str | None = None
    fetch_in_flight: bool = False

    def reset_for(self, symbol_key: str | None) -> ReconciliationState:
        """Нульовий стан для нового інструмента/сесії."""

        return ReconciliationState(symbol_key=symbol_key)

    def with_fetch_in_flight(self, value: bool) -> ReconciliationState:
        return replace(self, fetch_in_flight=value)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Результат одного проходу звірки серії."""

    kind: UpdateKind
    points: list[SeriesPoint]
    state: ReconciliationState
    previous_state: ReconciliationState
    symbol_changed: bool = False
    inserted_count: int = 0
    dropped_count: int = 0
    viewport_before: ViewportRange | None = None
    viewport_after: ViewportRange | None = None


@dataclass(frozen=True, slots=True)
class CrosshairEvent:
    """Подія руху курсору/кліку від Coordinate Provider.

    `time is None` або `point is None` означає, що курсор поза plot-областю.
    """

    time: int | None = None
    point: tuple[float, float] | None = None
    series_data: dict[str, Any] | None = None


@dataclass(slots=True)
class OverlayFrameStats:
    """Статистика одного кадру оверлею (для тестів/діагностики)."""

    zones_drawn: int = 0
    lines_drawn: int = 0
    labels_drawn: int = 0
    skipped: int = 0
    errors: int = 0
    skipped_ids: list[str] = field(default_factory=list)


__all__ = (
    "UpdateKind",
    "ReconciliationState",
    "ReconcileResult",
    "CrosshairEvent",
    "OverlayFrameStats",
)
