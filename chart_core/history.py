"""Ліниве довантаження старішої історії (lazy history) та debounce-таймери.

Правила:
- запит іде, коли нижня межа видимого logical range ближче ніж
  `prepend_margin_bars` до початку завантажених даних і fetch ще не в польоті;
- у data source передається найстаріший відомий timestamp;
- прапор in-flight знімає або наступний prepend (reconciler), або сигнал
  «history load finished» з debounce, щоб поглинути back-to-back завершення;
- завершення запиту, після якого вже стартував новіший, не знімає прапор;
- явного токена скасування немає: сторінка для старого символу, що прийшла
  після swap, відкидається структурно (за ключем серії).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from prometheus_client import Counter

from core.contracts import ViewportRange

from .chart_types import ReconciliationState
from .config import ChartEngineConfig

logger = logging.getLogger("chart_core.history")

CHART_HISTORY_REQUESTS_TOTAL = Counter(
    "chart_engine_history_requests_total",
    "Total number of lazy history requests sent to the data source.",
)
CHART_HISTORY_FAILURES_TOTAL = Counter(
    "chart_engine_history_failures_total",
    "Total number of lazy history requests that raised.",
)

LoadMoreCallback = Callable[[int], Awaitable[None]]
FinishedCallback = Callable[[str | None], None]


def should_request_history(
    state: ReconciliationState,
    visible_range: ViewportRange | None,
    *,
    margin_bars: int,
) -> bool:
    """Чи треба просити старішу історію для поточного стану/range."""

    if visible_range is None or state.fetch_in_flight:
        return False
    if state.previous_count <= 0 or state.first_time is None:
        return False
    return visible_range["from"] < margin_bars


class Debouncer:
    """Відкладений виклик з перезапуском таймера на кожен новий виклик."""

    def __init__(self, delay_sec: float) -> None:
        self.delay_sec = max(0.0, float(delay_sec))
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def call(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Планує `fn(*args)` через delay. Без event loop — виконує одразу.

        Повертає True, якщо виклик відкладено.
        """

        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            fn(*args)
            return False
        self._handle = loop.call_later(self.delay_sec, self._fire, fn, args)
        return True

    def _fire(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._handle = None
        fn(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class LazyHistoryTrigger:
    """Запускає fire-and-forget `load_more(oldest)` і повідомляє про завершення."""

    def __init__(
        self,
        load_more: LoadMoreCallback | None,
        *,
        on_finished: FinishedCallback,
        config: ChartEngineConfig | None = None,
    ) -> None:
        self.config = config or ChartEngineConfig()
        self._load_more = load_more
        self._on_finished = on_finished
        self._tasks: set[asyncio.Task[None]] = set()
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self._load_more is not None

    @property
    def in_flight_tasks(self) -> int:
        return len(self._tasks)

    def maybe_request(
        self, state: ReconciliationState, visible_range: ViewportRange | None
    ) -> ReconciliationState:
        """Повертає стан з `fetch_in_flight=True`, якщо запит відправлено."""

        if self._load_more is None:
            return state
        if not should_request_history(
            state, visible_range, margin_bars=self.config.prepend_margin_bars
        ):
            return state
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("[ChartHistory] Немає event loop — запит історії пропущено")
            return state

        oldest = int(state.first_time)  # type: ignore[arg-type]
        CHART_HISTORY_REQUESTS_TOTAL.inc()
        logger.debug(
            "[ChartHistory] %s: запит історії до %d (range.from=%s)",
            state.symbol_key,
            oldest,
            visible_range["from"] if visible_range else None,
        )
        self._generation += 1
        task = loop.create_task(
            self._fetch(state.symbol_key, oldest, self._generation),
            name=f"history:{state.symbol_key}:{self._generation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return state.with_fetch_in_flight(True)

    async def _fetch(self, symbol_key: str | None, oldest: int, generation: int) -> None:
        load_more = self._load_more
        if load_more is None:
            return
        try:
            await load_more(oldest)
        except Exception:
            CHART_HISTORY_FAILURES_TOTAL.inc()
            logger.warning(
                "[ChartHistory] %s: load_more(%d) завершився помилкою",
                symbol_key,
                oldest,
                exc_info=True,
            )
        finally:
            if generation == self._generation:
                self._on_finished(symbol_key)
            else:
                # поки цей запит летів, стартував новіший; прапор належить йому
                logger.debug(
                    "[ChartHistory] %s: завершення запиту #%d пропущено (поточний #%d)",
                    symbol_key,
                    generation,
                    self._generation,
                )

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


__all__ = (
    "LoadMoreCallback",
    "should_request_history",
    "Debouncer",
    "LazyHistoryTrigger",
)
