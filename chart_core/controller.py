"""Контролер одного екземпляра графіка: viewport та життєвий цикл.

Призначення:
- володіти явним `ReconciliationState` і проганяти через reconciler кожен
  snapshot (і сторінки історії) з відкиданням застарілих після swap символу;
- перераховувати band killzone-сесій та штовхати його у провайдер;
- dormancy-гейт: видимість контейнера × явний прапор `dormant` керують
  frame-loop-ом, crosshair-обробкою та перемальовкою оверлею;
- resize (коалесований до наступного кадру), hover/tooltip/легенда,
  маркери, price-lines угод, lazy-history, знімок (base + overlay).

Конкурентна модель: один потік, кооперативно. Звірка виконується синхронно
всередині `update_series`, а оверлей читає трансформацію лише на кадрі —
тому кадр ніколи не бачить напівзаписаний стан.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from bisect import bisect_left
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from prometheus_client import Counter

from core.contracts import (
    ActiveTrade,
    ChartMarker,
    ScanResult,
    SeriesPoint,
    SeriesType,
    SessionBandPoint,
    TooltipPayload,
    ViewportRange,
    find_session_window,
)
from core.formatters import fmt_point_summary, price_format_for_symbol
from core.serialization import safe_int, utc_seconds_to_local_human
from utils.rich_console import attach_rich_handler

from .chart_types import (
    CrosshairEvent,
    OverlayFrameStats,
    ReconciliationState,
    ReconcileResult,
)
from .config import ChartEngineConfig
from .frame_scheduler import FrameScheduler
from .history import Debouncer, LazyHistoryTrigger, LoadMoreCallback
from .overlay import OverlayCompositor, VisibleTimeBounds
from .price_lines import TradeLinesCache
from .provider import CoordinateProvider, ProviderCapabilities
from .reconciler import SeriesReconciler, normalize_series
from .session_bands import compute_session_band, session_legend

# ───────────────────────────── Логування ─────────────────────────────
logger = logging.getLogger("chart_core.controller")
attach_rich_handler(logging.getLogger("chart_core"))

CHART_SNAPSHOT_FAILURES_TOTAL = Counter(
    "chart_engine_snapshot_failures_total",
    "Total number of chart snapshot exports that failed to composite or encode.",
)
CHART_STALE_HISTORY_PAGES_TOTAL = Counter(
    "chart_engine_stale_history_pages_total",
    "Total number of history pages discarded because the series key changed.",
)

SnapshotSink = Callable[[str, bool], Any]
TooltipCallback = Callable[[TooltipPayload | None], None]
MarkerClickCallback = Callable[[ChartMarker], None]


class ChartController:
    """Рушій синхронізації одного графіка поверх Coordinate Provider."""

    def __init__(
        self,
        provider: CoordinateProvider,
        *,
        series_type: SeriesType = "CANDLE",
        symbol_key: str | None = None,
        width: int = 800,
        height: int = 600,
        config: ChartEngineConfig | None = None,
        scheduler: FrameScheduler | None = None,
        load_more: LoadMoreCallback | None = None,
        snapshot_sink: SnapshotSink | None = None,
        on_tooltip: TooltipCallback | None = None,
        on_marker_click: MarkerClickCallback | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or ChartEngineConfig()
        self.series_type: SeriesType = series_type
        self.capabilities = ProviderCapabilities.detect(provider)
        self.scheduler = scheduler or FrameScheduler(
            interval_sec=self.config.frame_interval_sec, name=str(symbol_key or "chart")
        )
        self.reconciler = SeriesReconciler(self.config)
        self.compositor = OverlayCompositor(width, height, config=self.config)
        self.size: tuple[int, int] = (self.compositor.width, self.compositor.height)

        self.state = ReconciliationState(symbol_key=symbol_key)
        self.points: list[SeriesPoint] = []
        self.band: list[SessionBandPoint] = []
        self.scan_result: ScanResult | None = None
        self.markers: list[ChartMarker] = []
        self.trade_lines = TradeLinesCache()
        self.tooltip: TooltipPayload | None = None
        self.legend: SeriesPoint | None = None
        self.is_flashing = False
        self.last_frame_stats: OverlayFrameStats | None = None
        self.precision, self.min_move = price_format_for_symbol(symbol_key or "")

        self.snapshot_sink = snapshot_sink
        self.on_tooltip = on_tooltip
        self.on_marker_click = on_marker_click

        self._times: list[int] = []
        self._markers_by_time: dict[int, ChartMarker] = {}
        self._last_hover_time: int | None = None
        self._visible = True
        self._dormant = False
        self._reconciling = False
        self._sink_tasks: set[asyncio.Future[Any]] = set()

        self._history = LazyHistoryTrigger(
            load_more, on_finished=self.history_load_finished, config=self.config
        )
        self._history_debounce = Debouncer(self.config.history_debounce_sec)
        self._flash_timer = Debouncer(self.config.capture_flash_sec)
        self._auto_snapshot_timer = Debouncer(self.config.auto_snapshot_delay_sec)

        missing = self.capabilities.missing()
        if missing:
            logger.debug(
                "[ChartController] %s: провайдер без можливостей %s — no-op",
                symbol_key,
                ", ".join(missing),
            )

        provider.subscribe_crosshair_move(self.on_crosshair_move)
        provider.subscribe_click(self.on_click)
        if self.capabilities.range_subscription:
            provider.subscribe_visible_range_change(  # type: ignore[attr-defined]
                self.on_visible_range_change
            )

        self.scheduler.add_loop_callback("overlay", self.render_frame)
        self._apply_render_gate()

    # ── Властивості ─────────────────────────────────────────────────────

    @property
    def symbol_key(self) -> str | None:
        return self.state.symbol_key

    @property
    def is_price_series(self) -> bool:
        return self.series_type == "CANDLE"

    @property
    def should_render(self) -> bool:
        return self._visible and not self._dormant

    # ── Dormancy-гейт ───────────────────────────────────────────────────

    def on_visibility_change(self, is_visible: bool) -> None:
        """Сигнал видимості контейнера (intersection observer)."""

        self._visible = bool(is_visible)
        self._apply_render_gate()

    def on_intersection(self, ratio: float) -> None:
        """Частка видимої площі контейнера; поріг — `visibility_threshold`."""

        self.on_visibility_change(float(ratio) >= self.config.visibility_threshold)

    def set_dormant(self, dormant: bool) -> None:
        self._dormant = bool(dormant)
        self._apply_render_gate()

    def _apply_render_gate(self) -> None:
        if self.should_render:
            if not self.scheduler.is_active:
                self.scheduler.start()
                logger.debug("[ChartController] %s: render-loop увімкнено", self.symbol_key)
            return
        if self.scheduler.is_active:
            self.scheduler.stop()
            logger.debug("[ChartController] %s: dormant, render-loop зупинено", self.symbol_key)
        if self.tooltip is not None:
            self._publish_tooltip(None)
        self._last_hover_time = None

    # ── Дані ────────────────────────────────────────────────────────────

    def update_series(
        self,
        symbol_key: str | None,
        snapshot: Iterable[Mapping[str, Any]] | None,
    ) -> ReconcileResult:
        """Звіряє новий snapshot серії і пише його у провайдер."""

        if symbol_key != self.state.symbol_key:
            self._on_symbol_swap(symbol_key)

        # set_visible_logical_range провайдера може синхронно смикнути range-колбек;
        # поки стан не зафіксовано, перевірку історії не робимо.
        self._reconciling = True
        try:
            result = self.reconciler.apply(
                self.provider,
                self.state,
                symbol_key,
                snapshot,
                series_type=self.series_type,
                capabilities=self.capabilities,
            )
        finally:
            self._reconciling = False
        self.state = result.state
        self.points = result.points
        self._times = [int(p["time"]) for p in result.points]
        self._refresh_band()
        if self._last_hover_time is None:
            self.legend = self.points[-1] if self.points else None
        # range-колбеки під час звірки проігноровано; перевіряємо межу вже на новому стані
        self.on_visible_range_change()
        return result

    def receive_history_page(
        self,
        symbol_key: str | None,
        snapshot: Iterable[Mapping[str, Any]] | None,
    ) -> ReconcileResult | None:
        """Сторінка історії від data source; застаріла (інший ключ) — відкидається."""

        if symbol_key != self.state.symbol_key:
            CHART_STALE_HISTORY_PAGES_TOTAL.inc()
            logger.info(
                "[ChartController] Відкинуто сторінку історії %s (поточний %s)",
                symbol_key,
                self.state.symbol_key,
            )
            return None
        return self.update_series(symbol_key, snapshot)

    def set_comparison_series(
        self, snapshot: Iterable[Mapping[str, Any]] | None
    ) -> list[SeriesPoint]:
        """Друга (порівняльна) скалярна серія з тією ж нормалізацією."""

        points, _ = normalize_series(snapshot)
        if self.capabilities.comparison:
            self.provider.set_comparison_data(points)  # type: ignore[attr-defined]
        return points

    def _refresh_band(self) -> None:
        if not self.is_price_series:
            return
        if self.points:
            self.band = compute_session_band(
                self.points,
                windows=self.config.session_windows,
                tz_name=self.config.session_timezone,
            )
        else:
            self.band = []
        self.provider.set_band_data(self.band)

    def _on_symbol_swap(self, symbol_key: str | None) -> None:
        if self.capabilities.price_lines:
            self.trade_lines.remove_all(self.provider)
        self._history_debounce.cancel()
        if self.tooltip is not None:
            self._publish_tooltip(None)
        self._last_hover_time = None
        self.precision, self.min_move = price_format_for_symbol(symbol_key or "")
        if self.capabilities.price_format:
            self.provider.apply_price_format(  # type: ignore[attr-defined]
                self.precision, self.min_move
            )

    # ── Scan / маркери / угоди ──────────────────────────────────────────

    def set_scan_result(self, scan_result: ScanResult | None) -> None:
        """Атомарна заміна посилання; оверлей прочитає його на наступному кадрі."""

        self.scan_result = scan_result

    def set_markers(self, markers: Sequence[ChartMarker] | None) -> None:
        self.markers = list(markers or [])
        self._markers_by_time = {}
        for marker in self.markers:
            ts = safe_int(marker.get("time"))
            if ts is not None:
                self._markers_by_time[ts] = marker
        if not self.capabilities.markers:
            return
        try:
            self.provider.set_markers(self.markers)  # type: ignore[attr-defined]
        except Exception:
            logger.warning(
                "[ChartController] %s: не вдалося оновити маркери",
                self.symbol_key,
                exc_info=True,
            )

    def set_active_trades(self, trades: Sequence[ActiveTrade] | None) -> None:
        if not self.capabilities.price_lines:
            return
        self.trade_lines.replace_all(self.provider, trades or [])

    # ── Viewport ────────────────────────────────────────────────────────

    def scroll_to_live(self) -> None:
        self.provider.scroll_to_live()

    def fit_content(self) -> None:
        self.provider.fit_content()

    def session_legend(self) -> list[dict[str, str]]:
        if not self.is_price_series:
            return []
        return session_legend(self.config.session_windows)

    def on_resize(self, width: int, height: int) -> None:
        """Запит resize; застосовується на наступному кадрі (burst коалесується)."""

        w = max(1, int(width))
        h = max(1, int(height))
        self.scheduler.request_frame("resize", lambda: self._apply_resize(w, h))

    def _apply_resize(self, width: int, height: int) -> None:
        if (width, height) == self.size:
            return
        self.size = (width, height)
        if self.capabilities.resize:
            self.provider.resize(width, height)  # type: ignore[attr-defined]
        self.compositor.resize(width, height)
        logger.debug("[ChartController] %s: resize %dx%d", self.symbol_key, width, height)

    # ── Lazy history ────────────────────────────────────────────────────

    def on_visible_range_change(self, value: ViewportRange | None = None) -> None:
        if self._reconciling or not self._history.enabled:
            return
        visible = value if value is not None else self.provider.get_visible_logical_range()
        was_in_flight = self.state.fetch_in_flight
        self.state = self._history.maybe_request(self.state, visible)
        if self.state.fetch_in_flight and not was_in_flight:
            # відкладене зняття прапора належало попередньому запиту
            self._history_debounce.cancel()

    def history_load_finished(self, symbol_key: str | None) -> None:
        """Сигнал «історію довантажено»; знімає in-flight з debounce."""

        if symbol_key != self.state.symbol_key:
            logger.debug(
                "[ChartController] Ігноруємо завершення історії для %s", symbol_key
            )
            return
        self._history_debounce.call(self._clear_fetch_flag, symbol_key)

    def _clear_fetch_flag(self, symbol_key: str | None) -> None:
        if symbol_key == self.state.symbol_key and self.state.fetch_in_flight:
            self.state = self.state.with_fetch_in_flight(False)

    # ── Crosshair / hover ───────────────────────────────────────────────

    def on_crosshair_move(self, event: CrosshairEvent) -> None:
        if not self.should_render:
            return
        if event.time is None or event.point is None:
            self._on_pointer_leave()
            return
        if event.time == self._last_hover_time:
            return
        self._last_hover_time = event.time

        point = self.point_at(event.time) or event.series_data
        if point:
            self.legend = point  # type: ignore[assignment]
        self._publish_tooltip(self._build_tooltip(event.time, event.point, point))

    def on_click(self, event: CrosshairEvent) -> None:
        if self.on_marker_click is None or event.time is None:
            return
        marker = self._markers_by_time.get(event.time)
        if marker is not None:
            self.on_marker_click(marker)

    def point_at(self, ts: int) -> SeriesPoint | None:
        idx = bisect_left(self._times, ts)
        if idx < len(self._times) and self._times[idx] == ts:
            return self.points[idx]
        return None

    def _on_pointer_leave(self) -> None:
        if self._last_hover_time is None and self.tooltip is None:
            return
        self._last_hover_time = None
        self.legend = self.points[-1] if self.points else None
        self._publish_tooltip(None)

    def _build_tooltip(
        self,
        ts: int,
        position: tuple[float, float],
        point: Mapping[str, Any] | None,
    ) -> TooltipPayload:
        marker = self._markers_by_time.get(ts)
        time_label = utc_seconds_to_local_human(ts, tz_name=self.config.session_timezone)
        if marker is not None:
            primary = str(marker.get("text") or "")
            secondary = str(marker.get("title") or time_label)
        else:
            primary = fmt_point_summary(point, digits=self.precision) if point else time_label
            secondary = time_label
            if self.is_price_series:
                window = find_session_window(
                    ts,
                    windows=self.config.session_windows,
                    tz_name=self.config.session_timezone,
                )
                if window is not None:
                    secondary = f"{window.name} · {time_label}"
        return {
            "x": float(position[0]),
            "y": float(position[1]),
            "primary_label": primary,
            "secondary_label": secondary,
        }

    def _publish_tooltip(self, payload: TooltipPayload | None) -> None:
        self.tooltip = payload
        if self.on_tooltip is None:
            return
        try:
            self.on_tooltip(payload)
        except Exception:
            logger.warning("[ChartController] on_tooltip впав", exc_info=True)

    # ── Оверлей ─────────────────────────────────────────────────────────

    def render_frame(self) -> OverlayFrameStats | None:
        """Loop-колбек кадру: перемальовує оверлей за поточною трансформацією."""

        if not self.should_render or not self.is_price_series:
            return None
        try:
            stats = self.compositor.render(
                self.provider, self.scan_result, time_bounds=self._visible_time_bounds()
            )
        except Exception:
            logger.warning(
                "[ChartController] %s: кадр оверлею пропущено",
                self.symbol_key,
                exc_info=True,
            )
            return None
        self.last_frame_stats = stats
        return stats

    def _visible_time_bounds(self) -> VisibleTimeBounds | None:
        if not self.points:
            return None
        visible = self.provider.get_visible_logical_range()
        if visible is None:
            return None
        last_idx = len(self.points) - 1
        lo = min(max(math.ceil(visible["from"]), 0), last_idx)
        hi = min(max(math.floor(visible["to"]), lo), last_idx)
        return VisibleTimeBounds(
            first=int(self.points[lo]["time"]), last=int(self.points[hi]["time"])
        )

    # ── Знімок ──────────────────────────────────────────────────────────

    def take_snapshot(self, *, is_automatic: bool = False) -> bool:
        """Планує знімок на наступний кадр. False — немає sink/можливості."""

        if self.snapshot_sink is None or not self.capabilities.screenshot:
            logger.debug("[ChartController] %s: знімок недоступний", self.symbol_key)
            return False
        if not is_automatic:
            self.is_flashing = True
            self._flash_timer.call(self._end_flash)
        key = "snapshot:auto" if is_automatic else "snapshot:manual"
        self.scheduler.request_frame(key, lambda: self._capture(is_automatic))
        return True

    def request_auto_snapshot(self) -> None:
        """Автоматичний знімок після короткої затримки (дає графіку домалюватись)."""

        self._auto_snapshot_timer.call(lambda: self.take_snapshot(is_automatic=True))

    def _end_flash(self) -> None:
        self.is_flashing = False

    def _capture(self, is_automatic: bool) -> None:
        # Імпорт тут: модуль Pillow-композиції потрібен лише для знімків.
        from .snapshot import composite_layers, encode_png_data_url

        try:
            base = self.provider.take_screenshot()  # type: ignore[attr-defined]
            if base is None or not base.width or not base.height:
                logger.debug("[ChartController] %s: порожній знімок", self.symbol_key)
                return
            data_url = encode_png_data_url(
                composite_layers(base, self.compositor.surface)
            )
        except Exception:
            CHART_SNAPSHOT_FAILURES_TOTAL.inc()
            logger.warning(
                "[ChartController] %s: не вдалося скомпонувати знімок",
                self.symbol_key,
                exc_info=True,
            )
            return
        self._deliver_snapshot(data_url, is_automatic)

    def _deliver_snapshot(self, data_url: str, is_automatic: bool) -> None:
        sink = self.snapshot_sink
        if sink is None:
            logger.debug("[ChartController] %s: sink знято до кадру знімка", self.symbol_key)
            return
        try:
            result = sink(data_url, is_automatic)
        except Exception:
            logger.warning("[ChartController] snapshot sink впав", exc_info=True)
            return
        if not inspect.isawaitable(result):
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[ChartController] Async snapshot sink без event loop")
            close = getattr(result, "close", None)
            if callable(close):
                close()
            return
        task = asyncio.ensure_future(result)
        self._sink_tasks.add(task)
        task.add_done_callback(self._on_sink_done)

    def _on_sink_done(self, task: asyncio.Future[Any]) -> None:
        self._sink_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("[ChartController] snapshot sink завершився помилкою: %s", exc)

    # ── Завершення ──────────────────────────────────────────────────────

    async def aclose(self) -> None:
        self._history_debounce.cancel()
        self._flash_timer.cancel()
        self._auto_snapshot_timer.cancel()
        self.scheduler.remove_loop_callback("overlay")
        await self.scheduler.aclose()
        await self._history.aclose()
        for task in list(self._sink_tasks):
            task.cancel()


__all__ = ("ChartController", "SnapshotSink", "TooltipCallback", "MarkerClickCallback")
