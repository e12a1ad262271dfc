"""Тести ChartController: життєвий цикл, hover, resize, історія, знімки.

Гейт:
- dormant/невидимий графік не крутить frame-loop і не реагує на crosshair;
- burst resize застосовується один раз на наступному кадрі;
- повторний hover по тому самому часу не публікує підказку вдруге;
- сторінка історії для старого символу після swap відкидається;
- знімок = база провайдера + оверлей; збій експорту не викликає sink.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from conftest import CapableFakeProvider, FakeCoordinateProvider, make_candles, make_values

from chart_core import ChartController, ChartEngineConfig, UpdateKind
from chart_core.snapshot import decode_png_data_url
from UI_v2.headless_provider import HeadlessChartProvider

T0 = int(datetime(2025, 1, 6, 19, tzinfo=ZoneInfo("America/New_York")).timestamp())

_ZONE = {
    "id": "z1",
    "type": "demand",
    "priceStart": 30,
    "priceEnd": 60,
    "timeStart": T0,
    "timeEnd": T0 + 300,
}


def _controller(provider: FakeCoordinateProvider, **kwargs) -> ChartController:  # type: ignore[no-untyped-def]
    kwargs.setdefault("width", 200)
    kwargs.setdefault("height", 100)
    return ChartController(provider, **kwargs)


# ── Дані / band ─────────────────────────────────────────────────────────


def test_candle_update_writes_session_band(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)

    result = controller.update_series("EURUSD", make_candles(T0, 10))

    assert result.kind is UpdateKind.FRESH
    assert fake_provider.band is not None
    assert len(fake_provider.band) == 10
    assert all(b["value"] == 1 for b in fake_provider.band)
    assert controller.legend == result.points[-1]


def test_empty_update_clears_band(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)
    controller.update_series("EURUSD", make_candles(T0, 10))

    result = controller.update_series("EURUSD", [])

    assert result.kind is UpdateKind.EMPTY
    assert fake_provider.band == []
    assert controller.legend is None


def test_area_series_never_computes_band(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider, series_type="AREA")

    controller.update_series("equity", make_values(T0, 10))

    assert fake_provider.band is None
    assert "fit_content" in fake_provider.call_names()
    assert controller.session_legend() == []
    assert controller.render_frame() is None


def test_comparison_series_is_normalized(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)

    points = controller.set_comparison_series(
        [{"time": 2, "value": 1.0}, {"time": 1, "value": 0.5}, {"time": 2, "value": 1.5}]
    )

    assert [p["time"] for p in points] == [1, 2]
    assert capable_provider.comparison == points
    assert points[1]["value"] == 1.5


def test_session_legend_for_price_series(fake_provider: FakeCoordinateProvider) -> None:
    legend = _controller(fake_provider).session_legend()

    assert [item["label"] for item in legend] == [
        "18:00 - 21:00",
        "02:00 - 05:00",
        "07:00 - 10:00",
        "12:00 - 16:00",
    ]


def test_manual_viewport_controls_delegate(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)

    controller.scroll_to_live()
    controller.fit_content()

    assert fake_provider.call_names()[-2:] == ["scroll_to_live", "fit_content"]


# ── Swap / price format / угоди ─────────────────────────────────────────


def test_symbol_swap_applies_price_format(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)

    controller.update_series("EURUSD", make_candles(T0, 10))
    assert capable_provider.price_format == (5, 0.00001)

    controller.update_series("USDJPY", make_candles(T0, 10, base=150.0))
    assert capable_provider.price_format == (2, 0.01)
    assert controller.precision == 2


def test_trade_lines_replaced_and_dropped_on_swap(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)
    controller.update_series("EURUSD", make_candles(T0, 10))
    trade = {"id": "t1", "type": "LONG", "entryPrice": 1.1, "sl": 1.09, "tp": 1.12}

    controller.set_active_trades([trade])
    assert sorted(s["title"] for s in capable_provider.price_lines.values()) == ["ENTRY", "SL", "TP"]

    controller.set_active_trades([trade, {**trade, "id": "t2"}])
    assert len(capable_provider.price_lines) == 6

    controller.update_series("GBPUSD", make_candles(T0, 10, base=1.3))
    assert capable_provider.price_lines == {}
    assert len(controller.trade_lines) == 0


def test_trades_without_capability_are_noop(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)

    controller.set_active_trades([{"id": "t1", "type": "SHORT", "entryPrice": 1.1, "sl": 1.2, "tp": 1.0}])

    assert len(controller.trade_lines) == 0


# ── Історія ─────────────────────────────────────────────────────────────


def test_stale_history_page_is_discarded(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)
    controller.update_series("A", make_candles(T0, 100))
    controller.update_series("B", make_candles(T0 + 86_400, 20))

    assert controller.receive_history_page("A", make_candles(T0 - 6000, 200)) is None
    assert controller.symbol_key == "B"
    assert len(fake_provider.data) == 20
    assert controller.state.previous_count == 20


def test_history_finished_clears_flag_for_current_key_only(
    fake_provider: FakeCoordinateProvider,
) -> None:
    controller = _controller(fake_provider)
    controller.update_series("A", make_candles(T0, 100))
    controller.state = controller.state.with_fetch_in_flight(True)

    controller.history_load_finished("OTHER")
    assert controller.state.fetch_in_flight is True

    # без event loop debounce виконується одразу
    controller.history_load_finished("A")
    assert controller.state.fetch_in_flight is False


@pytest.mark.asyncio
async def test_lazy_history_through_range_subscription() -> None:
    provider = CapableFakeProvider()
    requested: list[int] = []
    controller: ChartController | None = None

    async def _load_more(oldest: int) -> None:
        requested.append(oldest)
        assert controller is not None
        controller.receive_history_page("EURUSD", make_candles(T0 - 50 * 60, 150))

    controller = _controller(
        provider,
        load_more=_load_more,
        config=ChartEngineConfig(history_debounce_sec=0.01, frame_interval_sec=0.005),
    )
    controller.update_series("EURUSD", make_candles(T0, 100))

    provider.emit_range({"from": 10, "to": 99})
    assert controller.state.fetch_in_flight is True
    provider.emit_range({"from": 9, "to": 98})

    await asyncio.sleep(0.05)

    assert requested == [T0]
    assert controller.state.fetch_in_flight is False
    assert controller.state.previous_count == 150
    assert provider.range == {"from": 59, "to": 148}
    await controller.aclose()


@pytest.mark.asyncio
async def test_fresh_load_inside_margin_requests_history() -> None:
    provider = HeadlessChartProvider(800, 400, visible_bars=120)
    requested: list[int] = []

    async def _load_more(oldest: int) -> None:
        requested.append(oldest)

    controller = _controller(
        provider,
        load_more=_load_more,
        config=ChartEngineConfig(history_debounce_sec=0.01, frame_interval_sec=0.005),
    )

    controller.update_series("EURUSD", make_candles(T0, 30))

    visible = provider.get_visible_logical_range()
    assert visible is not None
    assert visible["from"] < 50
    assert controller.state.fetch_in_flight is True
    await asyncio.sleep(0.05)
    assert requested == [T0]
    await controller.aclose()


@pytest.mark.asyncio
async def test_prepend_still_inside_margin_requests_next_page() -> None:
    provider = CapableFakeProvider()
    requested: list[int] = []
    controller: ChartController | None = None

    async def _load_more(oldest: int) -> None:
        requested.append(oldest)
        assert controller is not None
        if len(requested) == 1:
            controller.receive_history_page("EURUSD", make_candles(T0 - 600, 40))

    controller = _controller(
        provider,
        load_more=_load_more,
        config=ChartEngineConfig(history_debounce_sec=0.01, frame_interval_sec=0.005),
    )
    controller.update_series("EURUSD", make_candles(T0, 30))
    provider.emit_range({"from": 2, "to": 19})

    await asyncio.sleep(0.05)

    assert provider.range == {"from": 12, "to": 29}
    assert requested == [T0, T0 - 600]
    assert controller.state.fetch_in_flight is False
    await controller.aclose()


@pytest.mark.asyncio
async def test_late_finish_signal_does_not_release_newer_fetch() -> None:
    provider = CapableFakeProvider()
    requested: list[int] = []
    release_second = asyncio.Event()
    controller: ChartController | None = None

    async def _load_more(oldest: int) -> None:
        requested.append(oldest)
        assert controller is not None
        if len(requested) == 1:
            controller.receive_history_page("EURUSD", make_candles(T0 - 50 * 60, 150))
        else:
            await release_second.wait()

    controller = _controller(
        provider,
        load_more=_load_more,
        config=ChartEngineConfig(history_debounce_sec=0.05, frame_interval_sec=0.005),
    )
    controller.update_series("EURUSD", make_candles(T0, 100))

    provider.emit_range({"from": 10, "to": 99})
    await asyncio.sleep(0.01)
    # сторінку застосовано, завершення першого запиту ще чекає debounce
    assert provider.range == {"from": 59, "to": 148}
    assert controller.state.fetch_in_flight is False

    provider.emit_range({"from": 3, "to": 92})
    assert controller.state.fetch_in_flight is True
    await asyncio.sleep(0.15)

    assert controller.state.fetch_in_flight is True
    provider.emit_range({"from": 4, "to": 93})
    assert requested == [T0, T0 - 50 * 60]

    release_second.set()
    await asyncio.sleep(0.15)
    assert controller.state.fetch_in_flight is False
    await controller.aclose()


# ── Dormancy / resize ───────────────────────────────────────────────────


def test_dormancy_gate_controls_scheduler(fake_provider: FakeCoordinateProvider) -> None:
    controller = _controller(fake_provider)
    assert controller.scheduler.is_active

    controller.set_dormant(True)
    assert not controller.should_render
    assert not controller.scheduler.is_active
    assert controller.render_frame() is None

    controller.set_dormant(False)
    assert controller.scheduler.is_active

    controller.on_intersection(0.05)
    assert not controller.scheduler.is_active
    controller.on_intersection(0.5)
    assert controller.scheduler.is_active


def test_resize_burst_applies_once_on_next_frame(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)

    controller.on_resize(300, 200)
    controller.on_resize(400, 300)
    controller.on_resize(500, 350)
    assert capable_provider.resizes == []

    controller.scheduler.tick()

    assert capable_provider.resizes == [(500, 350)]
    assert controller.compositor.surface.size == (500, 350)

    controller.on_resize(500, 350)
    controller.scheduler.tick()
    assert capable_provider.resizes == [(500, 350)]


def test_resize_waits_while_dormant(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)
    controller.set_dormant(True)

    controller.on_resize(320, 240)
    controller.scheduler.tick()
    assert capable_provider.resizes == []

    controller.set_dormant(False)
    controller.scheduler.tick()
    assert capable_provider.resizes == [(320, 240)]


# ── Hover / маркери ─────────────────────────────────────────────────────


def test_hover_publishes_tooltip_once_per_time(fake_provider: FakeCoordinateProvider) -> None:
    published: list = []
    controller = _controller(fake_provider, on_tooltip=published.append)
    controller.update_series("EURUSD", make_candles(T0, 10))

    fake_provider.emit_move(T0, (15.0, 25.0))
    fake_provider.emit_move(T0, (16.0, 26.0))
    fake_provider.emit_move(T0 + 60, (30.0, 25.0))

    assert len(published) == 2
    first = published[0]
    assert (first["x"], first["y"]) == (15.0, 25.0)
    assert first["primary_label"].startswith("O 1.10000")
    assert first["secondary_label"].startswith("Asian")
    assert controller.legend["time"] == T0 + 60  # type: ignore[index]


def test_pointer_leave_resets_legend_and_tooltip(fake_provider: FakeCoordinateProvider) -> None:
    published: list = []
    controller = _controller(fake_provider, on_tooltip=published.append)
    result = controller.update_series("EURUSD", make_candles(T0, 10))
    fake_provider.emit_move(T0)

    fake_provider.emit_move(None)
    fake_provider.emit_move(None)

    assert published[-1] is None
    assert len(published) == 2
    assert controller.tooltip is None
    assert controller.legend == result.points[-1]


def test_marker_tooltip_and_click(fake_provider: FakeCoordinateProvider) -> None:
    published: list = []
    clicked: list = []
    controller = _controller(
        fake_provider, on_tooltip=published.append, on_marker_click=clicked.append
    )
    controller.update_series("EURUSD", make_candles(T0, 10))
    marker = {"time": T0 + 120, "position": "aboveBar", "text": "BOS", "title": "Break of structure"}
    # провайдер без маркерів: no-op, але підказка/клік працюють
    controller.set_markers([marker])

    fake_provider.emit_move(T0 + 120)
    fake_provider.emit_click(T0 + 120)
    fake_provider.emit_click(T0 + 180)

    assert published[-1]["primary_label"] == "BOS"
    assert published[-1]["secondary_label"] == "Break of structure"
    assert clicked == [marker]


def test_markers_forwarded_and_failures_swallowed(capable_provider: CapableFakeProvider) -> None:
    controller = _controller(capable_provider)
    controller.set_markers([{"time": T0, "text": "x"}])
    assert capable_provider.markers == [{"time": T0, "text": "x"}]

    def _boom(markers):  # type: ignore[no-untyped-def]
        raise RuntimeError("series disposed")

    capable_provider.set_markers = _boom  # type: ignore[method-assign]
    controller.set_markers([{"time": T0, "text": "y"}])
    assert controller.markers == [{"time": T0, "text": "y"}]


def test_dormant_chart_ignores_crosshair(fake_provider: FakeCoordinateProvider) -> None:
    published: list = []
    controller = _controller(fake_provider, on_tooltip=published.append)
    controller.update_series("EURUSD", make_candles(T0, 10))
    fake_provider.emit_move(T0)

    controller.set_dormant(True)
    fake_provider.emit_move(T0 + 60)

    assert published[-1] is None
    assert controller.tooltip is None
    assert len(published) == 2


# ── Оверлей / знімок ────────────────────────────────────────────────────


def test_render_frame_uses_latest_scan_result(fake_provider: FakeCoordinateProvider) -> None:
    fake_provider.time_x = {T0: 20.0, T0 + 300: 80.0}
    controller = _controller(fake_provider)
    controller.update_series("EURUSD", make_candles(T0, 10))

    controller.set_scan_result({"zones": [_ZONE]})
    controller.scheduler.tick()
    assert controller.last_frame_stats is not None
    assert controller.last_frame_stats.zones_drawn == 1

    controller.set_scan_result({"zones": []})
    controller.scheduler.tick()
    assert controller.last_frame_stats.zones_drawn == 0


def test_snapshot_composites_overlay_over_base(capable_provider: CapableFakeProvider) -> None:
    capable_provider.time_x = {T0: 20.0, T0 + 300: 80.0}
    delivered: list[tuple[str, bool]] = []
    controller = _controller(
        capable_provider, snapshot_sink=lambda url, auto: delivered.append((url, auto))
    )
    controller.update_series("EURUSD", make_candles(T0, 10))
    controller.set_scan_result({"zones": [_ZONE]})
    controller.scheduler.tick()

    assert controller.take_snapshot() is True
    assert delivered == []
    controller.scheduler.tick()

    assert len(delivered) == 1
    url, is_automatic = delivered[0]
    assert is_automatic is False
    image = decode_png_data_url(url).convert("RGBA")
    assert image.size == (200, 100)
    assert image.getpixel((150, 45)) == (10, 10, 10, 255)
    inside = image.getpixel((50, 45))
    assert inside[1] > 10


def test_snapshot_without_capability_is_noop(fake_provider: FakeCoordinateProvider) -> None:
    delivered: list = []
    controller = _controller(fake_provider, snapshot_sink=lambda url, auto: delivered.append(url))

    assert controller.take_snapshot() is False
    controller.scheduler.tick()
    assert delivered == []


def test_snapshot_failure_does_not_call_sink(capable_provider: CapableFakeProvider) -> None:
    delivered: list = []
    controller = _controller(capable_provider, snapshot_sink=lambda url, auto: delivered.append(url))

    def _broken():  # type: ignore[no-untyped-def]
        raise OSError("canvas lost")

    capable_provider.take_screenshot = _broken  # type: ignore[method-assign]
    controller.take_snapshot(is_automatic=True)
    controller.scheduler.tick()

    assert delivered == []


def test_snapshot_sink_removed_before_frame_is_quiet(capable_provider: CapableFakeProvider) -> None:
    delivered: list = []
    controller = _controller(capable_provider, snapshot_sink=lambda url, auto: delivered.append(url))
    controller.update_series("EURUSD", make_candles(T0, 10))

    assert controller.take_snapshot(is_automatic=True) is True
    controller.snapshot_sink = None

    # знімок + перемальовка оверлею, обидва колбеки кадру без помилок
    assert controller.scheduler.tick() == 2
    assert delivered == []


@pytest.mark.asyncio
async def test_async_sink_flash_and_auto_snapshot() -> None:
    provider = CapableFakeProvider()
    delivered: list[bool] = []

    async def _sink(url: str, is_automatic: bool) -> None:
        assert url.startswith("data:image/png;base64,")
        delivered.append(is_automatic)

    controller = _controller(
        provider,
        snapshot_sink=_sink,
        config=ChartEngineConfig(
            capture_flash_sec=0.02, auto_snapshot_delay_sec=0.01, frame_interval_sec=0.002
        ),
    )
    controller.update_series("EURUSD", make_candles(T0, 10))

    controller.take_snapshot()
    assert controller.is_flashing is True
    await asyncio.sleep(0.06)
    assert controller.is_flashing is False
    assert delivered == [False]

    controller.request_auto_snapshot()
    assert controller.is_flashing is False
    await asyncio.sleep(0.06)
    assert delivered == [False, True]

    await controller.aclose()
    assert not controller.scheduler.is_active
