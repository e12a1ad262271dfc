"""Константи та базовий конфіг для chart-core."""

from __future__ import annotations

from dataclasses import dataclass, field

from config.config import (
    AUTO_SNAPSHOT_DELAY_SEC,
    CAPTURE_FLASH_SEC,
    DEFAULT_SESSION_TIMEZONE,
    DEFAULT_SESSION_WINDOWS,
    FRAME_INTERVAL_SEC,
    HISTORY_DEBOUNCE_SEC,
    OFFSCREEN_PX,
    PREPEND_MARGIN_BARS,
    TIME_JUMP_THRESHOLD_SEC,
    VISIBILITY_THRESHOLD,
)
from core.contracts import SessionWindow


def default_session_windows() -> tuple[SessionWindow, ...]:
    return tuple(
        SessionWindow(name=name, start=start, end=end, color=color)
        for name, start, end, color in DEFAULT_SESSION_WINDOWS
    )


@dataclass(frozen=True, slots=True)
class ChartEngineConfig:
    """Налаштування, що визначають поведінку рушія синхронізації графіка."""

    time_jump_threshold_sec: int = TIME_JUMP_THRESHOLD_SEC  # Розрив last_time, що вважається swap/розривом сесії
    prepend_margin_bars: int = PREPEND_MARGIN_BARS  # Запас барів від лівого краю для догрузки історії
    history_debounce_sec: float = HISTORY_DEBOUNCE_SEC  # Debounce зняття прапора in-flight
    capture_flash_sec: float = CAPTURE_FLASH_SEC  # Тривалість «спалаху» ручного знімка
    auto_snapshot_delay_sec: float = AUTO_SNAPSHOT_DELAY_SEC  # Затримка автоматичного знімка
    frame_interval_sec: float = FRAME_INTERVAL_SEC  # Період кадру render-циклу
    offscreen_px: int = OFFSCREEN_PX  # Наскільки «за край» виносимо кінці поза екраном
    visibility_threshold: float = VISIBILITY_THRESHOLD  # Частка видимості контейнера для «on-screen»
    session_timezone: str = DEFAULT_SESSION_TIMEZONE  # Канонічна timezone killzone-вікон
    session_windows: tuple[SessionWindow, ...] = field(
        default_factory=default_session_windows
    )  # Вікна у порядку пріоритету


CHART_ENGINE_CONFIG = ChartEngineConfig()
