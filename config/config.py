"""Центральне джерело конфігурації chart-engine.

У модулі зібрані константи рушія синхронізації графіка (пороги класифікації,
debounce-таймери, killzone-вікна, палітра оверлеїв).

Принцип: значення тут — дефолти. Рантайм-override робиться через
`app.settings.ChartEngineSettings` (ENV/YAML), а не правкою цього файлу.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = [
    "DEFAULT_SESSION_TIMEZONE",
    "DEFAULT_SESSION_WINDOWS",
    "SESSION_WINDOWS_YAML",
    "TIME_JUMP_THRESHOLD_SEC",
    "PREPEND_MARGIN_BARS",
    "HISTORY_DEBOUNCE_SEC",
    "CAPTURE_FLASH_SEC",
    "AUTO_SNAPSHOT_DELAY_SEC",
    "FRAME_INTERVAL_SEC",
    "OFFSCREEN_PX",
    "VISIBILITY_THRESHOLD",
    "ZONE_STYLES",
    "ZONE_STYLE_FALLBACK",
    "LINE_COLORS",
    "LINE_COLOR_FALLBACK",
    "TRADE_LINE_COLORS",
    "CHART_BACKGROUND",
    "CANDLE_UP_COLOR",
    "CANDLE_DOWN_COLOR",
    "PRICE_FORMAT_DEFAULT",
    "PRICE_FORMAT_COARSE",
    "COARSE_PRICE_SYMBOLS",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
SESSION_WINDOWS_YAML = _PROJECT_ROOT / "config" / "session_windows.yaml"

# ──────────────────────────────────────────────────────────────────────────────
# RECONCILER / LAZY HISTORY
# ──────────────────────────────────────────────────────────────────────────────

# Розрив останнього timestamp понад годину трактуємо як swap/розрив сесії.
TIME_JUMP_THRESHOLD_SEC: Final[int] = 3600
# Скільки барів від лівого краю завантажених даних вмикає догрузку історії.
PREPEND_MARGIN_BARS: Final[int] = 50
HISTORY_DEBOUNCE_SEC: Final[float] = 0.5

# ──────────────────────────────────────────────────────────────────────────────
# LIFECYCLE / FRAME LOOP
# ──────────────────────────────────────────────────────────────────────────────

CAPTURE_FLASH_SEC: Final[float] = 0.3
AUTO_SNAPSHOT_DELAY_SEC: Final[float] = 0.2
FRAME_INTERVAL_SEC: Final[float] = 1.0 / 60.0
VISIBILITY_THRESHOLD: Final[float] = 0.1
# Зсув «за край» поверхні для кінців фігур, час яких поза екраном.
OFFSCREEN_PX: Final[int] = 1000

# ──────────────────────────────────────────────────────────────────────────────
# SESSION KILLZONES (America/New_York, порядок = пріоритет)
# ──────────────────────────────────────────────────────────────────────────────

DEFAULT_SESSION_TIMEZONE: Final[str] = "America/New_York"

# (name, start_hour, end_hour, color_rgba)
DEFAULT_SESSION_WINDOWS: Final[tuple[tuple[str, int, int, str], ...]] = (
    ("Asian", 18, 21, "rgba(59, 130, 246, 0.1)"),
    ("London", 2, 5, "rgba(239, 68, 68, 0.1)"),
    ("NY AM", 7, 10, "rgba(16, 185, 129, 0.1)"),
    ("NY PM", 12, 16, "rgba(245, 158, 11, 0.1)"),
)

# ──────────────────────────────────────────────────────────────────────────────
# ПАЛІТРА ОВЕРЛЕЇВ
# ──────────────────────────────────────────────────────────────────────────────

# zone.type -> (fill, stroke)
ZONE_STYLES: Final[dict[str, tuple[str, str]]] = {
    "supply": ("rgba(255, 30, 86, 0.15)", "rgba(255, 30, 86, 0.4)"),
    "demand": ("rgba(0, 255, 157, 0.15)", "rgba(0, 255, 157, 0.4)"),
    "gap": ("rgba(250, 204, 21, 0.1)", "rgba(250, 204, 21, 0.3)"),
}
ZONE_STYLE_FALLBACK: Final[tuple[str, str]] = (
    "rgba(100, 100, 100, 0.2)",
    "rgba(150, 150, 150, 0.5)",
)

LINE_COLORS: Final[dict[str, str]] = {
    "support": "rgba(0, 255, 157, 0.8)",
    "resistance": "rgba(255, 30, 86, 0.8)",
}
LINE_COLOR_FALLBACK: Final[str] = "rgba(6, 182, 212, 0.8)"

TRADE_LINE_COLORS: Final[dict[str, str]] = {
    "entry_long": "rgba(0, 255, 157, 0.8)",
    "entry_short": "rgba(255, 30, 86, 0.8)",
    "sl": "rgba(255, 255, 255, 0.6)",
    "tp": "rgba(250, 204, 21, 0.6)",
}

CHART_BACKGROUND: Final[str] = "#1a1a1a"
CANDLE_UP_COLOR: Final[str] = "rgba(0, 255, 157, 1)"
CANDLE_DOWN_COLOR: Final[str] = "rgba(255, 30, 86, 1)"

# ──────────────────────────────────────────────────────────────────────────────
# ФОРМАТ ЦІНИ
# ──────────────────────────────────────────────────────────────────────────────

# (precision, min_move)
PRICE_FORMAT_DEFAULT: Final[tuple[int, float]] = (5, 0.00001)
PRICE_FORMAT_COARSE: Final[tuple[int, float]] = (2, 0.01)
COARSE_PRICE_SYMBOLS: Final[frozenset[str]] = frozenset({"BTCUSD", "ETHUSD", "SOLUSD"})
