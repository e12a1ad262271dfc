"""Часові утиліти killzone-вікон.

Мета:
- 1 раз формально визначити, як timestamp потрапляє у сесійне вікно,
  щоб band-серія та hover-підказка давали однаковий результат.

Визначення:
- вікно задається локальними годинами [start, end) у канонічній timezone;
- якщо start > end — вікно переходить через північ і перевіряється як
  `(hour >= start) or (hour < end)`;
- start == end — вироджене вікно, не містить жодної години.

Одиниці:
- `ts` — Unix timestamp у секундах (float/int).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo


@dataclass(frozen=True, slots=True)
class SessionWindow:
    """Іменоване вікно сесії (killzone) у локальних годинах."""

    name: str
    start: int  # інклюзивна година 0..23
    end: int  # ексклюзивна година 0..23
    color: str

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    @property
    def label(self) -> str:
        return f"{self.start:02d}:00 - {self.end:02d}:00"

    def contains_hour(self, hour: int) -> bool:
        return hour_in_window(hour, self.start, self.end)


def _normalize_hour(hour: int) -> int:
    try:
        h = int(hour)
    except (TypeError, ValueError):
        h = 0
    return h % 24


def hour_in_window(hour: int, start: int, end: int) -> bool:
    """Чи належить година `hour` інтервалу [start, end) з урахуванням переходу через 00."""

    h = _normalize_hour(hour)
    s = _normalize_hour(start)
    e = _normalize_hour(end)
    if s > e:
        return h >= s or h < e
    return s <= h < e


@lru_cache(maxsize=16)
def _zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def local_hour(ts: float, *, tz_name: str) -> int:
    """Повертає локальну годину `ts` у timezone `tz_name` (з урахуванням DST)."""

    dt = datetime.fromtimestamp(float(ts), tz=UTC).astimezone(_zone(tz_name))
    return dt.hour


def find_session_window_for_hour(
    hour: int, windows: Sequence[SessionWindow]
) -> SessionWindow | None:
    """Перше (за пріоритетом) вікно, що містить годину, або None."""

    for window in windows:
        if window.contains_hour(hour):
            return window
    return None


def find_session_window(
    ts: float, *, windows: Sequence[SessionWindow], tz_name: str
) -> SessionWindow | None:
    """Повертає killzone-вікно для `ts`, або None поза вікнами."""

    return find_session_window_for_hour(local_hour(ts, tz_name=tz_name), windows)


__all__ = (
    "SessionWindow",
    "hour_in_window",
    "local_hour",
    "find_session_window_for_hour",
    "find_session_window",
)
