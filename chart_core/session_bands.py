"""Похідна гістограма killzone-сесій для цінової серії.

Кожна точка серії отримує `value=1` і колір першого (за пріоритетом) вікна,
що містить її локальну годину, або `value=0` і `transparent`. Band
перераховується повністю на кожен прохід звірки — інкрементального режиму
немає.
"""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

from core.contracts import SeriesPoint, SessionBandPoint, SessionWindow
from core.contracts.session_time import find_session_window_for_hour

TRANSPARENT = "transparent"


def local_hours(times: Sequence[int], *, tz_name: str) -> list[int]:
    """Векторно переводить UTC-секунди у локальні години `tz_name`."""

    if not times:
        return []
    stamps = pd.to_datetime(pd.Series(times, dtype="int64"), unit="s", utc=True)
    return stamps.dt.tz_convert(tz_name).dt.hour.astype(int).tolist()


def compute_session_band(
    points: Sequence[SeriesPoint],
    *,
    windows: Sequence[SessionWindow],
    tz_name: str,
) -> list[SessionBandPoint]:
    """Будує band по одній точці на кожну точку серії (той самий `time`)."""

    times = [int(p["time"]) for p in points]
    hours = local_hours(times, tz_name=tz_name)

    # Годин лише 24, тож кешуємо рішення по годині, а не по точці.
    by_hour: dict[int, SessionWindow | None] = {}
    band: list[SessionBandPoint] = []
    for ts, hour in zip(times, hours, strict=True):
        if hour not in by_hour:
            by_hour[hour] = find_session_window_for_hour(hour, windows)
        window = by_hour[hour]
        if window is None:
            band.append({"time": ts, "value": 0, "color": TRANSPARENT})
        else:
            band.append({"time": ts, "value": 1, "color": window.color})
    return band


def session_legend(windows: Sequence[SessionWindow]) -> list[dict[str, str]]:
    """Легенда killzone: назва, підпис `HH:00 - HH:00`, колір."""

    return [
        {"name": w.name, "label": w.label, "color": w.color} for w in windows
    ]


__all__ = ("TRANSPARENT", "local_hours", "compute_session_band", "session_legend")
