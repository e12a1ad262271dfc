"""SSOT для серіалізації (JSON), приведення типів та часу chart-engine.

Мета: один набір консервативних хелперів, щоб не дублювати `json.loads`,
`int(...)`/`float(...)` з try/except та форматування часу по всьому репо.

Принципи:
- без "магії" та прихованих перетворень;
- невалідне значення → None, а не виняток (рішення приймає викликач).
"""

from __future__ import annotations

# ── Imports ───────────────────────────────────────────────────────────────
import json
import math
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

# ── Time ──────────────────────────────────────────────────────────────────


def utc_seconds_to_local_human(seconds: float, *, tz_name: str) -> str:
    """Конвертує UTC timestamp (секунди) у локальний час `tz_name`.

    Формат: `Mon, Jan 06 2025 14:05` — як у легенді/підказці графіка.
    """

    dt = datetime.fromtimestamp(float(seconds), tz=UTC).astimezone(ZoneInfo(tz_name))
    return dt.strftime("%a, %b %d %Y %H:%M")


# ── Coercion ──────────────────────────────────────────────────────────────


def safe_int(value: Any) -> int | None:
    """Безпечно приводить значення до int.

    bool відкидаємо явно: `True` як timestamp — це завжди помилка даних.
    Float з дробовою частиною обрізається (timestamp у секундах).
    """

    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, float):
            if not math.isfinite(value):
                return None
            return int(value)
        return int(value)
    except (TypeError, ValueError):
        return None


def safe_float(value: Any, *, finite: bool = False) -> float | None:
    """Безпечно приводить значення до float.

    Якщо `finite=True`, відкидає NaN/inf.
    """

    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if finite and not math.isfinite(result):
        return None
    return result


# ── JSON ──────────────────────────────────────────────────────────────────


def json_loads(data: str | bytes | bytearray) -> Any:
    """Десеріалізує JSON (str або bytes з UTF-8, errors='replace')."""

    if isinstance(data, (bytes, bytearray)):
        text = data.decode("utf-8", errors="replace")
    else:
        text = data
    return json.loads(text)


__all__ = (
    "utc_seconds_to_local_human",
    "safe_int",
    "safe_float",
    "json_loads",
)
