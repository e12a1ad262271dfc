"""SSOT для форматування чисел/кольорів у легенді, підказках та логах.

Цей модуль НЕ містить бізнес-логіки рушія (класифікація, viewport).
Лише форматтери для читабельних рядків і розбір CSS-кольорів для Pillow.
"""

from __future__ import annotations

# ── Imports ───────────────────────────────────────────────────────────────
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Final

from PIL import ImageColor

from config.config import (
    COARSE_PRICE_SYMBOLS,
    PRICE_FORMAT_COARSE,
    PRICE_FORMAT_DEFAULT,
)

# ── Helpers ───────────────────────────────────────────────────────────────

_DEFAULT_FLOAT_DIGITS: Final[int] = 10
_RGBA_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9.]+)\s*)?\)$"
)


def _strip_trailing_zeros(text: str) -> str:
    if "." not in text:
        return text
    return text.rstrip("0").rstrip(".")


# ── Numbers ───────────────────────────────────────────────────────────────


def fmt_price(value: float | Decimal, *, digits: int | None = None) -> str:
    """Форматує ціну без наукової нотації.

    Якщо `digits` не задано — компактний рядок без зайвих нулів.
    """

    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    if digits is None:
        return _strip_trailing_zeros(f"{dec:.{_DEFAULT_FLOAT_DIGITS}f}")
    return f"{dec:.{digits}f}"


def price_format_for_symbol(symbol: str) -> tuple[int, float]:
    """(precision, min_move) для інструмента.

    JPY-пари та великі крипто-інструменти котируються з кроком 0.01,
    решта FX — з кроком 0.00001.
    """

    key = str(symbol or "").strip().upper()
    if "JPY" in key or key in COARSE_PRICE_SYMBOLS:
        return PRICE_FORMAT_COARSE
    return PRICE_FORMAT_DEFAULT


def fmt_point_summary(point: Mapping[str, Any], *, digits: int) -> str:
    """Однорядковий опис точки серії: `O … H … L … C …` або значення."""

    if "close" in point:
        return " ".join(
            f"{key[0].upper()} {fmt_price(point[key], digits=digits)}"
            for key in ("open", "high", "low", "close")
            if point.get(key) is not None
        )
    value = point.get("value")
    if value is None:
        return "-"
    return fmt_price(value, digits=digits)


# ── Colors ────────────────────────────────────────────────────────────────


def css_color_to_rgba(color: str) -> tuple[int, int, int, int]:
    """Розбирає CSS-колір (`rgba(r, g, b, 0.15)`, `#hex`, назва) у RGBA-кортеж.

    Альфа в `rgba()` — частка 0..1 (CSS), у результаті — 0..255.
    `transparent` → (0, 0, 0, 0). Невідомий формат → ValueError.
    """

    text = str(color or "").strip().lower()
    if text == "transparent":
        return (0, 0, 0, 0)
    match = _RGBA_RE.match(text)
    if match:
        r, g, b = (min(255, int(match.group(i))) for i in (1, 2, 3))
        alpha_raw = match.group(4)
        alpha = 1.0 if alpha_raw is None else max(0.0, min(1.0, float(alpha_raw)))
        return (r, g, b, int(round(alpha * 255)))
    rgb = ImageColor.getrgb(text)
    if len(rgb) == 4:
        return rgb  # type: ignore[return-value]
    return (rgb[0], rgb[1], rgb[2], 255)


__all__ = (
    "fmt_price",
    "price_format_for_symbol",
    "fmt_point_summary",
    "css_color_to_rgba",
)
