"""Компоновщик оверлею: зони та лінії поверх графіка на окремій RGBA-поверхні.

Кожен кадр поверхня очищується повністю і перемальовується з нуля за
ПОТОЧНОЮ трансформацією Coordinate Provider (час/ціна → пікселі). Жодного
інкрементального diff-у: трансформація змінюється асинхронно (pan/zoom/resize),
а повна перемальовка не лишає «застарілих» пікселів.

Компоновщик нічого не мутує: він лише читає ScanResult і провайдер. Помилка
однієї фігури пропускає цю фігуру на цей кадр, а не зупиняє render-цикл.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from PIL import Image, ImageDraw, ImageFont
from prometheus_client import Counter

from config.config import (
    LINE_COLOR_FALLBACK,
    LINE_COLORS,
    ZONE_STYLE_FALLBACK,
    ZONE_STYLES,
)
from core.contracts import ChartLine, ChartZone, ScanResult
from core.formatters import css_color_to_rgba

from .chart_types import OverlayFrameStats
from .config import ChartEngineConfig
from .provider import CoordinateProvider

logger = logging.getLogger("chart_core.overlay")

CHART_OVERLAY_SHAPE_ERRORS_TOTAL = Counter(
    "chart_engine_overlay_shape_errors_total",
    "Total number of overlay shapes skipped because drawing them failed.",
)

_TRANSPARENT = (0, 0, 0, 0)
_LABEL_OFFSET_PX = 4
_LINE_WIDTH_PX = 2
_DASH_PX = (5, 5)


@dataclass(frozen=True, slots=True)
class VisibleTimeBounds:
    """Час першого/останнього видимого бару (для напрямку «за край»)."""

    first: int
    last: int

    def side_of(self, ts: int) -> str:
        return "left" if ts < self.first else "right"


# -- Геометрія ----------------------------------------------------------------


def clip_segment(
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    bounds: tuple[float, float, float, float],
) -> tuple[float, float, float, float] | None:
    """Відсікає відрізок прямокутником (Liang–Barsky). None — повністю поза ним."""

    xmin, ymin, xmax, ymax = bounds
    dx = x2 - x1
    dy = y2 - y1
    t0, t1 = 0.0, 1.0
    for p, q in (
        (-dx, x1 - xmin),
        (dx, xmax - x1),
        (-dy, y1 - ymin),
        (dy, ymax - y1),
    ):
        if p == 0:
            if q < 0:
                return None
            continue
        r = q / p
        if p < 0:
            if r > t1:
                return None
            t0 = max(t0, r)
        else:
            if r < t0:
                return None
            t1 = min(t1, r)
    return (x1 + t0 * dx, y1 + t0 * dy, x1 + t1 * dx, y1 + t1 * dy)


def dash_segments(
    x1: float, y1: float, x2: float, y2: float, *, dash: int, gap: int
) -> Iterator[tuple[float, float, float, float]]:
    """Ріже відрізок на штрихи `dash` px з проміжками `gap` px."""

    length = ((x2 - x1) ** 2 + (y2 - y1) ** 2) ** 0.5
    if length == 0:
        return
    ux = (x2 - x1) / length
    uy = (y2 - y1) / length
    pos = 0.0
    step = dash + gap
    while pos < length:
        end = min(pos + dash, length)
        yield (x1 + ux * pos, y1 + uy * pos, x1 + ux * end, y1 + uy * end)
        pos += step


def _rgba(color: str, fallback: str) -> tuple[int, int, int, int]:
    try:
        return css_color_to_rgba(color)
    except ValueError:
        logger.debug("[ChartOverlay] Невідомий колір %r, беремо %r", color, fallback)
        return css_color_to_rgba(fallback)


def zone_style(zone_type: str | None) -> tuple[tuple[int, ...], tuple[int, ...]]:
    """(fill, stroke) для типу зони; невідомий тип → нейтральний стиль."""

    fill, stroke = ZONE_STYLES.get(str(zone_type or ""), ZONE_STYLE_FALLBACK)
    return css_color_to_rgba(fill), css_color_to_rgba(stroke)


def line_color(line: Mapping[str, Any]) -> tuple[int, int, int, int]:
    """Колір лінії: явний `color` має пріоритет над кольором типу."""

    default = LINE_COLORS.get(str(line.get("type") or ""), LINE_COLOR_FALLBACK)
    override = line.get("color")
    if override:
        return _rgba(str(override), default)
    return css_color_to_rgba(default)


# -- Компоновщик --------------------------------------------------------------


class OverlayCompositor:
    """Малює зони та лінії ScanResult на прозорій поверхні розміру графіка."""

    def __init__(
        self,
        width: int,
        height: int,
        *,
        config: ChartEngineConfig | None = None,
        font: ImageFont.ImageFont | ImageFont.FreeTypeFont | None = None,
    ) -> None:
        self.config = config or ChartEngineConfig()
        self._font = font or ImageFont.load_default()
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self.surface = Image.new("RGBA", (self.width, self.height), _TRANSPARENT)

    # -- Поверхня ------------------------------------------------------------

    def resize(self, width: int, height: int) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self.surface = Image.new("RGBA", (self.width, self.height), _TRANSPARENT)

    def clear(self) -> None:
        self.surface = Image.new("RGBA", (self.width, self.height), _TRANSPARENT)

    # -- Кадр ----------------------------------------------------------------

    def render(
        self,
        provider: CoordinateProvider,
        scan_result: ScanResult | None,
        *,
        time_bounds: VisibleTimeBounds | None = None,
    ) -> OverlayFrameStats:
        """Очищує поверхню і малює всі фігури за поточною трансформацією."""

        self.clear()
        stats = OverlayFrameStats()
        if not scan_result:
            return stats

        for zone in scan_result.get("zones") or ():
            self._guarded(self._draw_zone, provider, zone, time_bounds, stats)
        for line in scan_result.get("lines") or ():
            self._guarded(self._draw_line, provider, line, time_bounds, stats)
        return stats

    def _guarded(
        self,
        draw_fn: Any,
        provider: CoordinateProvider,
        shape: Mapping[str, Any],
        time_bounds: VisibleTimeBounds | None,
        stats: OverlayFrameStats,
    ) -> None:
        try:
            draw_fn(provider, shape, time_bounds, stats)
        except Exception:
            stats.errors += 1
            CHART_OVERLAY_SHAPE_ERRORS_TOTAL.inc()
            logger.debug(
                "[ChartOverlay] Фігуру %r пропущено на цей кадр",
                shape.get("id") if isinstance(shape, Mapping) else shape,
                exc_info=True,
            )

    # -- Координати ----------------------------------------------------------

    def _offscreen_x(self, side: str) -> float:
        if side == "left":
            return float(-self.config.offscreen_px)
        return float(self.width + self.config.offscreen_px)

    def _resolve_x(
        self,
        provider: CoordinateProvider,
        ts: int,
        time_bounds: VisibleTimeBounds | None,
        *,
        default_side: str,
    ) -> tuple[float, bool]:
        """(x, resolved): resolved=False — підставлено позицію «за краєм»."""

        coord = provider.time_to_coordinate(int(ts))
        if coord is not None:
            return float(coord), True
        side = time_bounds.side_of(int(ts)) if time_bounds is not None else default_side
        return self._offscreen_x(side), False

    def _clamp_x(self, x: float) -> float:
        pad = self.config.offscreen_px
        return max(-pad, min(self.width + pad, x))

    def _clamp_y(self, y: float) -> float:
        pad = self.config.offscreen_px
        return max(-pad, min(self.height + pad, y))

    def _in_bounds(self, x: float, y: float) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    # -- Зони ----------------------------------------------------------------

    def _draw_zone(
        self,
        provider: CoordinateProvider,
        zone: ChartZone,
        time_bounds: VisibleTimeBounds | None,
        stats: OverlayFrameStats,
    ) -> None:
        y_start = provider.price_to_coordinate(float(zone["priceStart"]))
        y_end = provider.price_to_coordinate(float(zone["priceEnd"]))
        if y_start is None or y_end is None:
            stats.skipped += 1
            stats.skipped_ids.append(str(zone.get("id", "")))
            return

        x_start, _ = self._resolve_x(
            provider, zone["timeStart"], time_bounds, default_side="left"
        )
        time_end = zone.get("timeEnd")
        if time_end is None:
            # Відкрита зона тягнеться до правого краю видимої поверхні.
            x_end = float(self.width)
        else:
            x_end, _ = self._resolve_x(
                provider, time_end, time_bounds, default_side="right"
            )

        left = self._clamp_x(min(x_start, x_end))
        right = self._clamp_x(max(x_start, x_end))
        top = self._clamp_y(min(y_start, y_end))
        bottom = self._clamp_y(max(y_start, y_end))

        fill, stroke = zone_style(zone.get("type"))
        layer = Image.new("RGBA", self.surface.size, _TRANSPARENT)
        draw = ImageDraw.Draw(layer)
        draw.rectangle((left, top, right, bottom), fill=fill, outline=stroke, width=1)

        label = zone.get("label")
        if label and self._in_bounds(left, top):
            self._draw_label(draw, str(label), left, top, stroke)
            stats.labels_drawn += 1

        self.surface.alpha_composite(layer)
        stats.zones_drawn += 1

    # -- Лінії ---------------------------------------------------------------

    def _draw_line(
        self,
        provider: CoordinateProvider,
        line: ChartLine,
        time_bounds: VisibleTimeBounds | None,
        stats: OverlayFrameStats,
    ) -> None:
        y1 = provider.price_to_coordinate(float(line["y1"]))
        y2 = provider.price_to_coordinate(float(line["y2"]))
        if y1 is None or y2 is None:
            stats.skipped += 1
            stats.skipped_ids.append(str(line.get("id", "")))
            return

        t1 = int(line["x1"])
        t2 = int(line["x2"])
        x1, resolved1 = self._resolve_x(provider, t1, time_bounds, default_side="left")
        x2, resolved2 = self._resolve_x(provider, t2, time_bounds, default_side="right")
        if not resolved1 and not resolved2:
            # Обидва кінці поза екраном: лінію видно, лише якщо вона перетинає вікно.
            if time_bounds is None or time_bounds.side_of(t1) == time_bounds.side_of(t2):
                stats.skipped += 1
                stats.skipped_ids.append(str(line.get("id", "")))
                return

        pad = _LINE_WIDTH_PX
        clipped = clip_segment(
            x1,
            float(y1),
            x2,
            float(y2),
            (-pad, -pad, self.width + pad, self.height + pad),
        )
        if clipped is None:
            stats.skipped += 1
            return

        color = line_color(line)
        layer = Image.new("RGBA", self.surface.size, _TRANSPARENT)
        draw = ImageDraw.Draw(layer)
        if line.get("type") == "trend":
            for seg in dash_segments(*clipped, dash=_DASH_PX[0], gap=_DASH_PX[1]):
                draw.line(seg, fill=color, width=_LINE_WIDTH_PX)
        else:
            draw.line(clipped, fill=color, width=_LINE_WIDTH_PX)

        label = line.get("label") or line.get("type")
        if label and resolved1 and self._in_bounds(x1, float(y1)):
            self._draw_label(draw, str(label), x1, float(y1), color)
            stats.labels_drawn += 1

        self.surface.alpha_composite(layer)
        stats.lines_drawn += 1

    def _draw_label(
        self,
        draw: ImageDraw.ImageDraw,
        text: str,
        x: float,
        y: float,
        color: tuple[int, ...],
    ) -> None:
        _, _, _, text_h = self._font.getbbox(text)
        draw.text(
            (x + _LABEL_OFFSET_PX, y - _LABEL_OFFSET_PX - text_h),
            text,
            fill=color,
            font=self._font,
        )


__all__ = (
    "VisibleTimeBounds",
    "OverlayCompositor",
    "clip_segment",
    "dash_segments",
    "zone_style",
    "line_color",
)
