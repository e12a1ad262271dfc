"""Replay/QA: прогін JSON-серії через chart-engine з експортом PNG.

Що робить:
- читає серію точок (JSON-масив або `{"points": [...]}`) і опційно ScanResult;
- проганяє одну звірку через `ChartController` поверх headless-провайдера;
- малює один кадр оверлею і пише скомпонований знімок (база + оверлей) у PNG.

Запуск:
    python -m tools.replay_series_to_chart --series data.json --scan scan.json \
        --symbol EURUSD --out chart.png

Коди виходу: 0 — PNG записано; 1 — знімок не вдався; 2 — некоректний вхід.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from chart_core import ChartController
from chart_core.snapshot import decode_png_data_url
from core.serialization import json_loads
from UI_v2.headless_provider import HeadlessChartProvider
from utils.rich_console import attach_rich_handler

logger = attach_rich_handler(logging.getLogger("tools.replay_series_to_chart"))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Прогін серії через chart-engine і експорт PNG-знімка",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--series", required=True, help="JSON з точками серії")
    parser.add_argument("--scan", default="", help="JSON з ScanResult (zones/lines)")
    parser.add_argument("--symbol", default="REPLAY", help="Ключ серії (символ)")
    parser.add_argument(
        "--type", dest="series_type", choices=("CANDLE", "AREA"), default="CANDLE"
    )
    parser.add_argument("--out", default="chart.png", help="Куди писати PNG")
    parser.add_argument("--width", type=int, default=1200)
    parser.add_argument("--height", type=int, default=700)
    return parser.parse_args(argv)


def _load_json(path: str) -> Any:
    return json_loads(Path(path).read_bytes())


def _extract_points(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, dict):
        raw = raw.get("points")
    if not isinstance(raw, list):
        raise ValueError("очікується масив точок або {'points': [...]}")
    return [p for p in raw if isinstance(p, dict)]


def run(args: argparse.Namespace) -> int:
    try:
        points = _extract_points(_load_json(args.series))
        scan = _load_json(args.scan) if args.scan else None
    except (OSError, ValueError) as exc:
        logger.error("[Replay] Некоректний вхід: %s", exc)
        return 2
    if scan is not None and not isinstance(scan, dict):
        logger.error("[Replay] ScanResult має бути JSON-об'єктом")
        return 2
    if args.width <= 0 or args.height <= 0:
        logger.error("[Replay] Розмір має бути додатним: %sx%s", args.width, args.height)
        return 2

    out_path = Path(args.out)
    written: list[Path] = []

    def _sink(data_url: str, is_automatic: bool) -> None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        decode_png_data_url(data_url).save(out_path, format="PNG")
        written.append(out_path)

    provider = HeadlessChartProvider(args.width, args.height)
    controller = ChartController(
        provider,
        series_type=args.series_type,
        width=args.width,
        height=args.height,
        snapshot_sink=_sink,
    )
    result = controller.update_series(args.symbol, points)
    controller.set_scan_result(scan)  # type: ignore[arg-type]
    controller.fit_content()
    controller.scheduler.tick()
    controller.take_snapshot(is_automatic=True)
    controller.scheduler.tick()

    stats = controller.last_frame_stats
    logger.info(
        "[Replay] %s: %s, точок=%d, відкинуто=%d, зон=%d, ліній=%d, пропущено=%d",
        args.symbol,
        result.kind.value,
        len(result.points),
        result.dropped_count,
        stats.zones_drawn if stats else 0,
        stats.lines_drawn if stats else 0,
        stats.skipped if stats else 0,
    )
    if not written:
        logger.warning("[Replay] Знімок не створено")
        return 1
    logger.info("[Replay] PNG записано: %s", out_path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    return run(parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
