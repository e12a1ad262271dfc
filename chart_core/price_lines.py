"""Price-lines для відкритих угод (ENTRY / SL / TP).

Лінії кешуються per-symbol у `TradeLinesCache`: кожне оновлення списку угод
видаляє всі попередні лінії і створює нові; swap символу прибирає їх з
провайдера (сам провайдер переживає swap).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from config.config import TRADE_LINE_COLORS
from core.contracts import ActiveTrade, PriceLineSpec
from core.serialization import safe_float

logger = logging.getLogger("chart_core.price_lines")


def build_trade_line_specs(trade: ActiveTrade) -> list[PriceLineSpec]:
    """Специфікації трьох ліній угоди; відсутні/невалідні ціни пропускаються."""

    entry_key = "entry_short" if trade.get("type") == "SHORT" else "entry_long"
    candidates = (
        ("ENTRY", trade.get("entryPrice"), TRADE_LINE_COLORS[entry_key]),
        ("SL", trade.get("sl"), TRADE_LINE_COLORS["sl"]),
        ("TP", trade.get("tp"), TRADE_LINE_COLORS["tp"]),
    )
    specs: list[PriceLineSpec] = []
    for title, raw_price, color in candidates:
        price = safe_float(raw_price, finite=True)
        if price is None:
            continue
        specs.append(
            {"price": price, "color": color, "title": title, "line_style": "dashed"}
        )
    return specs


@dataclass(slots=True)
class TradeLinesCache:
    """trade_id -> хендли price-lines, створені провайдером."""

    handles_by_trade: dict[str, list[Any]] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(v) for v in self.handles_by_trade.values())

    def replace_all(self, provider: Any, trades: Iterable[ActiveTrade]) -> None:
        """Видаляє всі поточні лінії та створює лінії для `trades`."""

        self.remove_all(provider)
        for idx, trade in enumerate(trades):
            trade_id = str(trade.get("id") or f"trade-{idx}")
            handles = [
                provider.create_price_line(spec) for spec in build_trade_line_specs(trade)
            ]
            self.handles_by_trade[trade_id] = handles

    def remove_all(self, provider: Any) -> None:
        for trade_id, handles in self.handles_by_trade.items():
            for handle in handles:
                try:
                    provider.remove_price_line(handle)
                except Exception:
                    logger.debug(
                        "[ChartPriceLines] Не вдалося прибрати лінію угоди %s",
                        trade_id,
                        exc_info=True,
                    )
        self.handles_by_trade.clear()


__all__ = ("build_trade_line_specs", "TradeLinesCache")
