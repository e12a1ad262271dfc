"""Ядро спільних (SSOT) утиліт chart-engine.

Цей пакет містить лише доменно-нейтральні будівельні блоки:
- серіалізацію/приведення типів;
- форматтери для легенди/підказок/логів;
- контракти (схеми payload) між рушієм та зовнішніми колабораторами.

Логіка синхронізації графіка живе у `chart_core`.
"""

from __future__ import annotations

from . import formatters as formatters
from . import serialization as serialization

__all__ = [
    "formatters",
    "serialization",
]
