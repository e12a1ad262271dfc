"""Спільний Rich Console та підключення RichHandler до логерів chart-engine.

Усі RichHandler-и пишуть в ОДИН Console (stderr), щоб логи рушія та CLI-вивід
replay-інструмента не перемішувались.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_RICH_CONSOLE: Console | None = None


def get_rich_console() -> Console:
    """Singleton Console(stderr=True)."""

    global _RICH_CONSOLE
    if _RICH_CONSOLE is None:
        _RICH_CONSOLE = Console(stderr=True, color_system="standard")
    return _RICH_CONSOLE


def attach_rich_handler(logger: logging.Logger, *, level: int = logging.INFO) -> logging.Logger:
    """Вішає RichHandler на `logger`, якщо обробників ще немає.

    `propagate=False`, щоб root-конфіг застосунку не дублював рядки.
    """

    if logger.handlers:
        return logger
    logger.setLevel(level)
    logger.addHandler(RichHandler(console=get_rich_console(), show_path=False))
    logger.propagate = False
    return logger


__all__ = ("get_rich_console", "attach_rich_handler")
