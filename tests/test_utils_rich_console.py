"""Тести для спільного Rich Console.

Мета: гарантувати, що логери рушія та CLI пишуть в один і той самий Console,
щоб уникати артефактів у терміналі.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from utils.rich_console import attach_rich_handler, get_rich_console


def test_get_rich_console_is_singleton() -> None:
    c1 = get_rich_console()
    c2 = get_rich_console()
    assert c1 is c2


def test_attach_rich_handler_is_idempotent() -> None:
    logger = logging.getLogger("tests.rich_console.attach")
    logger.handlers.clear()
    try:
        attach_rich_handler(logger, level=logging.DEBUG)
        attach_rich_handler(logger)

        assert len(logger.handlers) == 1
        handler = logger.handlers[0]
        assert isinstance(handler, RichHandler)
        assert handler.console is get_rich_console()
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
    finally:
        logger.handlers.clear()
        logger.propagate = True


def test_attach_rich_handler_keeps_existing_handlers() -> None:
    logger = logging.getLogger("tests.rich_console.existing")
    logger.handlers.clear()
    existing = logging.NullHandler()
    logger.addHandler(existing)
    try:
        attach_rich_handler(logger)

        assert logger.handlers == [existing]
    finally:
        logger.handlers.clear()
