"""Планувальник кадрів поверх asyncio (аналог requestAnimationFrame).

Два класи колбеків:
- one-shot (`request_frame`) — виконуються на НАСТУПНОМУ кадрі один раз; ключ
  коалесцує серію запитів (burst resize-подій → одне застосування);
- loop (`add_loop_callback`) — виконуються на кожному кадрі, поки планувальник
  активний (перемальовка оверлею).

Життєвий цикл явний: `start()`/`stop()` прив'язані до dormancy-гейту графіка.
Без запущеного event loop кадри можна «крутити» вручну через `tick()`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from config.config import FRAME_INTERVAL_SEC

logger = logging.getLogger("chart_core.frame_scheduler")

FrameCallback = Callable[[], None]


class FrameScheduler:
    """Кооперативний frame-loop: один потік, жодних воркерів."""

    def __init__(
        self, *, interval_sec: float = FRAME_INTERVAL_SEC, name: str = "chart"
    ) -> None:
        self.interval_sec = max(0.0, float(interval_sec))
        self.name = name
        self.frames = 0
        self._active = False
        self._pending: dict[str, FrameCallback] = {}
        self._loop_callbacks: dict[str, FrameCallback] = {}
        self._task: asyncio.Task[None] | None = None

    # -- Реєстрація ----------------------------------------------------------

    def request_frame(self, key: str, callback: FrameCallback) -> None:
        """Планує one-shot колбек; повторний запит з тим самим ключем замінює попередній."""

        self._pending[key] = callback
        self._ensure_task()

    def cancel_frame(self, key: str) -> None:
        self._pending.pop(key, None)

    def has_pending(self, key: str) -> bool:
        return key in self._pending

    def add_loop_callback(self, key: str, callback: FrameCallback) -> None:
        self._loop_callbacks[key] = callback
        self._ensure_task()

    def remove_loop_callback(self, key: str) -> None:
        self._loop_callbacks.pop(key, None)

    # -- Життєвий цикл -------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Активує кадри; якщо є event loop — запускає фонову задачу.

        Активований поза event loop планувальник підхопить loop пізніше:
        задача створюється на першому `request_frame`/`add_loop_callback`
        або повторному `start()` всередині loop.
        """

        self._active = True
        if not self._ensure_task():
            logger.debug(
                "[FrameScheduler:%s] Немає event loop — кадри лише через tick()",
                self.name,
            )

    def _ensure_task(self) -> bool:
        """Створює фонову задачу, якщо планувальник активний і loop запущено."""

        if not self._active:
            return False
        if self.is_running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self._run(), name=f"frame-loop:{self.name}")
        return True

    def stop(self) -> None:
        """Деактивує кадри; one-shot колбеки чекають наступного start()."""

        self._active = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # -- Кадр ----------------------------------------------------------------

    def tick(self) -> int:
        """Виконує один кадр. Повертає кількість виконаних колбеків."""

        if not self._active:
            return 0
        pending, self._pending = self._pending, {}
        executed = 0
        for key, callback in pending.items():
            executed += self._run_guarded(key, callback)
        for key, callback in list(self._loop_callbacks.items()):
            executed += self._run_guarded(key, callback)
        self.frames += 1
        return executed

    def _run_guarded(self, key: str, callback: FrameCallback) -> int:
        try:
            callback()
        except Exception:
            # Один зламаний колбек не зупиняє render-цикл.
            logger.warning(
                "[FrameScheduler:%s] Колбек %s впав на кадрі %d",
                self.name,
                key,
                self.frames,
                exc_info=True,
            )
            return 0
        return 1

    async def _run(self) -> None:
        while self._active:
            self.tick()
            await asyncio.sleep(self.interval_sec)


__all__ = ("FrameCallback", "FrameScheduler")
