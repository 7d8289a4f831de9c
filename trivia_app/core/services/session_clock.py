"""Asyncio driver that feeds one-second ticks to a session engine."""

from __future__ import annotations

import asyncio
import logging

from trivia_app.constants.quiz_constants import TICK_INTERVAL_SECONDS
from trivia_app.core.services.session_engine import SessionEngine

logger = logging.getLogger(__name__)


class SessionClock:
    """Ticks the engine only while it reports a running timer.

    A tick whose sleep spans a timer change (answer, advance, cancel) is
    dropped, so a new question never inherits time from the previous one.
    """

    def __init__(self, engine: SessionEngine, interval: float = TICK_INTERVAL_SECONDS) -> None:
        self._engine = engine
        self._interval = interval
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        engine.add_listener(self._on_engine_change)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"session-clock-{self._engine.session_id}")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None

    def _on_engine_change(self, engine: SessionEngine) -> None:
        self._wake.set()

    async def _run(self) -> None:
        engine = self._engine
        while not engine.is_finished:
            if engine.active_timer is None:
                self._wake.clear()
                await self._wake.wait()
                continue
            generation = engine.timer_generation
            await asyncio.sleep(self._interval)
            if engine.timer_generation != generation:
                continue
            engine.tick()
        logger.debug("Clock for session %s stopped", engine.session_id)
