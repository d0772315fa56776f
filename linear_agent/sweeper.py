"""Periodic background sweeps over the in-memory stores."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class PeriodicSweep:
    """Run `sweep` every `interval_seconds` until stopped."""

    name: str
    interval_seconds: float
    sweep: Callable[[], object]
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("Sweep %s failed", self.name)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"sweep:{self.name}")
        logger.debug("Started sweep %s every %ss", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


class SweepScheduler:
    """Starts and stops a group of sweeps as a unit."""

    def __init__(self, sweeps: list[PeriodicSweep] | None = None) -> None:
        self.sweeps = list(sweeps or [])

    def add(self, sweep: PeriodicSweep) -> None:
        self.sweeps.append(sweep)

    def start(self) -> None:
        for sweep in self.sweeps:
            sweep.start()

    async def stop(self) -> None:
        await asyncio.gather(*(sweep.stop() for sweep in self.sweeps))
        logger.info("Stopped %d sweeps", len(self.sweeps))
