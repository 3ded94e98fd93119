"""
Lifecycle base classes for the stream service.

- Component: start/stop bookkeeping, uptime and a default health report
- AlwaysOnComponent: a Component driven by one background loop task
  (the trade batcher's flush timer)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Component
# ============================================================================

class Component(ABC):
    """
    Something the application starts on boot and stops on shutdown.

    Subclasses call super().start() / super().stop() around their own work;
    health_check() is extended with component-specific details.
    """

    def __init__(self, name: str):
        """
        Args:
            name: Used in logs and health reports
        """
        self.name = name
        self._started = False
        self._started_at: Optional[datetime] = None
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{name}")

    async def start(self) -> None:
        if self._started:
            self._logger.warning("%s is already started", self.name)
            return

        self._logger.info("Starting %s", self.name)
        self._started = True
        self._started_at = datetime.utcnow()

    async def stop(self) -> None:
        if not self._started:
            self._logger.warning("%s was never started", self.name)
            return

        self._logger.info("Stopping %s", self.name)
        self._started = False

    async def health_check(self) -> dict:
        """
        Report component status.

        Returns:
            {"component", "status", "uptime_seconds", "details"} where status
            is "stopped" until start() and "healthy" after
        """
        return {
            "component": self.name,
            "status": "healthy" if self._started else "stopped",
            "uptime_seconds": self.uptime_seconds,
            "details": {},
        }

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def uptime_seconds(self) -> float:
        if not self._started or self._started_at is None:
            return 0.0
        return (datetime.utcnow() - self._started_at).total_seconds()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, started={self._started})"


# ============================================================================
# Always-On Component
# ============================================================================

class AlwaysOnComponent(Component):
    """
    Component whose work is a single loop task.

    _run_loop() must return once self._running goes False; stop() waits up to
    stop_timeout for that before cancelling the task.
    """

    def __init__(self, name: str, stop_timeout: float = 5.0):
        super().__init__(name)
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._stop_timeout = stop_timeout

    async def start(self) -> None:
        if self._running:
            self._logger.warning("%s loop is already running", self.name)
            return

        await super().start()
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=f"{self.name}_loop")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                self._logger.warning("%s loop did not exit in %.1fs, cancelling", self.name, self._stop_timeout)
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None

        await super().stop()

    @abstractmethod
    async def _run_loop(self) -> None:
        """Loop body; runs while self._running is True."""

    @property
    def is_running(self) -> bool:
        return self._running
