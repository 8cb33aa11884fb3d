"""Activity monitor: periodic reconciliation and the idle-sleep decision.

Every period the monitor re-derives whether the whole project is running,
corrects the tracked flag if it drifted (out-of-band starts, crashes,
manual stops) and puts the project to sleep once it has been idle longer
than the configured timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
from datetime import timedelta

from snooze.discovery import ContainerDiscovery
from snooze.errors import DiscoveryError
from snooze.lifecycle import LifecycleController
from snooze.logger import logger
from snooze.state import ActivityState

DEFAULT_INTERVAL = 10.0


class CycleOutcome(enum.Enum):
    SKIPPED = "skipped"  # discovery failed, nothing changed
    UNCHANGED = "unchanged"
    WOKE = "woke"  # found running out-of-band
    WENT_DOWN = "went_down"  # found not running
    SLEPT = "slept"  # idle timeout fired


class ActivityMonitor:
    def __init__(
        self,
        discovery: ContainerDiscovery,
        state: ActivityState,
        controller: LifecycleController,
        *,
        sleep_timeout: timedelta,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.discovery = discovery
        self.state = state
        self.controller = controller
        self.sleep_timeout = sleep_timeout
        self.interval = interval

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run cycles every ``interval`` seconds until *stop_event* is set."""
        logger.info(
            "Activity monitor started",
            project=self.discovery.project,
            interval=self.interval,
            sleep_timeout=str(self.sleep_timeout),
        )
        while not stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            if stop_event.is_set():
                break
            await self.run_cycle()
        logger.info("Activity monitor stopped", project=self.discovery.project)

    async def run_cycle(self) -> CycleOutcome:
        try:
            was_up, all_running = await self.controller.reconcile()
        except DiscoveryError as exc:
            logger.warning("Failed to get project containers", err=str(exc))
            return CycleOutcome.SKIPPED

        outcome = CycleOutcome.UNCHANGED
        if all_running and not was_up:
            logger.info("Detected containers are now running", project=self.discovery.project)
            outcome = CycleOutcome.WOKE
        elif not all_running and was_up:
            logger.info(
                "Detected containers are no longer running", project=self.discovery.project
            )
            outcome = CycleOutcome.WENT_DOWN

        if self.state.is_up():
            idle = self.state.idle_for()
            if idle > self.sleep_timeout:
                logger.info(
                    "No activity, putting containers to sleep",
                    idle=str(timedelta(seconds=round(idle.total_seconds()))),
                    threshold=str(self.sleep_timeout),
                )
                if await self._sleep():
                    outcome = CycleOutcome.SLEPT
        return outcome

    async def _sleep(self) -> bool:
        try:
            stopped = await self.controller.stop_all(idle_timeout=self.sleep_timeout)
        except DiscoveryError as exc:
            logger.warning("Failed to stop containers", err=str(exc))
            return False
        if stopped:
            self.state.set_up(False)
            logger.info("Containers stopped", project=self.discovery.project)
        return stopped
