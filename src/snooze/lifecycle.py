"""Lifecycle controller: best-effort batch start/stop of the member set.

A failure on one container is logged and the batch carries on; only a
failed discovery aborts an operation. Every public operation holds one
``asyncio.Lock``, so no two of them interleave their engine calls.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from snooze.discovery import ContainerDiscovery
from snooze.errors import EngineError
from snooze.logger import logger
from snooze.state import ActivityState
from snooze.types import BatchResult

DEFAULT_STOP_GRACE_SECONDS = 10


class LifecycleController:
    def __init__(
        self,
        discovery: ContainerDiscovery,
        state: ActivityState,
        *,
        stop_grace_seconds: int = DEFAULT_STOP_GRACE_SECONDS,
    ) -> None:
        self.discovery = discovery
        self.state = state
        self.stop_grace_seconds = stop_grace_seconds
        self._lock = asyncio.Lock()

    @property
    def project(self) -> str:
        return self.discovery.project

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start_all(self) -> BatchResult:
        """Start every member that isn't running. Raises DiscoveryError."""
        async with self._lock:
            return await self._start_members()

    async def stop_all(self, *, idle_timeout: timedelta | None = None) -> bool:
        """Stop every running member, then mark the project down.

        With *idle_timeout*, idleness is re-checked once the lock is held and
        the stop is skipped (returning False) if activity arrived meanwhile.
        Raises DiscoveryError; in that case state is left untouched.
        """
        async with self._lock:
            if idle_timeout is not None:
                idle = self.state.idle_for()
                if idle <= idle_timeout:
                    logger.info(
                        "Activity arrived before sleep, keeping containers up",
                        project=self.project,
                        idle_seconds=round(idle.total_seconds()),
                    )
                    return False
            await self._stop_members()
            # Optimistic: individual stop failures are corrected by the next
            # monitor reconciliation.
            self.state.set_up(False)
            return True

    async def reconcile(self) -> tuple[bool, bool]:
        """Set the up flag from a fresh listing; return (was_up, all_running).

        The listing and the flag update happen under the batch lock.
        Raises DiscoveryError with state left untouched.
        """
        async with self._lock:
            members = await self.discovery.members()
            all_running = bool(members) and all(m.is_running for m in members)
            return self.state.set_up(all_running), all_running

    async def wake(self) -> bool:
        """Bring the project up unless it already is.

        Concurrent callers share one start batch. Returns True if this call
        issued the start. Raises DiscoveryError.
        """
        if self.state.is_up():
            return False
        async with self._lock:
            if self.state.is_up():
                return False
            result = await self._start_members()
            self.state.set_up(True)
            logger.info(
                "Project woken",
                project=self.project,
                started=len(result.acted),
                failed=len(result.failed),
            )
            return True

    # ------------------------------------------------------------------
    # Batches (caller holds the lock)
    # ------------------------------------------------------------------

    async def _start_members(self) -> BatchResult:
        members = await self.discovery.members()
        result = BatchResult(members=len(members))
        logger.info("Starting containers", project=self.project, count=len(members))

        for ref in members:
            if ref.is_running:
                continue
            logger.info("Starting container", container=ref.name, state=ref.state)
            try:
                await self.discovery.engine.start_container(ref.id)
            except EngineError as exc:
                logger.warning("Failed to start container", container=ref.name, err=str(exc))
                result.failed.append(ref.name)
            else:
                logger.info("Started container", container=ref.name)
                result.acted.append(ref.name)
        return result

    async def _stop_members(self) -> BatchResult:
        members = await self.discovery.members()
        result = BatchResult(members=len(members))
        logger.info("Stopping containers", project=self.project, count=len(members))

        for ref in members:
            if not ref.is_running:
                continue
            logger.info("Stopping container", container=ref.name)
            try:
                await self.discovery.engine.stop_container(ref.id, self.stop_grace_seconds)
            except EngineError as exc:
                logger.warning("Failed to stop container", container=ref.name, err=str(exc))
                result.failed.append(ref.name)
            else:
                logger.info("Stopped container", container=ref.name)
                result.acted.append(ref.name)
        return result
