"""Docker engine adapter: async wrappers around the ``docker`` CLI.

All public methods are async so they don't block the event loop. The
underlying subprocess calls run in a thread via ``asyncio.to_thread``.
Failures surface as :class:`~snooze.errors.EngineError`; this module never
decides what a failure means for tracked state.
"""

from __future__ import annotations

import asyncio
import json
import shutil
import subprocess
import time
from typing import Any

from snooze.errors import EngineError
from snooze.logger import logger
from snooze.types import ContainerRef


def _parse_inspect(entry: dict[str, Any]) -> ContainerRef:
    state = entry.get("State") or {}
    config = entry.get("Config") or {}
    return ContainerRef(
        id=entry.get("Id", ""),
        name=entry.get("Name", "").lstrip("/"),
        state=state.get("Status", "unknown"),
        labels=dict(config.get("Labels") or {}),
    )


class DockerEngine:
    """Talks to the Docker daemon through the ``docker`` CLI."""

    def __init__(
        self,
        *,
        cli: str = "docker",
        host: str | None = None,
        timeout: int = 30,
    ) -> None:
        self.cli = cli
        self.host = host
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.cli) is not None

    # ------------------------------------------------------------------

    def _run_sync(self, *args: str, timeout: int) -> subprocess.CompletedProcess[str]:
        """Run a ``docker`` CLI command (blocking: internal only)."""
        cmd = [self.cli]
        if self.host:
            cmd += ["--host", self.host]
        cmd += args
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise EngineError(args[0], f"timed out after {timeout}s") from exc
        except OSError as exc:
            raise EngineError(args[0], str(exc)) from exc

    async def _run(
        self,
        *args: str,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a ``docker`` CLI command without blocking the event loop."""
        start = time.monotonic()
        result = await asyncio.to_thread(self._run_sync, *args, timeout=timeout or self.timeout)
        elapsed_ms = (time.monotonic() - start) * 1000
        if elapsed_ms > 2000:
            logger.warning("Slow docker command", command=args[0], elapsed_ms=round(elapsed_ms))
        return result

    async def _run_checked(self, *args: str, timeout: int | None = None) -> str:
        result = await self._run(*args, timeout=timeout)
        if result.returncode != 0:
            raise EngineError(args[0], result.stderr.strip(), result.returncode)
        return result.stdout

    # ------------------------------------------------------------------

    async def list_containers(self, label_filter: str) -> list[ContainerRef]:
        """Return every container (any state) carrying *label_filter* (``key=value``)."""
        out = await self._run_checked(
            "ps", "--all", "--no-trunc", "--quiet", "--filter", f"label={label_filter}"
        )
        ids = [line.strip() for line in out.splitlines() if line.strip()]
        if not ids:
            return []

        # A container removed between ps and inspect makes inspect exit non-zero
        # but still print the rest, so only the JSON decides success.
        result = await self._run("inspect", *ids)
        try:
            entries = json.loads(result.stdout or "null")
        except json.JSONDecodeError as exc:
            raise EngineError("inspect", f"unparsable output: {exc}", result.returncode) from exc
        if not isinstance(entries, list):
            raise EngineError("inspect", result.stderr.strip(), result.returncode)
        if result.returncode != 0:
            logger.debug(
                "Some containers vanished during listing",
                requested=len(ids),
                found=len(entries),
            )
        return [_parse_inspect(e) for e in entries]

    async def start_container(self, container_id: str) -> None:
        await self._run_checked("start", container_id)

    async def stop_container(self, container_id: str, grace_seconds: int) -> None:
        """Stop with SIGTERM, then SIGKILL once *grace_seconds* have passed."""
        await self._run_checked(
            "stop",
            "--time",
            str(grace_seconds),
            container_id,
            timeout=self.timeout + grace_seconds,
        )

    async def inspect_labels(self, container_id: str) -> dict[str, str]:
        out = await self._run_checked(
            "inspect", "--type", "container", "--format", "{{json .Config.Labels}}", container_id
        )
        try:
            labels = json.loads(out.strip() or "null")
        except json.JSONDecodeError as exc:
            raise EngineError("inspect", f"unparsable labels: {exc}") from exc
        return dict(labels or {})
