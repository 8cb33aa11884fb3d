"""Data models for snooze."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

RUNNING = "running"


@dataclass(frozen=True)
class ContainerRef:
    """One container as reported by the engine. Never persisted."""

    id: str
    name: str  # without the leading "/"
    state: str  # "running", "exited", "created", "paused", ...
    labels: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.state == RUNNING

    @property
    def short_id(self) -> str:
        return self.id[:12]


@dataclass(frozen=True)
class Identity:
    """Which project this process controls, and which container it runs in."""

    project: str
    container_id: str  # may be empty when running outside a container


@dataclass
class BatchResult:
    """Outcome of a start/stop batch across the member set."""

    members: int = 0
    acted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@runtime_checkable
class ContainerEngine(Protocol):
    """The subset of a container engine the lifecycle core talks to."""

    async def list_containers(self, label_filter: str) -> list[ContainerRef]: ...

    async def start_container(self, container_id: str) -> None: ...

    async def stop_container(self, container_id: str, grace_seconds: int) -> None: ...

    async def inspect_labels(self, container_id: str) -> dict[str, str]: ...
