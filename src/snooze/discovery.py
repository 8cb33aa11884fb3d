"""Container discovery: which containers of the project are under control.

Membership is recomputed on every call and never cached: the engine's view
can change out-of-band at any time.

Filtering by the enable label (absent counts as ""):

=============  ========  =========  ============
Mode           "true"    "false"    absent/other
=============  ========  =========  ============
allow-list     include   exclude    exclude
deny-list      include   exclude    include
=============  ========  =========  ============
"""

from __future__ import annotations

import os
import socket

from snooze.config import ProjectConfig
from snooze.errors import DiscoveryError, EngineError, IdentityError
from snooze.logger import logger
from snooze.types import ContainerEngine, ContainerRef, Identity

SHORT_ID_LEN = 12


def is_self(candidate_id: str, own_id: str) -> bool:
    """True if *candidate_id* is the controller's own container (full or short id)."""
    if not own_id or not candidate_id:
        return False
    if candidate_id == own_id:
        return True
    return (
        len(own_id) >= SHORT_ID_LEN
        and len(candidate_id) >= SHORT_ID_LEN
        and candidate_id[:SHORT_ID_LEN] == own_id[:SHORT_ID_LEN]
    )


def label_allows(label_value: str | None, allow_list_mode: bool) -> bool:
    if label_value == "true":
        return True
    if label_value == "false":
        return False
    return not allow_list_mode


def is_member(
    ref: ContainerRef,
    own_id: str,
    *,
    allow_list_mode: bool,
    enable_label: str = "sleep-proxy.enable",
) -> bool:
    if is_self(ref.id, own_id):
        return False
    return label_allows(ref.labels.get(enable_label), allow_list_mode)


class ContainerDiscovery:
    """Lists the member containers of one project."""

    def __init__(
        self,
        engine: ContainerEngine,
        identity: Identity,
        *,
        allow_list_mode: bool = False,
        enable_label: str = "sleep-proxy.enable",
        project_label: str = "com.docker.compose.project",
    ) -> None:
        self.engine = engine
        self.identity = identity
        self.allow_list_mode = allow_list_mode
        self.enable_label = enable_label
        self.project_label = project_label

    @property
    def project(self) -> str:
        return self.identity.project

    @property
    def mode(self) -> str:
        return "allow-list" if self.allow_list_mode else "deny-list"

    async def members(self) -> list[ContainerRef]:
        """Query the engine and return the filtered member set.

        Raises DiscoveryError if the engine query fails; callers must leave
        tracked state alone and retry later.
        """
        try:
            candidates = await self.engine.list_containers(f"{self.project_label}={self.project}")
        except EngineError as exc:
            raise DiscoveryError(exc.command, exc.stderr, exc.returncode) from exc

        members: list[ContainerRef] = []
        for ref in candidates:
            if is_self(ref.id, self.identity.container_id):
                logger.debug("Skipping own container", container=ref.name)
                continue
            label = ref.labels.get(self.enable_label)
            included = label_allows(label, self.allow_list_mode)
            logger.debug(
                "Membership decision",
                container=ref.name,
                mode=self.mode,
                label=label,
                included=included,
            )
            if included:
                members.append(ref)
                if self.allow_list_mode:
                    logger.info(
                        "Including container",
                        container=ref.name,
                        mode=self.mode,
                        label=label,
                    )
            elif not self.allow_list_mode:
                logger.info(
                    "Excluding container",
                    container=ref.name,
                    mode=self.mode,
                    label=label,
                )
        return members


def own_container_id(configured: str | None = None) -> str:
    """Configured id, else $HOSTNAME, else the socket hostname.

    Docker sets the hostname to the short container id by default.
    """
    if configured:
        return configured
    return os.environ.get("HOSTNAME") or socket.gethostname()


async def resolve_identity(engine: ContainerEngine, cfg: ProjectConfig) -> Identity:
    """Work out which project to control.

    Uses the configured project name when present; otherwise reads the
    compose project label from our own container.
    """
    container_id = own_container_id(cfg.container_id)
    if cfg.name:
        return Identity(project=cfg.name, container_id=container_id)

    try:
        labels = await engine.inspect_labels(container_id)
    except EngineError as exc:
        raise IdentityError(
            f"project name not configured and own container {container_id!r} "
            f"could not be inspected: {exc}"
        ) from exc

    project = labels.get(cfg.project_label, "").strip()
    if not project:
        raise IdentityError(
            f"project name not configured and own container {container_id!r} "
            f"has no {cfg.project_label!r} label"
        )
    logger.info("Resolved project from own container", project=project, container=container_id)
    return Identity(project=project, container_id=container_id)
