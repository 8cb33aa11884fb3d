"""Exceptions raised by the engine adapter and the lifecycle core."""

from __future__ import annotations


class EngineError(RuntimeError):
    """Raised when a ``docker`` CLI invocation fails."""

    def __init__(self, command: str, stderr: str = "", returncode: int | None = None) -> None:
        self.command = command
        self.stderr = stderr
        self.returncode = returncode
        msg = f"docker {command} failed"
        if returncode is not None:
            msg += f" (exit {returncode})"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)


class DiscoveryError(EngineError):
    """The member-set query failed. Transient: retry on the next cycle."""


class IdentityError(RuntimeError):
    """The project this process controls could not be determined."""
