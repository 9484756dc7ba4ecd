"""Error taxonomy for the disk preparation core.

Every fatal kind aborts the pipeline; the process exit status is taken from
``exit_code`` so the failing stage can be told apart from the outside.
``OptionalMountFailed`` is never raised by the pipeline: it is collected as a
warning and the run continues with a reduced mount set.
"""

from __future__ import annotations

from typing import Optional


class InstallerError(RuntimeError):
    """Base class for installer failures."""

    exit_code = 1
    fatal = True

    def __init__(self, message: str, *, stage: Optional[str] = None, device: Optional[str] = None):
        self.stage = stage
        self.device = device
        parts = []
        if stage:
            parts.append(f"[{stage}]")
        parts.append(message)
        super().__init__(" ".join(parts))


class InvalidTarget(InstallerError):
    """Selection is not a usable block device, or a required value is unset."""

    exit_code = 2


class ToolMissing(InstallerError):
    """A required partitioning/formatting/mount utility is not installed."""

    exit_code = 3

    def __init__(self, tools, *, stage: Optional[str] = None):
        self.tools = list(tools)
        super().__init__(
            f"Required command(s) not found: {', '.join(self.tools)}. Install them and retry.",
            stage=stage,
        )


class CatalogUnavailable(ToolMissing):
    """Device listing is impossible (as opposed to: there are no devices)."""


class DestructiveOpFailed(InstallerError):
    """wipe/partition/format returned failure; nothing further was attempted."""

    exit_code = 4


class DiscoveryMismatch(InstallerError):
    """Fewer partitions were found after commit than the plan created."""

    exit_code = 5


class RequiredMountFailed(InstallerError):
    """Root or boot could not be mounted."""

    exit_code = 6


class OptionalMountFailed(InstallerError):
    """A secondary volume could not be mounted."""

    fatal = False
