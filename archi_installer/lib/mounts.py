from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .command import CommandFailed, run_cmd
from .devices import BlockDevice, is_block_device
from .errors import OptionalMountFailed, RequiredMountFailed
from .selection import SecondaryRole
from .storage import DiskLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MountTask:
    source: BlockDevice
    target: str
    required: bool = True


@dataclass(frozen=True)
class MountResult:
    task: MountTask
    mounted: bool
    error: Optional[str] = None


@dataclass
class MountReport:
    results: List[MountResult] = field(default_factory=list)
    warnings: List[OptionalMountFailed] = field(default_factory=list)

    @property
    def mounted(self) -> List[str]:
        return [r.task.target for r in self.results if r.mounted]

    @property
    def ok(self) -> bool:
        return all(r.mounted for r in self.results if r.task.required)


def build_mount_tasks(
    layout: DiskLayout,
    target_root: str,
    secondary: Optional[Mapping[SecondaryRole, BlockDevice]] = None,
) -> List[MountTask]:
    """Root first, then /boot (UEFI), then the optional volumes."""

    root = os.path.normpath(target_root)
    tasks = [MountTask(source=layout.root, target=root, required=True)]
    if layout.esp is not None:
        tasks.append(MountTask(source=layout.esp, target=os.path.join(root, "boot"), required=True))
    for role in SecondaryRole:
        dev = (secondary or {}).get(role)
        if dev is not None:
            tasks.append(MountTask(source=dev, target=os.path.join(root, role.mount_dir), required=False))
    return tasks


def check_order(tasks: Sequence[MountTask]) -> None:
    if not tasks:
        raise ValueError("No mount tasks given")
    root = os.path.normpath(tasks[0].target)
    if not tasks[0].required:
        raise ValueError(f"First mount task ({root}) must be the required root mount")
    for t in tasks[1:]:
        target = os.path.normpath(t.target)
        if target == root or os.path.commonpath([root, target]) != root:
            raise ValueError(f"Mount target {target} is not below root {root}")


def unmount_all(paths: Sequence[str], *, dry_run: bool = False) -> None:
    """Best-effort unmount, deepest (last mounted) first."""

    for p in reversed(list(paths)):
        r = run_cmd(["umount", p], check=False, dry_run=dry_run)
        if not r.ok:
            logger.warning("Failed to unmount %s (%d); unmount it manually", p, r.returncode)


def _mount_one(task: MountTask, *, dry_run: bool) -> None:
    run_cmd(["mkdir", "-p", task.target], dry_run=dry_run)
    run_cmd(["mount", task.source.path, task.target], dry_run=dry_run)


def mount_all(tasks: Sequence[MountTask], *, dry_run: bool = False) -> MountReport:
    """Mount ``tasks`` in order.

    A required failure rolls back everything mounted so far and raises
    RequiredMountFailed. Optional failures end up in ``report.warnings``.
    """

    check_order(tasks)
    report = MountReport()

    for task in tasks:
        src = task.source.path

        if not task.required and not is_block_device(src):
            warning = OptionalMountFailed(f"'{src}' is not a block device; skipping {task.target}", stage="mount", device=src)
            logger.warning("%s", warning)
            report.warnings.append(warning)
            report.results.append(MountResult(task=task, mounted=False, error=str(warning)))
            continue

        logger.info("Mounting %s to %s", src, task.target)
        try:
            _mount_one(task, dry_run=dry_run)
        except CommandFailed as e:
            report.results.append(MountResult(task=task, mounted=False, error=str(e)))
            if task.required:
                logger.error("Failed to mount %s to %s; rolling back", src, task.target)
                unmount_all(report.mounted, dry_run=dry_run)
                raise RequiredMountFailed(f"Failed to mount {src} to {task.target}: {e}", stage="mount", device=src) from e
            warning = OptionalMountFailed(f"Failed to mount {src} to {task.target}: {e}", stage="mount", device=src)
            logger.warning("%s", warning)
            report.warnings.append(warning)
            continue

        report.results.append(MountResult(task=task, mounted=True))

    logger.info("Mounted: %s", ", ".join(report.mounted))
    return report
