from __future__ import annotations

import enum
import logging
from typing import Optional

from .command import CommandFailed, run_cmd
from .devices import BlockDevice
from .errors import DestructiveOpFailed
from .storage import DEFAULT_ROOT_LABEL, DiskLayout

logger = logging.getLogger(__name__)


class FilesystemKind(str, enum.Enum):
    FAT32 = "fat32"
    EXT4 = "ext4"


def mkfs_argv(partition: BlockDevice, kind: FilesystemKind, label: Optional[str] = None) -> list[str]:
    if kind is FilesystemKind.FAT32:
        argv = ["mkfs.fat", "-F32"]
        if label:
            argv += ["-n", label]
        return [*argv, partition.path]
    argv = ["mkfs.ext4", "-F"]
    if label:
        argv += ["-L", label]
    return [*argv, partition.path]


def format_partition(
    partition: BlockDevice,
    kind: FilesystemKind,
    label: Optional[str] = None,
    *,
    dry_run: bool = False,
) -> None:
    logger.info("Formatting %s (%s%s)", partition.path, kind.value, f", label={label}" if label else "")
    try:
        run_cmd(mkfs_argv(partition, kind, label), dry_run=dry_run)
    except CommandFailed as e:
        raise DestructiveOpFailed(f"mkfs ({kind.value}) failed on {partition.path}: {e}", stage="format", device=partition.path) from e


def format_layout(layout: DiskLayout, *, root_label: str = DEFAULT_ROOT_LABEL, dry_run: bool = False) -> None:
    """ESP as FAT32 (UEFI only), root as ext4; stops at the first failure."""

    if layout.esp is not None:
        format_partition(layout.esp, FilesystemKind.FAT32, dry_run=dry_run)
    format_partition(layout.root, FilesystemKind.EXT4, root_label, dry_run=dry_run)
