from __future__ import annotations

import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import Sequence, Union

from .command import CommandFailed, run_cmd
from .errors import InstallerError

logger = logging.getLogger(__name__)


def staged_path(target_root: str, source: str) -> Path:
    return Path(target_root) / os.path.basename(source)


def stage_file(target_root: str, source: str, *, dry_run: bool = False) -> Path:
    """Copy ``source`` into the root of the target, readable by root only."""

    dst = staged_path(target_root, source)
    if dry_run:
        logger.info("Would copy %s to %s", source, str(dst))
        return dst
    shutil.copyfile(source, dst)
    os.chmod(dst, 0o600)
    logger.info("Staged %s", str(dst))
    return dst


def unstage_file(target_root: str, source: str, *, dry_run: bool = False) -> None:
    dst = staged_path(target_root, source)
    if dry_run:
        logger.info("Would remove %s", str(dst))
        return
    if dst.exists():
        dst.unlink()
        logger.info("Removed %s", str(dst))


def chroot_cmd(target_root: str, argv: Union[str, Sequence[str]], *, dry_run: bool = False) -> None:
    """Run a command inside target root."""

    if isinstance(argv, str):
        argv = shlex.split(argv)
    try:
        run_cmd(["arch-chroot", target_root, *argv], dry_run=dry_run)
    except CommandFailed as e:
        raise InstallerError(str(e), stage="chroot") from e


def unmount_target(target_root: str, *, dry_run: bool = False) -> bool:
    run_cmd(["sync"], check=False, dry_run=dry_run)
    r = run_cmd(["umount", "-R", target_root], check=False, dry_run=dry_run)
    if not r.ok:
        logger.warning("Unmount of %s failed; you may need to unmount manually", target_root)
    return r.ok
