from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from .command import CommandFailed, run_cmd
from .errors import InstallerError, RequiredMountFailed

logger = logging.getLogger(__name__)


def add_nofail(fstab: str, mountpoints: Iterable[str]) -> str:
    """Add ``nofail`` to the options of entries mounted at ``mountpoints``.

    A missing secondary volume must not stop the installed system from booting.
    """

    wanted = set(mountpoints)
    out = []
    for line in fstab.splitlines():
        fields = line.split()
        if line.lstrip().startswith("#") or len(fields) < 4 or fields[1] not in wanted:
            out.append(line)
            continue
        opts = fields[3].split(",")
        if "nofail" not in opts:
            fields[3] = ",".join([*opts, "nofail"])
        out.append("\t".join(fields))
    return "\n".join(out) + ("\n" if fstab.endswith("\n") else "")


def install_base(
    *,
    target_root: str,
    packages: Sequence[str],
    optional_mountpoints: Iterable[str] = (),
    dry_run: bool = False,
) -> None:
    """pacstrap the base packages and write the target's fstab."""

    if not run_cmd(["mountpoint", "-q", target_root], check=False, dry_run=dry_run).ok:
        raise RequiredMountFailed(f"{target_root} is not mounted", stage="install_base", device=target_root)
    if not packages:
        raise InstallerError("config.base_packages is empty", stage="install_base")

    try:
        run_cmd(["pacstrap", target_root, "--noconfirm", "--needed", *packages], dry_run=dry_run)
        r = run_cmd(["genfstab", "-U", target_root], dry_run=dry_run)
    except CommandFailed as e:
        raise InstallerError(str(e), stage="install_base") from e

    fstab = add_nofail(r.stdout, optional_mountpoints)
    fstab_path = Path(target_root) / "etc/fstab"
    if dry_run:
        logger.info("Would write %s", str(fstab_path))
    else:
        fstab_path.parent.mkdir(parents=True, exist_ok=True)
        fstab_path.write_text(fstab, encoding="utf-8")
        logger.info("Wrote %s", str(fstab_path))
