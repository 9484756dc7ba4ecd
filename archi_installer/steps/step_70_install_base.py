from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.base import install_base
from ..lib.selection import SecondaryRole

logger = logging.getLogger(__name__)


class InstallBaseStep:
    step_id = "70_install_base"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        mounts = (state.get("execution") or {}).get("mounts") or {}
        target_root = mounts.get("target_root")
        if not target_root:
            raise RuntimeError("Missing execution.mounts.target_root; run mount step first")

        packages = list(cfg.get("base_packages") or [])
        install_base(
            target_root=target_root,
            packages=packages,
            optional_mountpoints=[f"/{role.mount_dir}" for role in SecondaryRole],
            dry_run=bool(cfg.get("dry_run", False)),
        )
        logger.info("Base system installed into %s (%d packages)", target_root, len(packages))
        return state
