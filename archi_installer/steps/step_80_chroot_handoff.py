from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import chroot_cmd, stage_file
from ..lib.env import PATHS

logger = logging.getLogger(__name__)


class ChrootHandoffStep:
    step_id = "80_chroot_handoff"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        mounts = (state.get("execution") or {}).get("mounts") or {}
        target_root = mounts.get("target_root")
        if not target_root:
            raise RuntimeError("Missing execution.mounts.target_root; run mount step first")

        dry_run = bool(cfg.get("dry_run", False))
        handoff = cfg.get("handoff_path") or PATHS.handoff_default

        staged = stage_file(target_root, handoff, dry_run=dry_run)
        state.setdefault("execution", {}).setdefault("decisions", {})["handoff_in_target"] = "/" + staged.name

        command = cfg.get("chroot_command")
        if command:
            chroot_cmd(target_root, command, dry_run=dry_run)
        else:
            logger.info("No chroot_command configured; target configuration left to the operator")
        return state
