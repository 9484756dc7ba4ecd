from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import unmount_target, unstage_file
from ..lib.command import run_cmd
from ..lib.env import PATHS

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        mounts = exe.get("mounts") or {}
        target_root = mounts.get("target_root")
        dry_run = bool(cfg.get("dry_run", False))

        logger.info("Finalize summary: %s", exe.get("decisions") or {})
        for w in exe.get("warnings") or []:
            logger.warning("Reminder: %s", w.get("message"))

        if not target_root:
            logger.info("Nothing mounted; nothing to clean up")
            return state

        unstage_file(target_root, cfg.get("handoff_path") or PATHS.handoff_default, dry_run=dry_run)
        if unmount_target(target_root, dry_run=dry_run):
            mounts["mounted"] = []
        else:
            exe.setdefault("warnings", []).append(
                {"step": self.step_id, "kind": "UnmountFailed", "device": target_root, "message": f"Unmount {target_root} manually"}
            )

        # Reboot is operational and must be explicitly enabled (--reboot).
        if bool(cfg.get("finalize_reboot", False)):
            run_cmd(["reboot"], dry_run=dry_run)
        else:
            logger.info("Reboot skipped. You can reboot manually when ready.")

        return state
