from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.devices import BlockDevice
from ..lib.env import PATHS
from ..lib.mounts import build_mount_tasks, mount_all
from ..lib.selection import SecondaryRole
from ..lib.storage import layout_from_dict

logger = logging.getLogger(__name__)


class MountStep:
    step_id = "50_mount"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})

        if not exe.get("layout"):
            raise RuntimeError("Missing execution.layout; run partition step first")

        layout = layout_from_dict(exe["layout"])
        target_root = cfg.get("target_root") or PATHS.target_root
        secondary = {
            role: BlockDevice.from_path(cfg[role.config_key])
            for role in SecondaryRole
            if cfg.get(role.config_key)
        }

        tasks = build_mount_tasks(layout, target_root, secondary)
        report = mount_all(tasks, dry_run=bool(cfg.get("dry_run", False)))

        exe["mounts"] = {
            "target_root": tasks[0].target,
            "root_part": layout.root.path,
            "esp_part": layout.esp.path if layout.esp else None,
            "mounted": report.mounted,
        }
        # Only this run's mount warnings count; drop those of earlier attempts.
        warnings = [w for w in exe.get("warnings") or [] if w.get("step") != self.step_id]
        exe["warnings"] = warnings
        for w in report.warnings:
            warnings.append({"step": self.step_id, "kind": type(w).__name__, "device": w.device, "message": str(w)})

        logger.info("Mount hierarchy ready at %s", tasks[0].target)
        return state
