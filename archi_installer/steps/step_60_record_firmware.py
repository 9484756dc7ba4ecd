from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.env import PATHS
from ..lib.handoff import record_firmware_mode
from .step_30_partition import firmware_mode

logger = logging.getLogger(__name__)


class RecordFirmwareStep:
    step_id = "60_record_firmware"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        mode = firmware_mode(state)
        path = cfg.get("handoff_path") or PATHS.handoff_default

        record_firmware_mode(path, mode, dry_run=bool(cfg.get("dry_run", False)))

        state.setdefault("execution", {}).setdefault("decisions", {})["firmware_mode"] = mode.value
        return state
