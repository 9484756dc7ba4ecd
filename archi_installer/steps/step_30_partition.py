from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.errors import InvalidTarget
from ..lib.firmware import FirmwareMode
from ..lib.preflight import check_tools
from ..lib.selection import SecondaryRole, validate_selection
from ..lib.storage import PartitionPlanner, layout_to_dict

logger = logging.getLogger(__name__)


def firmware_mode(state: Dict[str, Any]) -> FirmwareMode:
    value = (state.get("hardware") or {}).get("firmware_mode")
    if value not in {m.value for m in FirmwareMode}:
        raise RuntimeError(f"hardware.firmware_mode must be UEFI or BIOS, got: {value}")
    return FirmwareMode(value)


class PartitionStep:
    step_id = "30_partition"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.setdefault("config", {})
        exe = state.setdefault("execution", {})

        target_disk = cfg.get("target_disk")
        if not target_disk:
            raise InvalidTarget("config.target_disk is required for partitioning", stage="partition")

        mode = firmware_mode(state)
        dry_run = bool(cfg.get("dry_run", False))

        if dry_run:
            logger.info("Dry run: skipping tool pre-flight")
        else:
            check_tools(mode)

        # The disk is about to be wiped: check the selection again, as the
        # config may have changed since 10_select_target ran.
        selection = validate_selection(
            target_disk,
            {role: cfg.get(role.config_key) for role in SecondaryRole},
        )
        disk = selection.root

        esp_size_mib = int(cfg.get("esp_size_mib", 512))
        root_label = str(cfg.get("root_label", "ROOT"))
        planner = PartitionPlanner(
            disk,
            mode,
            esp_size_mib=esp_size_mib,
            root_label=root_label,
            settle_seconds=float(cfg.get("settle_seconds", 2.0)),
            dry_run=dry_run,
        )
        layout = planner.run()

        exe["layout"] = layout_to_dict(layout, esp_size_mib=esp_size_mib, root_label=root_label)
        logger.info("Partitioned %s (%s)", disk.path, mode.value)
        return state
