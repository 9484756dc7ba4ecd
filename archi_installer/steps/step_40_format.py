from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.filesystem import format_layout
from ..lib.storage import layout_from_dict

logger = logging.getLogger(__name__)


class FormatStep:
    step_id = "40_format"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.get("execution") or {}

        if not exe.get("layout"):
            raise RuntimeError("Missing execution.layout; run partition step first")

        layout = layout_from_dict(exe["layout"])
        format_layout(
            layout,
            root_label=str(cfg.get("root_label", "ROOT")),
            dry_run=bool(cfg.get("dry_run", False)),
        )
        logger.info("Formatted %s", ", ".join(p.path for p in layout.partitions))
        return state
