from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.firmware import detect_firmware

logger = logging.getLogger(__name__)


class DetectFirmwareStep:
    step_id = "20_detect_firmware"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        mode = detect_firmware()
        state.setdefault("hardware", {})["firmware_mode"] = mode.value
        logger.info("Detected firmware: %s", mode.value)
        return state
