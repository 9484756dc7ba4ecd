from __future__ import annotations

import logging
import shutil
from typing import List

from .errors import ToolMissing
from .firmware import FirmwareMode

logger = logging.getLogger(__name__)

COMMON_TOOLS = ["wipefs", "partprobe", "lsblk", "mkfs.ext4", "mount", "umount", "mkdir"]

TOOLS_BY_MODE = {
    FirmwareMode.UEFI: ["sgdisk", "mkfs.fat"],
    FirmwareMode.BIOS: ["sfdisk"],
}


def required_tools(mode: FirmwareMode) -> List[str]:
    return [*COMMON_TOOLS, *TOOLS_BY_MODE[mode]]


def check_tools(mode: FirmwareMode) -> None:
    """Fail before the first destructive command if anything is missing."""

    missing = [t for t in required_tools(mode) if not shutil.which(t)]
    if missing:
        raise ToolMissing(missing, stage="preflight")
    logger.info("Pre-flight OK (%s): %s", mode.value, ", ".join(required_tools(mode)))
