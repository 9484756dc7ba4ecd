"""The one document this installer leaves behind for the in-target stages.

Later stages (bootloader installation in particular) read the firmware mode
from here verbatim; they never re-detect it.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..state_store import load_state, save_state
from .firmware import FirmwareMode

logger = logging.getLogger(__name__)

FIRMWARE_KEY = "firmware_mode"


def record_firmware_mode(path: str, mode: FirmwareMode, *, dry_run: bool = False) -> None:
    """Write ``firmware_mode`` into the handoff file, replacing any prior value."""

    if dry_run:
        logger.info("Would record %s=%s in %s", FIRMWARE_KEY, mode.value, path)
        return

    doc = load_state(path)
    previous = doc.get(FIRMWARE_KEY)
    doc[FIRMWARE_KEY] = mode.value
    save_state(path, doc)

    if previous and previous != mode.value:
        logger.warning("Replaced %s=%s with %s in %s", FIRMWARE_KEY, previous, mode.value, path)
    else:
        logger.info("Recorded %s=%s in %s", FIRMWARE_KEY, mode.value, path)


def read_firmware_mode(path: str) -> Optional[FirmwareMode]:
    value = load_state(path).get(FIRMWARE_KEY)
    if value is None:
        return None
    return FirmwareMode(value)
