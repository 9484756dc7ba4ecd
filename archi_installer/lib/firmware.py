from __future__ import annotations

import enum
from pathlib import Path

EFI_MARKER = "/sys/firmware/efi/efivars"


class FirmwareMode(str, enum.Enum):
    UEFI = "UEFI"
    BIOS = "BIOS"


def detect_firmware(marker: str = EFI_MARKER) -> FirmwareMode:
    """Detect firmware type for the *currently running* environment.

    The efivars directory only exists when the live system was booted through
    UEFI. Nothing else is consulted and the result cannot be overridden.
    """

    if Path(marker).is_dir():
        return FirmwareMode.UEFI
    return FirmwareMode.BIOS
