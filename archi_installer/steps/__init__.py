from .step_10_select_target import SelectTargetStep
from .step_20_detect_firmware import DetectFirmwareStep
from .step_30_partition import PartitionStep
from .step_40_format import FormatStep
from .step_50_mount import MountStep
from .step_60_record_firmware import RecordFirmwareStep
from .step_70_install_base import InstallBaseStep
from .step_80_chroot_handoff import ChrootHandoffStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "SelectTargetStep",
    "DetectFirmwareStep",
    "PartitionStep",
    "FormatStep",
    "MountStep",
    "RecordFirmwareStep",
    "InstallBaseStep",
    "ChrootHandoffStep",
    "FinalizeStep",
]
