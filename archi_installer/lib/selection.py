from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Union

from .devices import BlockDevice, DeviceKind, descendant_names, is_block_device, lookup
from .errors import InvalidTarget

logger = logging.getLogger(__name__)


class SecondaryRole(str, enum.Enum):
    """Optional extra volumes mounted below the new root."""

    STORAGE = "storage"
    WINDOWS = "windows"

    @property
    def mount_dir(self) -> str:
        return _MOUNT_DIRS[self]

    @property
    def config_key(self) -> str:
        return f"{self.value}_device"

    @classmethod
    def parse(cls, key: Union[str, "SecondaryRole"]) -> "SecondaryRole":
        if isinstance(key, SecondaryRole):
            return key
        normalized = str(key).lower()
        if normalized.endswith("_device"):
            normalized = normalized[: -len("_device")]
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidTarget(f"Unknown secondary volume role: {key!r}", stage="select") from None


_MOUNT_DIRS = {
    SecondaryRole.STORAGE: "Storage",
    SecondaryRole.WINDOWS: "Windows",
}


@dataclass(frozen=True)
class TargetSelection:
    root: BlockDevice
    secondary: Dict[SecondaryRole, BlockDevice] = field(default_factory=dict)


def _is_unset(path: Optional[str]) -> bool:
    return path is None or str(path).strip() in {"", "None", "none"}


def validate_selection(
    root_path: Optional[str],
    secondary_paths: Optional[Mapping[Union[str, SecondaryRole], Optional[str]]] = None,
) -> TargetSelection:
    """Check the operator's choices before anything destructive happens.

    A secondary path that is not a block device right now is kept as-is;
    mounting it later degrades to a warning rather than failing the install.
    """

    if _is_unset(root_path):
        raise InvalidTarget("Root device not set", stage="select")
    root_path = str(root_path)
    if not is_block_device(root_path):
        raise InvalidTarget(f"Root device '{root_path}' is not a block device", stage="select", device=root_path)

    root = lookup(root_path)
    if root.kind is not DeviceKind.DISK:
        raise InvalidTarget(f"Root device '{root_path}' must be a whole disk, not a {root.kind.value}", stage="select", device=root_path)
    if root.read_only:
        raise InvalidTarget(f"Root device '{root_path}' is read-only", stage="select", device=root_path)

    below_root = set(descendant_names(root))
    secondary: Dict[SecondaryRole, BlockDevice] = {}
    seen: Dict[str, SecondaryRole] = {}

    for key, path in (secondary_paths or {}).items():
        role = SecondaryRole.parse(key)
        if _is_unset(path):
            continue
        path = str(path)

        if not is_block_device(path):
            logger.warning("%s device '%s' is not a block device; its mount will be skipped", role.value, path)
            secondary[role] = BlockDevice.from_path(path)
            continue

        # Any block device will do as a secondary; mount it by the path given.
        dev = replace(lookup(path, any_type=True), dev_path=path)
        if dev.name == root.name or dev.name in below_root:
            raise InvalidTarget(f"{role.value} device '{path}' lives on the root disk {root.path}", stage="select", device=path)
        if root.name in descendant_names(dev):
            raise InvalidTarget(f"{role.value} device '{path}' contains the root disk {root.path}", stage="select", device=path)
        if dev.name in seen:
            raise InvalidTarget(f"'{path}' selected for both {seen[dev.name].value} and {role.value}", stage="select", device=path)

        seen[dev.name] = role
        secondary[role] = dev

    return TargetSelection(root=root, secondary=secondary)
