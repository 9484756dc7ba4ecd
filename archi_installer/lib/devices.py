from __future__ import annotations

import enum
import json
import logging
import os
import shutil
import stat
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .command import CommandFailed, run_cmd
from .errors import CatalogUnavailable, InvalidTarget

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = "NAME,PATH,SIZE,MODEL,TYPE,MOUNTPOINT,RO"


class DeviceKind(str, enum.Enum):
    DISK = "disk"
    PARTITION = "partition"
    # lvm, crypt, raid, loop...: only ever used as a secondary volume
    VOLUME = "volume"


@dataclass(frozen=True)
class BlockDevice:
    name: str
    size_bytes: int = 0
    model: str = ""
    kind: DeviceKind = DeviceKind.DISK
    mountpoint: Optional[str] = None
    read_only: bool = False
    dev_path: Optional[str] = None

    @property
    def path(self) -> str:
        # dm nodes live under /dev/mapper, not /dev/<name>
        return self.dev_path or f"/dev/{self.name}"

    @classmethod
    def from_path(cls, path: str, kind: DeviceKind = DeviceKind.PARTITION) -> "BlockDevice":
        """Placeholder record for a path that has not been (or cannot be) looked up."""
        name = path[len("/dev/"):] if path.startswith("/dev/") else path
        return cls(name=name, kind=kind, dev_path=path if path.startswith("/") else None)


_KIND_BY_LSBLK_TYPE = {
    "disk": DeviceKind.DISK,
    "part": DeviceKind.PARTITION,
}


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def _as_int(value: Any) -> int:
    # lsblk < 2.33 emits every JSON value as a string
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() in {"1", "true"}
    return bool(value)


def _parse_node(node: Dict[str, Any], any_type: bool = False) -> Optional[BlockDevice]:
    kind = _KIND_BY_LSBLK_TYPE.get(str(node.get("type") or ""))
    if kind is None and any_type:
        kind = DeviceKind.VOLUME
    if kind is None:
        return None
    return BlockDevice(
        name=str(node["name"]),
        size_bytes=_as_int(node.get("size")),
        model=str(node.get("model") or "").strip(),
        kind=kind,
        mountpoint=node.get("mountpoint") or None,
        read_only=_as_bool(node.get("ro")),
        dev_path=node.get("path") or None,
    )


def _lsblk(extra: List[str]) -> List[Dict[str, Any]]:
    if not shutil.which("lsblk"):
        raise CatalogUnavailable(["lsblk"], stage="catalog")

    r = run_cmd(["lsblk", "--json", "--bytes", "--output", LSBLK_COLUMNS, *extra])
    data = json.loads(r.stdout or "{}")
    return list(data.get("blockdevices") or [])


def list_disks() -> List[BlockDevice]:
    """Whole-disk devices, in the order the kernel reports them."""

    disks = []
    for node in _lsblk(["--nodeps"]):
        dev = _parse_node(node)
        if dev is not None and dev.kind is DeviceKind.DISK:
            disks.append(dev)
    return disks


def list_partition_children(parent: BlockDevice) -> List[BlockDevice]:
    """Partitions of ``parent`` as the kernel currently sees them.

    Children come from lsblk's own tree, so names like ``nvme0n1p1`` or
    ``mmcblk0p2`` need no special handling.
    """

    try:
        nodes = _lsblk([parent.path])
    except CommandFailed as e:
        raise InvalidTarget(f"Cannot list partitions of {parent.path}: {e}", stage="catalog", device=parent.path) from e

    children: List[BlockDevice] = []
    for node in nodes:
        for child in node.get("children") or []:
            dev = _parse_node(child)
            if dev is not None and dev.kind is DeviceKind.PARTITION:
                children.append(dev)
    return children


def descendant_names(dev: BlockDevice) -> List[str]:
    """Names of everything stacked below ``dev`` (partitions, crypt, lvm...)."""

    try:
        nodes = _lsblk([dev.path])
    except CommandFailed as e:
        raise InvalidTarget(f"Cannot inspect {dev.path}: {e}", stage="catalog", device=dev.path) from e

    names: List[str] = []
    stack = [c for n in nodes for c in (n.get("children") or [])]
    while stack:
        node = stack.pop(0)
        names.append(str(node.get("name")))
        stack.extend(node.get("children") or [])
    return names


def list_partitions() -> List[BlockDevice]:
    """Every partition of every disk."""

    parts: List[BlockDevice] = []
    for node in _lsblk([]):
        if node.get("type") != "disk":
            continue
        for child in node.get("children") or []:
            dev = _parse_node(child)
            if dev is not None and dev.kind is DeviceKind.PARTITION:
                parts.append(dev)
    return parts


def lookup(path: str, any_type: bool = False) -> BlockDevice:
    """Resolve a single device node into a record.

    With ``any_type`` stacked devices (lvm, crypt, raid, loop) resolve as
    ``DeviceKind.VOLUME`` instead of being refused.
    """

    try:
        nodes = _lsblk(["--nodeps", path])
    except CommandFailed as e:
        raise InvalidTarget(f"{path} is not a known block device", stage="catalog", device=path) from e

    for node in nodes:
        dev = _parse_node(node, any_type=any_type)
        if dev is not None:
            return dev
    raise InvalidTarget(f"{path} is neither a disk nor a partition", stage="catalog", device=path)
