from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .command import CommandFailed, run_cmd
from .devices import BlockDevice, DeviceKind, list_partition_children
from .errors import DestructiveOpFailed, DiscoveryMismatch, InvalidTarget
from .firmware import FirmwareMode

logger = logging.getLogger(__name__)

DEFAULT_ESP_SIZE_MIB = 512
DEFAULT_ROOT_LABEL = "ROOT"
DEFAULT_SETTLE_SECONDS = 2.0


class PartitionTable(str, enum.Enum):
    GPT = "gpt"
    DOS = "dos"


class PartitionRole(str, enum.Enum):
    ESP = "esp"
    ROOT = "root"


@dataclass(frozen=True)
class PlanEntry:
    index: int
    role: PartitionRole
    start_hint: str  # "0" = first free sector after the previous entry
    size_mib: Optional[int]  # None = rest of the disk
    type_code: str
    label: str


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    mode: FirmwareMode
    table: PartitionTable
    entries: Tuple[PlanEntry, ...]


@dataclass(frozen=True)
class DiskLayout:
    disk: BlockDevice
    mode: FirmwareMode
    plan: PartitionPlan
    partitions: Tuple[BlockDevice, ...]

    def by_role(self, role: PartitionRole) -> Optional[BlockDevice]:
        for entry, part in zip(self.plan.entries, self.partitions):
            if entry.role is role:
                return part
        return None

    @property
    def esp(self) -> Optional[BlockDevice]:
        return self.by_role(PartitionRole.ESP)

    @property
    def root(self) -> BlockDevice:
        part = self.by_role(PartitionRole.ROOT)
        if part is None:
            raise RuntimeError(f"Layout of {self.disk.path} has no root partition")
        return part


def build_plan(
    disk: str,
    mode: FirmwareMode,
    *,
    esp_size_mib: int = DEFAULT_ESP_SIZE_MIB,
    root_label: str = DEFAULT_ROOT_LABEL,
) -> PartitionPlan:
    """Pure layout decision; no I/O.

    - UEFI: GPT, ESP (ef00) first, root (8300) takes the remainder.
    - BIOS: DOS label, a single Linux (83) partition spanning the disk.
    """

    if mode is FirmwareMode.UEFI:
        entries = (
            PlanEntry(1, PartitionRole.ESP, "0", esp_size_mib, "ef00", "EFI"),
            PlanEntry(2, PartitionRole.ROOT, "0", None, "8300", root_label),
        )
        return PartitionPlan(disk=disk, mode=mode, table=PartitionTable.GPT, entries=entries)

    entries = (PlanEntry(1, PartitionRole.ROOT, "0", None, "83", root_label),)
    return PartitionPlan(disk=disk, mode=mode, table=PartitionTable.DOS, entries=entries)


def sgdisk_new_args(entry: PlanEntry) -> list[str]:
    end = f"+{entry.size_mib}M" if entry.size_mib is not None else "0"
    n = entry.index
    return [
        f"--new={n}:{entry.start_hint}:{end}",
        f"--typecode={n}:{entry.type_code}",
        f"--change-name={n}:{entry.label}",
    ]


def sfdisk_script(plan: PartitionPlan) -> str:
    lines = ["label: dos"]
    for entry in plan.entries:
        if entry.size_mib is None:
            lines.append(f"type={entry.type_code}")
        else:
            lines.append(f"size={entry.size_mib}MiB, type={entry.type_code}")
    return "\n".join(lines) + "\n"


def layout_to_dict(layout: DiskLayout, *, esp_size_mib: int, root_label: str) -> Dict[str, Any]:
    esp = layout.esp
    return {
        "disk": layout.disk.name,
        "mode": layout.mode.value,
        "esp_size_mib": esp_size_mib,
        "root_label": root_label,
        "partitions": [p.name for p in layout.partitions],
        "esp_part": esp.path if esp else None,
        "root_part": layout.root.path,
    }


def layout_from_dict(data: Dict[str, Any]) -> DiskLayout:
    disk = BlockDevice(name=data["disk"], kind=DeviceKind.DISK)
    mode = FirmwareMode(data["mode"])
    plan = build_plan(
        disk.path,
        mode,
        esp_size_mib=int(data.get("esp_size_mib") or DEFAULT_ESP_SIZE_MIB),
        root_label=str(data.get("root_label") or DEFAULT_ROOT_LABEL),
    )
    parts = tuple(BlockDevice(name=n, kind=DeviceKind.PARTITION) for n in data["partitions"])
    return DiskLayout(disk=disk, mode=mode, plan=plan, partitions=parts)


class PlannerStage(enum.Enum):
    UNPARTITIONED = "unpartitioned"
    TABLE_CLEARED = "table_cleared"
    PLANNED = "planned"
    COMMITTED = "committed"
    REDISCOVERED = "rediscovered"


class PartitionPlanner:
    """Wipe, lay out and rediscover the partitions of one disk.

    Every run starts from a wiped device, so running it again on an already
    partitioned disk gives the same result (and loses that disk's data).
    """

    def __init__(
        self,
        disk: BlockDevice,
        mode: FirmwareMode,
        *,
        esp_size_mib: int = DEFAULT_ESP_SIZE_MIB,
        root_label: str = DEFAULT_ROOT_LABEL,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.disk = disk
        self.mode = mode
        self.esp_size_mib = esp_size_mib
        self.root_label = root_label
        self.settle_seconds = settle_seconds
        self.dry_run = dry_run
        self._sleep = sleep

        self.stage = PlannerStage.UNPARTITIONED
        self.plan: Optional[PartitionPlan] = None
        self.layout: Optional[DiskLayout] = None

    def _require(self, expected: PlannerStage) -> None:
        if self.stage is not expected:
            raise RuntimeError(f"Planner for {self.disk.path} is {self.stage.value}, expected {expected.value}")

    def _destructive(self, argv: list[str], what: str, *, input_text: Optional[str] = None) -> None:
        try:
            run_cmd(argv, input_text=input_text, dry_run=self.dry_run)
        except CommandFailed as e:
            raise DestructiveOpFailed(f"{what} failed on {self.disk.path}: {e}", stage="partition", device=self.disk.path) from e

    def clear(self) -> None:
        self._require(PlannerStage.UNPARTITIONED)
        logger.info("Wiping filesystem signatures and partition table on %s (this destroys data)", self.disk.path)
        self._destructive(["wipefs", "--all", "--force", self.disk.path], "wipefs")
        self.stage = PlannerStage.TABLE_CLEARED

    def make_plan(self) -> PartitionPlan:
        self._require(PlannerStage.TABLE_CLEARED)
        plan = build_plan(self.disk.path, self.mode, esp_size_mib=self.esp_size_mib, root_label=self.root_label)
        for entry in plan.entries:
            size = f"{entry.size_mib}MiB" if entry.size_mib is not None else "remainder"
            logger.info("Plan %s #%d %s %s type=%s", plan.table.value, entry.index, entry.label, size, entry.type_code)
        self.plan = plan
        self.stage = PlannerStage.PLANNED
        return plan

    def commit(self) -> None:
        self._require(PlannerStage.PLANNED)
        assert self.plan is not None

        plan = self.plan
        if plan.table is PartitionTable.GPT:
            self._destructive(["sgdisk", "--clear", self.disk.path], "sgdisk --clear")
            # In plan order: root takes the remainder, so the ESP must exist first.
            for entry in plan.entries:
                self._destructive(["sgdisk", *sgdisk_new_args(entry), self.disk.path], f"sgdisk partition {entry.index}")
        else:
            self._destructive(
                ["sfdisk", "--wipe", "always", "--wipe-partitions", "always", self.disk.path],
                "sfdisk",
                input_text=sfdisk_script(plan),
            )
        self.stage = PlannerStage.COMMITTED

    def rediscover(self) -> DiskLayout:
        self._require(PlannerStage.COMMITTED)
        assert self.plan is not None

        plan = self.plan
        r = run_cmd(["partprobe", self.disk.path], check=False, dry_run=self.dry_run)
        if not r.ok:
            logger.warning("partprobe %s returned %d; relying on settle delay", self.disk.path, r.returncode)
        self._sleep(self.settle_seconds)

        if self.dry_run:
            logger.info("Dry run: using placeholder partitions for %s", self.disk.path)
            found = [
                BlockDevice(name=f"{self.disk.name}-planned{e.index}", kind=DeviceKind.PARTITION)
                for e in plan.entries
            ]
        else:
            try:
                found = list_partition_children(self.disk)
            except InvalidTarget as e:
                raise DiscoveryMismatch(
                    f"Cannot list partitions of {self.disk.path} after writing the table: {e}",
                    stage="partition",
                    device=self.disk.path,
                ) from e

        if len(found) < len(plan.entries):
            raise DiscoveryMismatch(
                f"Expected {len(plan.entries)} partition(s) on {self.disk.path}, found {len(found)}",
                stage="partition",
                device=self.disk.path,
            )
        if len(found) > len(plan.entries):
            logger.warning("Found %d partitions on %s, using the first %d", len(found), self.disk.path, len(plan.entries))

        # TODO: also match children by type code; creation order is trusted as-is.
        parts = tuple(found[: len(plan.entries)])
        self.layout = DiskLayout(disk=self.disk, mode=self.mode, plan=plan, partitions=parts)
        self.stage = PlannerStage.REDISCOVERED
        logger.info("Discovered partitions: %s", ", ".join(p.path for p in parts))
        return self.layout

    def run(self) -> DiskLayout:
        self.clear()
        self.make_plan()
        self.commit()
        return self.rediscover()
