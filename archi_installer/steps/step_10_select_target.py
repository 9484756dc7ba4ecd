from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from ..lib.devices import descendant_names, list_disks, list_partitions
from ..lib.errors import InvalidTarget
from ..lib.selection import SecondaryRole, validate_selection
from ..lib.selector import choose

logger = logging.getLogger(__name__)


class SelectTargetStep:
    step_id = "10_select_target"

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        print_fn: Callable[[str], None] = print,
    ):
        self.input_fn = input_fn
        self.print_fn = print_fn

    def _prompt(self, cfg: Dict[str, Any]) -> None:
        logger.warning("The chosen device will be completely erased and all its data will be lost!")

        root = choose("Select root disk (number):", list_disks(), input_fn=self.input_fn, print_fn=self.print_fn)
        assert root is not None
        cfg["target_disk"] = root.path

        on_root = set(descendant_names(root))
        others = [p for p in list_partitions() if p.name not in on_root]
        for role in SecondaryRole:
            if cfg.get(role.config_key) or not others:
                continue
            dev = choose(
                f"Select {role.mount_dir} partition (number):",
                others,
                allow_none=True,
                input_fn=self.input_fn,
                print_fn=self.print_fn,
            )
            cfg[role.config_key] = dev.path if dev else None
            if dev is not None:
                others = [p for p in others if p.name != dev.name]

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.setdefault("config", {})

        if not cfg.get("target_disk"):
            if not cfg.get("interactive", True):
                raise InvalidTarget("config.target_disk is required in non-interactive mode", stage="select")
            self._prompt(cfg)

        selection = validate_selection(
            cfg.get("target_disk"),
            {role: cfg.get(role.config_key) for role in SecondaryRole},
        )

        cfg["target_disk"] = selection.root.path
        for role in SecondaryRole:
            dev = selection.secondary.get(role)
            cfg[role.config_key] = dev.path if dev else None
            if dev is not None:
                logger.info("%s volume -> %s (mounted on /%s)", role.value, dev.path, role.mount_dir)

        logger.info("Root device -> %s (%s)", selection.root.path, selection.root.model or "unknown model")
        return state
