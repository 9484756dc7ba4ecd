from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    target_root: str = "/mnt"
    state_default: str = "/var/lib/archi-installer/state.json"
    log_default: str = "/var/log/archi-installer.log"
    handoff_default: str = "/var/lib/archi-installer/handoff.yaml"


PATHS = Paths()
