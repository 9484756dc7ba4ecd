from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable

import yaml

from .lib.env import PATHS

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) if text.strip() else {}

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with sane defaults (without overriding user values)."""

    state.setdefault("version", "1")
    state.setdefault("config", {})
    state.setdefault("hardware", {})
    state.setdefault("execution", {})

    cfg = state["config"]
    cfg.setdefault("interactive", True)
    cfg.setdefault("dry_run", False)
    cfg.setdefault("target_disk", None)
    cfg.setdefault("storage_device", None)
    cfg.setdefault("windows_device", None)
    cfg.setdefault("target_root", PATHS.target_root)
    cfg.setdefault("esp_size_mib", 512)
    cfg.setdefault("root_label", "ROOT")
    # Pause after partprobe; new partition nodes may appear asynchronously.
    cfg.setdefault("settle_seconds", 2.0)
    cfg.setdefault("handoff_path", PATHS.handoff_default)
    cfg.setdefault("base_packages", ["base", "linux", "linux-firmware"])
    cfg.setdefault("chroot_command", None)
    cfg.setdefault("finalize_reboot", False)

    exe = state["execution"]
    exe.setdefault("current_step", None)
    exe.setdefault("completed_steps", [])
    exe.setdefault("errors", [])
    exe.setdefault("warnings", [])

    return state


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    exe = state.setdefault("execution", {})
    completed = exe.setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)


def unmark_steps(state: Dict[str, Any], step_ids: Iterable[str]) -> None:
    exe = state.setdefault("execution", {})
    stale = set(step_ids)
    dropped = [s for s in exe.get("completed_steps") or [] if s in stale]
    if dropped:
        logger.info("Steps to re-run: %s", ", ".join(dropped))
    exe["completed_steps"] = [s for s in exe.get("completed_steps") or [] if s not in stale]


def is_step_completed(state: Dict[str, Any], step_id: str) -> bool:
    exe = state.get("execution") or {}
    completed = exe.get("completed_steps") or []
    return step_id in completed
