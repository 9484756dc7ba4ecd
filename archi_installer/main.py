from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from .lib.env import PATHS
from .lib.errors import InstallerError
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import (
    ChrootHandoffStep,
    DetectFirmwareStep,
    FinalizeStep,
    FormatStep,
    InstallBaseStep,
    MountStep,
    PartitionStep,
    RecordFirmwareStep,
    SelectTargetStep,
)

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = PATHS.state_default


def build_steps():
    return [
        SelectTargetStep(),
        DetectFirmwareStep(),
        PartitionStep(),
        FormatStep(),
        MountStep(),
        RecordFirmwareStep(),
        InstallBaseStep(),
        ChrootHandoffStep(),
        FinalizeStep(),
    ]


SELECTION_KEYS = ("target_disk", "storage_device", "windows_device")


def apply_overrides(state: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Command-line values win over the state file; ``None`` means "not given".

    A different device than the one recorded invalidates the whole run:
    selection is the first step, so every completion mark is dropped and the
    new devices go through validation before anything touches them.
    """

    cfg = state.setdefault("config", {})
    changed = []
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key in SELECTION_KEYS and cfg.get(key) != value:
            changed.append(key)
        cfg[key] = value

    exe = state.setdefault("execution", {})
    if changed and exe.get("completed_steps"):
        logger.warning("Device selection changed (%s); all steps will run again", ", ".join(changed))
        exe["completed_steps"] = []
    return state


def run(
    *,
    state_path: str = DEFAULT_STATE_PATH,
    log_path: str = DEFAULT_LOG_PATH,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    overrides: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
    steps=None,
) -> Dict[str, Any]:
    """Run the installer pipeline, persisting state for resume."""

    actual_log_path = configure_logging(log_path=log_path, level=level)

    state = ensure_defaults(apply_overrides(load_state(state_path), overrides))
    state.setdefault("execution", {}).setdefault("paths", {})["log_path_requested"] = log_path
    state.setdefault("execution", {}).setdefault("paths", {})["log_path_actual"] = actual_log_path

    if steps is None:
        steps = build_steps()

    try:
        result = run_pipeline(
            state=state,
            steps=steps,
            start_at=start_at,
            stop_after=stop_after,
            force=force,
        )
        state = result.state
        state.setdefault("execution", {}).setdefault("summary", {})["ran_steps"] = result.ran_steps
        state.setdefault("execution", {}).setdefault("summary", {})["skipped_steps"] = result.skipped_steps
        return state
    except Exception as e:
        logger.exception("Installer failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
                "kind": type(e).__name__,
            }
        )
        raise
    finally:
        save_state(state_path, state)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="archi-installer")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to installer state (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_partition)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    p.add_argument("--disk", default=None, help="Root disk to erase and install to (e.g. /dev/sda)")
    p.add_argument("--storage", default=None, help="Optional partition or volume mounted on /Storage")
    p.add_argument("--windows", default=None, help="Optional partition or volume mounted on /Windows")
    p.add_argument("--target-root", default=None, help=f"Where the new system is mounted (default {PATHS.target_root})")
    p.add_argument("--dry-run", action="store_true", help="Log mutating commands without running them")
    p.add_argument("--non-interactive", action="store_true", help="Never prompt; --disk (or config.target_disk) is required")
    p.add_argument("--reboot", action="store_true", help="Reboot once everything is unmounted")
    p.add_argument("--debug", action="store_true", help="Log command output")

    args = p.parse_args(argv)

    overrides = {
        "target_disk": args.disk,
        "storage_device": args.storage,
        "windows_device": args.windows,
        "target_root": args.target_root,
        "dry_run": True if args.dry_run else None,
        "interactive": False if args.non_interactive else None,
        "finalize_reboot": True if args.reboot else None,
    }

    try:
        run(
            state_path=args.state,
            log_path=args.log,
            start_at=args.start_at,
            stop_after=args.stop_after,
            force=args.force,
            overrides=overrides,
            level=logging.DEBUG if args.debug else logging.INFO,
        )
    except InstallerError as e:
        logger.error("Aborted: %s (see %s)", e, args.log)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception:
        return 1
    return 0
