from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .state_store import is_step_completed, mark_step_completed, unmark_steps

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent step."""

    step_id: str

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]


def _check_step_id(steps: Sequence[Step], step_id: Optional[str], flag: str) -> None:
    if step_id is None:
        return
    known = [s.step_id for s in steps]
    if step_id not in known:
        raise ValueError(f"Unknown step for {flag}: {step_id} (choose from {', '.join(known)})")


def run_pipeline(
    *,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
) -> PipelineResult:
    """Run steps in order with resume/idempotency semantics.

    Running a step again makes every later step stale: a fresh partition
    table must be formatted and mounted again, so their completion marks
    are dropped.
    """

    _check_step_id(steps, start_at, "--start-at")
    _check_step_id(steps, stop_after, "--stop-after")

    ran: List[str] = []
    skipped: List[str] = []

    started = start_at is None

    for pos, step in enumerate(steps):
        if not started:
            if step.step_id == start_at:
                started = True
            else:
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id

        if (not force) and is_step_completed(state, step.step_id):
            logger.info("Skipping step %s (already completed)", step.step_id)
            skipped.append(step.step_id)
        else:
            logger.info("Running step %s", step.step_id)
            state = step.run(state)
            mark_step_completed(state, step.step_id)
            unmark_steps(state, [s.step_id for s in steps[pos + 1:]])
            ran.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
