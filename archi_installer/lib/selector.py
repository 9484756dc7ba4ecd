from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .devices import BlockDevice
from .errors import InvalidTarget

logger = logging.getLogger(__name__)

NONE_CHOICE = "None"


def human_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ["KiB", "MiB", "GiB", "TiB"]:
        size /= 1024
        if size < 1024:
            break
    return f"{size:.1f} {unit}"


def describe(dev: BlockDevice) -> str:
    extra = dev.model or dev.mountpoint or ""
    return f"{dev.name} ({human_size(dev.size_bytes)}) {extra}".rstrip()


def choose(
    prompt: str,
    candidates: Sequence[BlockDevice],
    allow_none: bool = False,
    *,
    input_fn: Callable[[str], str] = input,
    print_fn: Callable[[str], None] = print,
) -> Optional[BlockDevice]:
    """Ask the operator to pick one of ``candidates`` from a numbered menu.

    Invalid answers re-prompt forever. Returns None only when ``allow_none``
    and the operator picked the trailing "None" entry.
    """

    if not candidates:
        raise InvalidTarget(f"No devices to choose from for: {prompt}", stage="select")

    options = [describe(d) for d in candidates]
    if allow_none:
        options.append(NONE_CHOICE)

    while True:
        for i, label in enumerate(options, start=1):
            print_fn(f"{i}) {label}")
        answer = input_fn(f"{prompt} ").strip()

        if answer.isdigit():
            idx = int(answer)
            if 1 <= idx <= len(candidates):
                return candidates[idx - 1]
            if allow_none and idx == len(options):
                return None

        logger.warning("Invalid selection %r. Please choose a valid number.", answer)
