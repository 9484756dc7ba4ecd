from __future__ import annotations

import logging
from pathlib import Path

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "archi-installer.log"

_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)


def _open_log(log_path: str) -> tuple[logging.Handler, str]:
    # The live ISO may refuse /var/log; fall back to the working directory.
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(log_path: str = DEFAULT_LOG_PATH, level: int = logging.INFO) -> str:
    """Send the installer's log to a file and the console.

    The file always keeps DEBUG records, so the stdout/stderr of every wipe,
    partition, mkfs and mount command is on disk after a failure. ``level``
    only sets what the operator sees on the console (``--debug``).

    Calling it again only changes the console level. Returns the path of the
    log file actually written.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    console = getattr(root, "_archi_console", None)
    if console is not None:
        console.setLevel(level)
        return getattr(root, "_archi_log_path", log_path)

    file_handler, chosen_path = _open_log(log_path)
    file_handler.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(level)
    for h in (file_handler, console):
        h.setFormatter(_FORMAT)
        root.addHandler(h)

    setattr(root, "_archi_console", console)
    setattr(root, "_archi_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
