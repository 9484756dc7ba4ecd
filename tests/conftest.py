from __future__ import annotations

import json
import logging
import shutil
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from archi_installer.lib.command import CmdResult, CommandFailed

# Every module that shells out imports run_cmd by name; each one is patched.
RUN_CMD_USERS = [
    "archi_installer.lib.devices",
    "archi_installer.lib.storage",
    "archi_installer.lib.filesystem",
    "archi_installer.lib.mounts",
    "archi_installer.lib.base",
    "archi_installer.lib.chroot",
    "archi_installer.steps.step_90_finalize",
]


def disk(name: str, size: int = 500 * 1024**3, model: str = "TestDisk", children=None, ro: bool = False) -> Dict[str, Any]:
    node: Dict[str, Any] = {"name": name, "size": size, "model": model, "type": "disk", "mountpoint": None, "ro": ro}
    if children:
        node["children"] = children
    return node


def part(name: str, size: int = 100 * 1024**3, mountpoint: Optional[str] = None) -> Dict[str, Any]:
    return {"name": name, "size": size, "model": None, "type": "part", "mountpoint": mountpoint, "ro": False}


def _find(nodes: List[Dict[str, Any]], path: str) -> Optional[Dict[str, Any]]:
    for n in nodes:
        if (n.get("path") or "/dev/" + n["name"]) == path:
            return n
        hit = _find(n.get("children") or [], path)
        if hit is not None:
            return hit
    return None


class FakeRunner:
    """Stands in for run_cmd: records argv and answers from a script.

    ``lsblk`` is answered from ``tree`` the way ``lsblk --json`` would.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.tree: List[Dict[str, Any]] = []
        self._script: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}

    def respond(self, prefix, stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self._script[tuple(prefix)] = (returncode, stdout, stderr)

    def fail(self, prefix, returncode: int = 1, stderr: str = "boom") -> None:
        self.respond(prefix, returncode=returncode, stderr=stderr)

    def commands(self, name: Optional[str] = None) -> List[List[str]]:
        """Recorded calls except lsblk queries, optionally only those of ``name``."""
        out = [c for c in self.calls if c[0] != "lsblk"]
        if name is not None:
            out = [c for c in out if c[0] == name]
        return out

    def _lsblk(self, argv: List[str]) -> Tuple[int, str, str]:
        args = argv[1:]
        paths = [a for a in args if a.startswith("/dev/")]
        nodes = self.tree
        if paths:
            nodes = []
            for p in paths:
                hit = _find(self.tree, p)
                if hit is None:
                    return 32, "", f"lsblk: {p}: not a block device"
                nodes.append(hit)
        if "--nodeps" in args:
            nodes = [{k: v for k, v in n.items() if k != "children"} for n in nodes]
        return 0, json.dumps({"blockdevices": nodes}), ""

    def _scripted(self, argv: List[str]) -> Tuple[int, str, str]:
        best: Optional[Tuple[str, ...]] = None
        for prefix in self._script:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return 0, "", ""
        return self._script[best]

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, dry_run=False) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input_text)

        if dry_run:
            rc, out, err = 0, "", ""
        elif argv[0] == "lsblk":
            rc, out, err = self._lsblk(argv)
        else:
            rc, out, err = self._scripted(argv)

        result = CmdResult(argv=argv, returncode=rc, stdout=out, stderr=err)
        if check and not result.ok:
            raise CommandFailed(result)
        return result


@pytest.fixture
def runner(monkeypatch) -> FakeRunner:
    fake = FakeRunner()
    for mod in RUN_CMD_USERS:
        monkeypatch.setattr(f"{mod}.run_cmd", fake)
    return fake


class FakeTools:
    def __init__(self):
        self.missing: Set[str] = set()

    def which(self, name: str, *args, **kwargs) -> Optional[str]:
        if name in self.missing:
            return None
        return f"/usr/bin/{name}"


@pytest.fixture
def tools(monkeypatch) -> FakeTools:
    fake = FakeTools()
    monkeypatch.setattr(shutil, "which", fake.which)
    return fake


@pytest.fixture
def block_devices(monkeypatch) -> Set[str]:
    """Paths that count as block device nodes for the duration of a test."""

    paths: Set[str] = set()

    def is_block_device(path: str) -> bool:
        return path in paths

    monkeypatch.setattr("archi_installer.lib.selection.is_block_device", is_block_device)
    monkeypatch.setattr("archi_installer.lib.mounts.is_block_device", is_block_device)
    return paths


@pytest.fixture(autouse=True)
def reset_root_logger():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in root.handlers[:]:
        if h not in before:
            root.removeHandler(h)
            h.close()
    for attr in ("_archi_console", "_archi_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
    root.setLevel(level)
