from __future__ import annotations

import pytest

from archi_installer.lib.errors import InvalidTarget
from archi_installer.lib.firmware import FirmwareMode
from archi_installer.state_store import ensure_defaults
from archi_installer.steps import (
    ChrootHandoffStep,
    DetectFirmwareStep,
    FinalizeStep,
    InstallBaseStep,
    MountStep,
    PartitionStep,
    RecordFirmwareStep,
)

from conftest import disk, part


@pytest.fixture
def mounted(tmp_path):
    root = tmp_path / "mnt"
    root.mkdir()
    handoff = tmp_path / "handoff.yaml"
    handoff.write_text("firmware_mode: UEFI\n")
    state = ensure_defaults({"config": {"handoff_path": str(handoff)}})
    state["hardware"]["firmware_mode"] = "UEFI"
    state["execution"]["mounts"] = {"target_root": str(root), "mounted": [str(root), str(root / "boot")]}
    return state, root


def test_detect_firmware_step(monkeypatch):
    monkeypatch.setattr("archi_installer.steps.step_20_detect_firmware.detect_firmware", lambda: FirmwareMode.BIOS)
    state = DetectFirmwareStep().run({})
    assert state["hardware"]["firmware_mode"] == "BIOS"


def test_record_firmware_rejects_unknown_mode(tmp_path):
    state = ensure_defaults({"config": {"handoff_path": str(tmp_path / "h.yaml")}})
    state["hardware"]["firmware_mode"] = "CSM"
    with pytest.raises(RuntimeError, match="UEFI or BIOS"):
        RecordFirmwareStep().run(state)


class TestInstallBaseStep:
    def test_requires_mounts(self, runner):
        with pytest.raises(RuntimeError, match="mount step"):
            InstallBaseStep().run(ensure_defaults({}))

    def test_installs_configured_packages(self, runner, mounted):
        state, root = mounted
        state["config"]["base_packages"] = ["base", "linux-lts"]
        runner.respond(["genfstab"], stdout="UUID=1\t/Storage\text4\trw\t0 2\n")

        InstallBaseStep().run(state)

        assert runner.commands("pacstrap") == [["pacstrap", str(root), "--noconfirm", "--needed", "base", "linux-lts"]]
        assert "rw,nofail" in (root / "etc" / "fstab").read_text()


class TestChrootHandoffStep:
    def test_stages_handoff_and_runs_command(self, runner, mounted):
        state, root = mounted
        state["config"]["chroot_command"] = ["/root/configure.sh"]

        ChrootHandoffStep().run(state)

        assert (root / "handoff.yaml").read_text() == "firmware_mode: UEFI\n"
        assert state["execution"]["decisions"]["handoff_in_target"] == "/handoff.yaml"
        assert runner.commands() == [["arch-chroot", str(root), "/root/configure.sh"]]

    def test_without_command(self, runner, mounted):
        state, root = mounted
        ChrootHandoffStep().run(state)
        assert runner.commands() == []


class TestFinalizeStep:
    def test_cleans_up_without_reboot(self, runner, mounted):
        state, root = mounted
        (root / "handoff.yaml").write_text("firmware_mode: UEFI\n")

        FinalizeStep().run(state)

        assert not (root / "handoff.yaml").exists()
        assert runner.commands() == [["sync"], ["umount", "-R", str(root)]]
        assert state["execution"]["mounts"]["mounted"] == []

    def test_reboot_when_asked(self, runner, mounted):
        state, root = mounted
        state["config"]["finalize_reboot"] = True

        FinalizeStep().run(state)

        assert runner.commands()[-1] == ["reboot"]

    def test_unmount_failure_is_remembered(self, runner, mounted):
        state, root = mounted
        runner.fail(["umount"])

        FinalizeStep().run(state)

        assert state["execution"]["warnings"][-1]["kind"] == "UnmountFailed"
        assert state["execution"]["mounts"]["mounted"] != []

    def test_nothing_mounted(self, runner):
        FinalizeStep().run(ensure_defaults({}))
        assert runner.commands() == []


class TestPartitionStep:
    def test_refuses_a_partition_written_into_config(self, runner, tools, block_devices):
        runner.tree = [disk("sda", children=[part("sda1")])]
        block_devices.update({"/dev/sda", "/dev/sda1"})
        state = ensure_defaults({"config": {"target_disk": "/dev/sda1"}})
        state["hardware"]["firmware_mode"] = "BIOS"

        with pytest.raises(InvalidTarget, match="whole disk"):
            PartitionStep().run(state)

        assert runner.commands() == []

    def test_refuses_storage_on_the_root_disk(self, runner, tools, block_devices):
        runner.tree = [disk("sda", children=[part("sda1")])]
        block_devices.update({"/dev/sda", "/dev/sda1"})
        state = ensure_defaults({"config": {"target_disk": "/dev/sda", "storage_device": "/dev/sda1"}})
        state["hardware"]["firmware_mode"] = "BIOS"

        with pytest.raises(InvalidTarget):
            PartitionStep().run(state)

        assert runner.commands("wipefs") == []


class TestMountStep:
    def test_rerun_does_not_repeat_warnings(self, runner, block_devices):
        state = ensure_defaults({"config": {"storage_device": "/dev/sdc1"}})
        state["execution"]["layout"] = {"disk": "sdb", "mode": "BIOS", "partitions": ["sdb1"]}
        state["execution"]["warnings"].append({"step": "10_select_target", "kind": "Note", "device": None, "message": "kept"})

        MountStep().run(state)
        MountStep().run(state)

        warnings = state["execution"]["warnings"]
        assert [w["step"] for w in warnings] == ["10_select_target", "50_mount"]
        assert warnings[1]["device"] == "/dev/sdc1"
