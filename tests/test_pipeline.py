from __future__ import annotations

import pytest

from archi_installer.pipeline import run_pipeline
from archi_installer.state_store import ensure_defaults, load_state, save_state


class RecordingStep:
    def __init__(self, step_id, log, fail=False):
        self.step_id = step_id
        self.log = log
        self.fail = fail

    def run(self, state):
        self.log.append(self.step_id)
        if self.fail:
            raise RuntimeError(f"{self.step_id} broke")
        return state


def make_steps(log, failing=None):
    return [RecordingStep(s, log, fail=(s == failing)) for s in ["10_a", "20_b", "30_c"]]


class TestRunPipeline:
    def test_runs_everything_once(self):
        log = []
        state = ensure_defaults({})

        result = run_pipeline(state=state, steps=make_steps(log))

        assert log == ["10_a", "20_b", "30_c"]
        assert result.ran_steps == log
        assert state["execution"]["completed_steps"] == log
        assert state["execution"]["current_step"] is None

    def test_resume_skips_completed(self):
        log = []
        state = ensure_defaults({})
        with pytest.raises(RuntimeError):
            run_pipeline(state=state, steps=make_steps(log, failing="20_b"))
        assert state["execution"]["current_step"] == "20_b"

        log.clear()
        result = run_pipeline(state=state, steps=make_steps(log))

        assert log == ["20_b", "30_c"]
        assert result.skipped_steps == ["10_a"]

    def test_rerunning_a_step_makes_later_steps_stale(self):
        log = []
        state = ensure_defaults({})
        run_pipeline(state=state, steps=make_steps(log))

        log.clear()
        run_pipeline(state=state, steps=make_steps(log), start_at="20_b", stop_after="20_b", force=True)

        assert log == ["20_b"]
        assert state["execution"]["completed_steps"] == ["10_a", "20_b"]

        log.clear()
        run_pipeline(state=state, steps=make_steps(log))
        assert log == ["30_c"]

    def test_start_and_stop(self):
        log = []
        run_pipeline(state=ensure_defaults({}), steps=make_steps(log), start_at="20_b", stop_after="20_b")
        assert log == ["20_b"]

    @pytest.mark.parametrize("kwargs", [{"start_at": "25_x"}, {"stop_after": "99_y"}])
    def test_unknown_step_ids(self, kwargs):
        log = []
        with pytest.raises(ValueError, match="Unknown step"):
            run_pipeline(state=ensure_defaults({}), steps=make_steps(log), **kwargs)
        assert log == []


class TestStateStore:
    def test_defaults_do_not_override(self):
        state = ensure_defaults({"config": {"target_root": "/target", "esp_size_mib": 1024}})

        cfg = state["config"]
        assert cfg["target_root"] == "/target"
        assert cfg["esp_size_mib"] == 1024
        assert cfg["root_label"] == "ROOT"
        assert cfg["interactive"] is True
        assert state["execution"]["warnings"] == []

    @pytest.mark.parametrize("name", ["state.json", "state.yaml", "nested/state.yml"])
    def test_save_and_load(self, tmp_path, name):
        path = tmp_path / name
        state = ensure_defaults({"config": {"target_disk": "/dev/sda"}})

        save_state(str(path), state)

        assert load_state(str(path)) == state

    def test_missing_file_is_empty(self, tmp_path):
        assert load_state(str(tmp_path / "nope.json")) == {}

    def test_non_mapping_is_rejected(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_state(str(path))
