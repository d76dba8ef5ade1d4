"""Tests for job-scoped file naming and cleanup."""

import pytest

from clipreel.workspace import JobWorkspace, make_token


class TestMakeToken:
    def test_includes_sanitized_job_id(self):
        token = make_token("job/42 retry")
        assert token.startswith("job-42-retry-")

    def test_unique_per_call(self):
        assert make_token("7") != make_token("7")

    def test_without_job_id(self):
        assert len(make_token()) == 12


class TestJobWorkspace:
    def _workspace(self, tmp_path, job_id="7"):
        return JobWorkspace(tmp_path / "temp", tmp_path / "out", job_id)

    def test_paths_are_namespaced(self, tmp_path):
        with self._workspace(tmp_path) as ws:
            assert ws.clip_path(3).parent == ws.temp_dir
            assert ws.clip_path(3).name == "clip_03.mp4"
            assert ws.stage_output("concat").name == f"{ws.token}_concat.mp4"
            assert ws.stage_output("thumb", ".jpg").suffix == ".jpg"

    def test_concurrent_jobs_do_not_collide(self, tmp_path):
        a, b = self._workspace(tmp_path), self._workspace(tmp_path)
        assert a.temp_dir != b.temp_dir
        assert a.stage_output("concat") != b.stage_output("concat")

    def test_success_keeps_only_kept_outputs(self, tmp_path):
        with self._workspace(tmp_path) as ws:
            ws.clip_path(0).write_bytes(b"raw")
            concat = ws.stage_output("concat")
            final = ws.stage_output("reframe")
            concat.write_bytes(b"c")
            final.write_bytes(b"f")
            ws.keep(final, None)
        assert not ws.temp_dir.exists()
        assert not concat.exists()
        assert final.exists()

    def test_failure_removes_everything(self, tmp_path):
        with pytest.raises(RuntimeError):
            with self._workspace(tmp_path) as ws:
                final = ws.stage_output("reframe")
                final.write_bytes(b"f")
                ws.keep(final)
                raise RuntimeError("boom")
        assert not ws.temp_dir.exists()
        assert not final.exists()

    def test_unwritten_outputs_are_ignored(self, tmp_path):
        with self._workspace(tmp_path) as ws:
            ws.stage_output("outro")
        assert not ws.temp_dir.exists()
