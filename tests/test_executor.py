"""Tests for the fingerprint skip/cache protocol."""

import os
from unittest.mock import patch

import pytest

from conftest import FakeRunner
from video_encoder.errors import JobError
from video_encoder.executor import input_fingerprint, print_progress, run_batch, run_job
from video_encoder.fingerprint import (
    ARGS_HASH_KEY,
    INPUT_HASH_KEY,
    SELF_HASH_KEY,
    SELF_STAMP_KEY,
    compute_args_hash,
    compute_file_hash,
)
from video_encoder.handbrake_runner import TranscodeProgress
from video_encoder.models import EncoderConfig, Job, JobStatus

PRESET = "Fast 1080p30"


@pytest.fixture
def job(tmp_path):
    source = tmp_path / "in" / "movie.mkv"
    source.parent.mkdir()
    source.write_bytes(b"original video bytes" * 100)
    return Job(input=source, output=tmp_path / "out" / "nested" / "Movie.m4v", arguments="-q 20")


class TestRunJob:
    """Single-job protocol steps."""

    def test_missing_input_fails(self, tmp_path, fake_runner, store):
        job = Job(input=tmp_path / "missing.mkv", output=tmp_path / "out.m4v")

        with pytest.raises(JobError, match="Input not found"):
            run_job(job, PRESET, fake_runner, store)

        assert fake_runner.calls == []
        assert not job.output.exists()

    def test_first_run_encodes_and_stores_fingerprints(self, job, fake_runner, store):
        status = run_job(job, PRESET, fake_runner, store)

        assert status == JobStatus.ENCODED
        assert len(fake_runner.calls) == 1
        assert job.output.read_bytes().startswith(b"encoded:")

        stored = store.read(job.output)
        assert stored[INPUT_HASH_KEY] == compute_file_hash(job.input)
        assert stored[ARGS_HASH_KEY] == compute_args_hash(PRESET, "-q 20")

    def test_second_run_is_cache_hit(self, job, fake_runner, store):
        """Unchanged input and arguments encode exactly once."""
        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED
        assert run_job(job, PRESET, fake_runner, store) == JobStatus.CACHED

        assert len(fake_runner.calls) == 1

    def test_changed_input_reencodes(self, job, fake_runner, store):
        run_job(job, PRESET, fake_runner, store)
        job.input.write_bytes(b"a different, longer recording" * 100)

        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED
        assert len(fake_runner.calls) == 2

    def test_same_size_rewrite_within_one_second_reencodes(self, job, fake_runner, store):
        """New bytes of equal length and a same-second mtime still miss the cache."""
        second = 1_700_000_000 * 1_000_000_000
        job.input.write_bytes(b"A" * 1000)
        os.utime(job.input, ns=(second + 100_000_000, second + 100_000_000))
        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED

        job.input.write_bytes(b"B" * 1000)
        os.utime(job.input, ns=(second + 200_000_000, second + 200_000_000))

        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED
        assert len(fake_runner.calls) == 2

    def test_changed_arguments_reencode(self, job, fake_runner, store):
        run_job(job, PRESET, fake_runner, store)
        changed = job.model_copy(update={"arguments": "-q 22"})

        assert run_job(changed, PRESET, fake_runner, store) == JobStatus.ENCODED
        assert len(fake_runner.calls) == 2

    def test_changed_preset_reencodes(self, job, fake_runner, store):
        run_job(job, PRESET, fake_runner, store)

        assert run_job(job, "HQ 1080p30 Surround", fake_runner, store) == JobStatus.ENCODED
        assert len(fake_runner.calls) == 2

    def test_existing_output_without_fingerprints_is_replaced(self, job, fake_runner, store):
        job.output.parent.mkdir(parents=True)
        job.output.write_bytes(b"stale")

        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED
        assert job.output.read_bytes() != b"stale"

    def test_corrupt_metadata_is_a_miss(self, job, fake_runner, store):
        run_job(job, PRESET, fake_runner, store)
        store.sidecar_path(job.output).write_text("{not json", encoding="utf-8")

        assert run_job(job, PRESET, fake_runner, store) == JobStatus.ENCODED

    def test_transcode_failure(self, job, store):
        runner = FakeRunner(fail_for=[job.output])

        with pytest.raises(JobError, match="exit 3"):
            run_job(job, PRESET, runner, store)

        assert store.read(job.output) == {}

    def test_failed_job_retries_next_run(self, job, store):
        run_job_failing = FakeRunner(fail_for=[job.output])
        with pytest.raises(JobError):
            run_job(job, PRESET, run_job_failing, store)

        runner = FakeRunner()
        assert run_job(job, PRESET, runner, store) == JobStatus.ENCODED

    def test_unsplittable_arguments(self, job, store):
        class QuoteErrorRunner(FakeRunner):
            def run(self, job, preset):
                raise ValueError("No closing quotation")

        bad = job.model_copy(update={"arguments": '--title "1'})
        with pytest.raises(JobError, match="Invalid encoding options"):
            run_job(bad, PRESET, QuoteErrorRunner(), store)


class TestInputFingerprint:
    """Reuse of the fingerprint stored on the input itself."""

    def test_stores_self_fingerprint(self, job, store):
        digest = input_fingerprint(job, store)

        stored = store.read(job.input)
        assert stored[SELF_HASH_KEY] == digest
        assert SELF_STAMP_KEY in stored

    def test_reuses_when_stamp_matches(self, job, store):
        input_fingerprint(job, store)

        with patch("video_encoder.executor.compute_file_hash") as mock_hash:
            input_fingerprint(job, store)
            mock_hash.assert_not_called()

    def test_rehashes_when_stamp_differs(self, job, store):
        store.write(job.input, {SELF_HASH_KEY: "0" * 64, SELF_STAMP_KEY: "1:1"})

        assert input_fingerprint(job, store) == compute_file_hash(job.input)

    def test_reuse_disabled(self, job, store):
        store.write(job.input, {SELF_HASH_KEY: "0" * 64, SELF_STAMP_KEY: "ignored"})

        with patch("video_encoder.executor.compute_file_hash", return_value="f" * 64) as mock_hash:
            assert input_fingerprint(job, store, reuse=False) == "f" * 64
            mock_hash.assert_called_once()

    def test_unwritable_input_metadata_is_ignored(self, job, store):
        with patch.object(store, "write", side_effect=PermissionError("read-only")):
            assert input_fingerprint(job, store) == compute_file_hash(job.input)


class TestRunBatch:
    """Batch execution with per-job failure isolation."""

    def _jobs(self, tmp_path, count):
        jobs = []
        for i in range(count):
            source = tmp_path / f"in{i}.mkv"
            source.write_bytes(f"video {i}".encode() * 50)
            jobs.append(Job(input=source, output=tmp_path / "out" / f"out{i}.m4v"))
        return jobs

    def test_failure_does_not_stop_batch(self, tmp_path, store):
        jobs = self._jobs(tmp_path, 3)
        jobs.insert(1, Job(input=tmp_path / "missing.mkv", output=tmp_path / "out" / "x.m4v"))
        runner = FakeRunner(fail_for=[jobs[3].output])

        report = run_batch(jobs, EncoderConfig(), runner=runner, store=store)

        assert [r.status for r in report.results] == [
            JobStatus.ENCODED,
            JobStatus.FAILED,
            JobStatus.ENCODED,
            JobStatus.FAILED,
        ]
        assert report.failed == 2
        assert not report.ok
        assert "Input not found" in report.failures[0].error_message

    def test_rerun_is_all_cached(self, tmp_path, store):
        jobs = self._jobs(tmp_path, 2)
        runner = FakeRunner()

        first = run_batch(jobs, EncoderConfig(), runner=runner, store=store)
        second = run_batch(jobs, EncoderConfig(), runner=runner, store=store)

        assert first.summary() == {"encoded": 2, "cached": 0, "failed": 0, "total": 2}
        assert second.summary() == {"encoded": 0, "cached": 2, "failed": 0, "total": 2}
        assert len(runner.calls) == 2

    def test_uses_configured_preset(self, tmp_path, store):
        jobs = self._jobs(tmp_path, 1)
        runner = FakeRunner()
        config = EncoderConfig().merge_cli_overrides({"preset": "Very Fast 720p30"})

        run_batch(jobs, config, runner=runner, store=store)

        assert runner.calls[0][1] == "Very Fast 720p30"

    def test_sequential_document_order(self, tmp_path, store):
        jobs = self._jobs(tmp_path, 4)
        runner = FakeRunner()

        run_batch(jobs, EncoderConfig(), runner=runner, store=store)

        assert [call[0] for call in runner.calls] == jobs

    def test_default_runner_reports_progress(self, tmp_path, store):
        """The batch's own runner gets the progress printer."""
        jobs = self._jobs(tmp_path, 1)
        config = EncoderConfig().merge_cli_overrides({"handbrake": "/opt/HandBrakeCLI"})

        with patch("video_encoder.executor.HandBrakeRunner", return_value=FakeRunner()) as cls:
            run_batch(jobs, config, store=store)

        kwargs = cls.call_args.kwargs
        assert kwargs["executable"] == "/opt/HandBrakeCLI"
        assert kwargs["progress_callback"] is print_progress


def test_print_progress(capsys):
    print_progress(TranscodeProgress(task=1, task_count=2, percent=45.321))

    assert "task 1/2: 45.3%" in capsys.readouterr().out
