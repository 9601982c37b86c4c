"""Run jobs through the fingerprint skip/cache protocol.

For each job, in order:
1. Fail if the input does not exist.
2. Create the output's parent directories and an empty placeholder output.
3. Fingerprint the input (reusing a stored self fingerprint when the
   input's size/mtime stamp is unchanged).
4. Fingerprint ``preset + " " + arguments``.
5. If the pair stored on the output matches, the job is already done.
6. Otherwise discard the output, run the transcoder, and store the new
   pair on the output after a successful run.

Jobs run one at a time. A failing job is recorded and the batch moves on.
"""

import time
from typing import Iterable, Optional

from .errors import JobError
from .fingerprint import (
    SELF_HASH_KEY,
    SELF_STAMP_KEY,
    FingerprintPair,
    compute_args_hash,
    compute_file_hash,
    file_stamp,
)
from .handbrake_runner import HandBrakeRunner, TranscodeProgress
from .metadata import MetadataStore, make_store
from .models import BatchReport, EncoderConfig, Job, JobResult, JobStatus


def input_fingerprint(job: Job, store: MetadataStore, reuse: bool = True) -> str:
    """Content hash of the job's input, cached on the input itself."""
    stamp = file_stamp(job.input)

    if reuse:
        stored = store.read(job.input)
        if stored.get(SELF_HASH_KEY) and stored.get(SELF_STAMP_KEY) == stamp:
            return stored[SELF_HASH_KEY]

    digest = compute_file_hash(job.input)
    try:
        store.write(job.input, {SELF_HASH_KEY: digest, SELF_STAMP_KEY: stamp})
    except OSError:
        # Read-only sources just get re-hashed next time
        pass
    return digest


def run_job(
    job: Job,
    preset: str,
    runner: HandBrakeRunner,
    store: MetadataStore,
    reuse_input_fingerprint: bool = True,
) -> JobStatus:
    """Bring ``job.output`` up to date.

    Returns:
        JobStatus.CACHED if stored fingerprints matched, JobStatus.ENCODED otherwise

    Raises:
        JobError: If the input is missing or the transcoder fails
    """
    if not job.input.exists():
        raise JobError(f"Input not found: {job.input}")

    if not job.output.exists():
        job.output.parent.mkdir(parents=True, exist_ok=True)
        job.output.touch()

    current = FingerprintPair(
        input_hash=input_fingerprint(job, store, reuse=reuse_input_fingerprint),
        args_hash=compute_args_hash(preset, job.arguments),
    )

    stored = FingerprintPair.from_metadata(store.read(job.output))
    if stored == current:
        return JobStatus.CACHED

    job.output.unlink(missing_ok=True)
    store.clear(job.output)

    try:
        result = runner.run(job, preset)
    except ValueError as e:
        raise JobError(f"Invalid encoding options {job.arguments!r}: {e}") from e

    if not result.success:
        tail = result.output.strip().splitlines()[-1:] or [""]
        detail = result.error_type.value if result.error_type else "failed"
        raise JobError(
            f"Transcode {detail} (exit {result.returncode}) for {job.output}: {tail[0]}"
        )

    try:
        store.write(job.output, current.to_metadata())
    except OSError as e:
        print(f"  ⚠ Could not store fingerprints for {job.output.name}: {e}")

    return JobStatus.ENCODED


def print_progress(progress: TranscodeProgress) -> None:
    """Show transcoder progress during long encodes."""
    print(f"    ... task {progress.task}/{progress.task_count}: {progress.percent:.1f}%")


def run_batch(
    jobs: Iterable[Job],
    config: EncoderConfig,
    runner: Optional[HandBrakeRunner] = None,
    store: Optional[MetadataStore] = None,
) -> BatchReport:
    """Run every job in order, isolating failures per job."""
    jobs = list(jobs)
    runner = runner or HandBrakeRunner(
        executable=config.handbrake.executable,
        timeout_s=config.handbrake.timeout_s,
        kill_grace_period_s=config.handbrake.kill_grace_period_s,
        progress_callback=print_progress,
    )
    store = store or make_store(config.cache)
    preset = config.handbrake.preset
    report = BatchReport()

    print(f"Running {len(jobs)} jobs with preset '{preset}'...")

    for index, job in enumerate(jobs, start=1):
        start = time.time()
        print(f"\n[{index}/{len(jobs)}] {job.input} -> {job.output}")
        try:
            status = run_job(
                job,
                preset,
                runner,
                store,
                reuse_input_fingerprint=config.cache.reuse_input_fingerprint,
            )
        except (JobError, OSError) as e:
            print(f"  ✗ Failed: {e}")
            report.results.append(
                JobResult(
                    job=job,
                    status=JobStatus.FAILED,
                    error_message=str(e),
                    duration_s=time.time() - start,
                )
            )
            continue

        if status == JobStatus.CACHED:
            print(f"  ✓ Cached: {job.output.name} (fingerprints match)")
        else:
            print(f"  + Encoded: {job.output.name}")
        report.results.append(JobResult(job=job, status=status, duration_s=time.time() - start))

    return report
