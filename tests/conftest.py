from pathlib import Path
from typing import List, Optional

import pytest
import yaml

from video_encoder.handbrake_runner import TranscodeErrorType, TranscodeResult
from video_encoder.metadata import SidecarStore
from video_encoder.models import Job


class FakeRunner:
    """Stands in for HandBrakeRunner: writes a small output file per call."""

    def __init__(self, fail_for: Optional[List[Path]] = None, returncode: int = 3):
        self.calls = []
        self.fail_for = set(fail_for or [])
        self.returncode = returncode

    def run(self, job: Job, preset: str) -> TranscodeResult:
        self.calls.append((job, preset))
        cmd = ["HandBrakeCLI", "-o", str(job.output), "-i", str(job.input), "--preset", preset]
        if job.output in self.fail_for:
            return TranscodeResult(
                success=False,
                returncode=self.returncode,
                output="Encode failed\n",
                duration_s=0.0,
                command=cmd,
                error_type=TranscodeErrorType.FAILED,
            )
        job.output.write_bytes(b"encoded:" + job.input.read_bytes())
        return TranscodeResult(success=True, returncode=0, output="", duration_s=0.0, command=cmd)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def store():
    return SidecarStore()


@pytest.fixture
def write_document():
    """Write a job-description document (a Python structure) as YAML."""

    def _write(path: Path, document) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write
