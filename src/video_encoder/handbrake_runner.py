"""HandBrakeCLI runner with timeout enforcement and progress monitoring.

Key Features:
- Typed argument vector (no shell interpolation)
- Optional global timeout with process tree cleanup
- Real-time progress parsing from HandBrake's console output
- Error classification for reporting
"""

import re
import shlex
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import psutil

from .models import Job

PROGRESS_PATTERN = re.compile(r"Encoding: task (\d+) of (\d+), ([\d.]+) %")


class TranscodeErrorType(Enum):
    """Why a transcode did not succeed."""
    FAILED = "failed"           # Non-zero exit status
    TIMEOUT = "timeout"         # Killed after timeout_s
    NOT_FOUND = "not_found"     # Executable missing


@dataclass
class TranscodeProgress:
    """Real-time HandBrake progress metrics."""
    task: int = 0                # Current pass (1-based)
    task_count: int = 0          # Total passes
    percent: float = 0.0         # Percent complete for the current pass
    last_update: float = 0.0     # Timestamp of last update


@dataclass
class TranscodeResult:
    """Result of one transcoder execution."""
    success: bool
    returncode: int
    output: str
    duration_s: float
    command: List[str]
    error_type: Optional[TranscodeErrorType] = None
    final_progress: Optional[TranscodeProgress] = None


def check_handbrake(executable: str = "HandBrakeCLI") -> bool:
    """Return True if the transcoder executable can be found."""
    return shutil.which(executable) is not None


class HandBrakeRunner:
    """Run HandBrakeCLI for one job at a time.

    Example:
        >>> runner = HandBrakeRunner(timeout_s=7200)
        >>> result = runner.run(job, preset="Chromecast 1080p30 Surround")
        >>> if not result.success:
        ...     print(result.error_type, result.output[-500:])
    """

    def __init__(
        self,
        executable: str = "HandBrakeCLI",
        timeout_s: Optional[int] = None,
        kill_grace_period_s: int = 5,
        progress_callback: Optional[Callable[[TranscodeProgress], None]] = None,
    ):
        """Initialize runner.

        Args:
            executable: Transcoder executable name or path
            timeout_s: Maximum duration of one transcode (None = unlimited)
            kill_grace_period_s: Grace period between SIGTERM and SIGKILL
            progress_callback: Optional callback for progress updates
        """
        self.executable = executable
        self.timeout_s = timeout_s
        self.kill_grace_period_s = kill_grace_period_s
        self.progress_callback = progress_callback

        self._process: Optional[subprocess.Popen] = None
        self._progress = TranscodeProgress()
        self._output_lines: List[str] = []

    def build_command(self, job: Job, preset: str) -> List[str]:
        """Argument vector for ``job``; free-form arguments are shell-split."""
        return [
            self.executable,
            "-o", str(job.output),
            "-i", str(job.input),
            "--preset", preset,
            *shlex.split(job.arguments),
        ]

    def run(self, job: Job, preset: str) -> TranscodeResult:
        """Transcode ``job.input`` into ``job.output``.

        Raises:
            ValueError: If the job's arguments cannot be split into words
        """
        cmd = self.build_command(job, preset)
        start_time = time.time()
        self._progress = TranscodeProgress()
        self._output_lines = []

        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            return TranscodeResult(
                success=False,
                returncode=-1,
                output=str(e),
                duration_s=time.time() - start_time,
                command=cmd,
                error_type=TranscodeErrorType.NOT_FOUND,
            )

        monitor = threading.Thread(
            target=self._monitor_progress, args=(self._process.stdout,), daemon=True
        )
        monitor.start()

        try:
            try:
                returncode = self._process.wait(timeout=self.timeout_s)
                timed_out = False
            except subprocess.TimeoutExpired:
                self._kill_process_tree()
                returncode = -1
                timed_out = True

            monitor.join(timeout=2)

            error_type = None
            if timed_out:
                error_type = TranscodeErrorType.TIMEOUT
            elif returncode != 0:
                error_type = TranscodeErrorType.FAILED

            return TranscodeResult(
                success=(returncode == 0 and not timed_out),
                returncode=returncode,
                output="".join(self._output_lines),
                duration_s=time.time() - start_time,
                command=cmd,
                error_type=error_type,
                final_progress=self._progress,
            )
        except BaseException:
            self._kill_process_tree()
            raise
        finally:
            self._process = None

    def _monitor_progress(self, stream) -> None:
        """Collect transcoder output and parse progress lines.

        HandBrake progress format (carriage-return separated):
            Encoding: task 1 of 2, 45.32 % (87.12 fps, avg 90.01 fps, ETA 00h01m20s)
        """
        last_callback = 0.0

        for line in stream:
            match = PROGRESS_PATTERN.search(line)
            if not match:
                self._output_lines.append(line)
                continue

            task, task_count, percent = match.groups()
            self._progress.task = int(task)
            self._progress.task_count = int(task_count)
            self._progress.percent = float(percent)
            self._progress.last_update = time.time()

            now = time.time()
            if self.progress_callback and now - last_callback >= 2.0:
                self.progress_callback(self._progress)
                last_callback = now

    def _kill_process_tree(self) -> None:
        """Terminate the transcoder and any children, then force-kill survivors."""
        if not self._process:
            return

        try:
            parent = psutil.Process(self._process.pid)
        except psutil.NoSuchProcess:
            return

        try:
            children = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            children = []

        for proc in children + [parent]:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                pass

        _, alive = psutil.wait_procs(children + [parent], timeout=self.kill_grace_period_s)
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass

        self._process.wait()
