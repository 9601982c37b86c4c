"""Pydantic models for configuration, resolved attributes and jobs."""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PRESET = "Chromecast 1080p30 Surround"

# Keys that cascade down the document tree
SOURCE_KEY = "Source"
DESTINATION_KEY = "Destination"
NAME_KEY = "Name"
ENCODING_OPTIONS_KEY = "EncodingOptions"


def scalar_text(value: Any) -> str:
    """Render a document scalar as text.

    Documents loaded with ``yaml.BaseLoader`` only contain strings, but
    trees built by other loaders may carry numbers or booleans.
    """
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        raise TypeError(f"expected a scalar, got {type(value).__name__}")
    return value if isinstance(value, str) else str(value)


class HandBrakeConfig(BaseModel):
    """Transcoder invocation settings."""

    executable: str = Field(default="HandBrakeCLI", description="Transcoder executable")
    preset: str = Field(default=DEFAULT_PRESET, description="HandBrake preset to use for encoding")
    timeout_s: Optional[int] = Field(
        default=None, gt=0, description="Kill the transcoder after N seconds (None = no limit)"
    )
    kill_grace_period_s: int = Field(
        default=5, gt=0, description="Grace period between SIGTERM and SIGKILL"
    )


class CacheConfig(BaseModel):
    """Fingerprint persistence settings."""

    backend: Literal["xattr", "sidecar"] = Field(
        default="xattr", description="Where fingerprints are stored"
    )
    namespace: str = Field(
        default="user.videoencoder", description="Extended attribute namespace for fingerprints"
    )
    reuse_input_fingerprint: bool = Field(
        default=True, description="Reuse the fingerprint stored on an unchanged input"
    )


class DiscoveryConfig(BaseModel):
    """Where job-description documents are found and outputs are written."""

    source: str = Field(default=".", description="Directory holding job-description files")
    destination: str = Field(default=".", description="Directory to output encoded videos")
    recursive: bool = Field(default=True, description="Search for job files recursively")
    config_filename: str = Field(
        default="VideoEncoder.yaml", description="File name of job-description documents"
    )


class EncoderConfig(BaseModel):
    """Complete application configuration with validation."""

    model_config = ConfigDict(frozen=True)

    handbrake: HandBrakeConfig = Field(default_factory=HandBrakeConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "EncoderConfig":
        """Create config from nested dict (YAML)."""
        return cls(**data)

    def merge_cli_overrides(self, cli_args: dict) -> "EncoderConfig":
        """Apply CLI overrides and return new config instance."""
        config_dict = self.model_dump()

        if cli_args.get("preset") is not None:
            config_dict["handbrake"]["preset"] = cli_args["preset"]
        if cli_args.get("handbrake") is not None:
            config_dict["handbrake"]["executable"] = cli_args["handbrake"]
        if cli_args.get("source") is not None:
            config_dict["discovery"]["source"] = str(cli_args["source"])
        if cli_args.get("destination") is not None:
            config_dict["discovery"]["destination"] = str(cli_args["destination"])
        if cli_args.get("recursive") is not None:
            config_dict["discovery"]["recursive"] = cli_args["recursive"]
        if cli_args.get("cache_backend") is not None:
            config_dict["cache"]["backend"] = cli_args["cache_backend"]

        return EncoderConfig.from_dict(config_dict)


class ResolvedAttributes(BaseModel):
    """The four cascading attributes computed at one level of a document.

    A key present on a node extends the parent's value: paths by path
    append, strings by concatenation. An absent key inherits the parent's
    value unchanged.
    """

    model_config = ConfigDict(frozen=True)

    source: Path
    destination: Path
    name: str = ""
    encoding_options: str = ""

    @classmethod
    def root(cls, base_source: Path, base_destination: Path) -> "ResolvedAttributes":
        return cls(source=Path(base_source), destination=Path(base_destination))

    def derive(self, node: Mapping[str, Any]) -> "ResolvedAttributes":
        """Resolve the attributes of ``node`` from this (parent) level."""
        source = self.source
        destination = self.destination
        name = self.name
        encoding_options = self.encoding_options

        if SOURCE_KEY in node:
            source = source / scalar_text(node[SOURCE_KEY])
        if DESTINATION_KEY in node:
            destination = destination / scalar_text(node[DESTINATION_KEY])
        if NAME_KEY in node:
            name = name + scalar_text(node[NAME_KEY])
        if ENCODING_OPTIONS_KEY in node:
            encoding_options = encoding_options + scalar_text(node[ENCODING_OPTIONS_KEY])

        return ResolvedAttributes(
            source=source,
            destination=destination,
            name=name,
            encoding_options=encoding_options,
        )


class Job(BaseModel):
    """One concrete transcode request."""

    model_config = ConfigDict(frozen=True)

    input: Path = Field(..., description="File handed to the transcoder")
    output: Path = Field(..., description="File the transcoder writes")
    arguments: str = Field(default="", description="Free-form transcoder arguments")
    document: Optional[Path] = Field(
        default=None, description="Job-description file this job came from"
    )


class JobStatus(str, Enum):
    """Outcome of running one job."""

    ENCODED = "encoded"  # Transcoder ran and fingerprints were stored
    CACHED = "cached"  # Stored fingerprints matched, nothing to do
    FAILED = "failed"  # Missing input or transcoder failure


class JobResult(BaseModel):
    """Processing outcome of a single job."""

    job: Job
    status: JobStatus
    error_message: Optional[str] = Field(default=None, description="Error details if failed")
    duration_s: float = Field(default=0.0, ge=0.0, description="Processing time in seconds")


class BatchReport(BaseModel):
    """Ordered per-job results of a batch run."""

    results: List[JobResult] = Field(default_factory=list)

    def _count(self, status: JobStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def encoded(self) -> int:
        return self._count(JobStatus.ENCODED)

    @property
    def cached(self) -> int:
        return self._count(JobStatus.CACHED)

    @property
    def failed(self) -> int:
        return self._count(JobStatus.FAILED)

    @property
    def failures(self) -> List[JobResult]:
        return [r for r in self.results if r.status == JobStatus.FAILED]

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def summary(self) -> Dict[str, int]:
        return {
            "encoded": self.encoded,
            "cached": self.cached,
            "failed": self.failed,
            "total": len(self.results),
        }
