"""Resolve VideoEncoder.yaml job files into fingerprint-cached HandBrake encodes."""

from .errors import DocumentError, JobError
from .models import BatchReport, EncoderConfig, Job, JobResult, JobStatus, ResolvedAttributes
from .resolver import Layout, detect_layouts, resolve, resolve_documents

__all__ = [
    "DocumentError",
    "JobError",
    "BatchReport",
    "EncoderConfig",
    "Job",
    "JobResult",
    "JobStatus",
    "ResolvedAttributes",
    "Layout",
    "detect_layouts",
    "resolve",
    "resolve_documents",
]
