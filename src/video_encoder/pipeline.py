"""Discover, resolve and run job-description documents.

Every document is discovered and resolved before any job runs, so a
single bad document aborts the whole run with nothing encoded.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from . import config as config_lib
from . import scanner
from .executor import run_batch
from .models import BatchReport, EncoderConfig, Job
from .resolver import resolve_documents
from .script import build_invocation


def load_config(cli_args: Dict[str, Any]) -> EncoderConfig:
    """Resolve settings from YAML layers and CLI arguments."""
    config_path = cli_args.get("config")
    return config_lib.resolve_config(cli_args, Path(config_path) if config_path else None)


def plan_jobs(config: EncoderConfig) -> List[Job]:
    """Discover every document and resolve it into jobs.

    Raises:
        FileNotFoundError: If the source directory is missing
        DocumentError: On the first malformed or duplicate document
    """
    discovery = config.discovery
    documents = scanner.discover_documents(
        discovery.source,
        recursive=discovery.recursive,
        filename=discovery.config_filename,
    )
    print(f"Found {len(documents)} job files in {discovery.source}")
    return resolve_documents(documents, Path(discovery.destination))


def run_encode(cli_args: Dict[str, Any]) -> BatchReport:
    """Plan all jobs, then run them one at a time."""
    config = load_config(cli_args)
    jobs = plan_jobs(config)
    report = run_batch(jobs, config)

    summary = report.summary()
    print("\n" + "=" * 60)
    print("ENCODING SUMMARY")
    print("=" * 60)
    print(f"Encoded:              {summary['encoded']}")
    print(f"Cached (skipped):     {summary['cached']}")
    print(f"Failed:               {summary['failed']}")
    print(f"Total:                {summary['total']}")
    print("=" * 60)
    for failure in report.failures:
        print(f"  ✗ {failure.job.output}: {failure.error_message}")

    return report


def list_jobs(cli_args: Dict[str, Any], stream: Optional[TextIO] = None) -> List[Job]:
    """Print the resolved jobs without running anything."""
    stream = stream or sys.stdout
    config = load_config(cli_args)
    jobs = plan_jobs(config)
    for job in jobs:
        stream.write(f"{job.input}\t{job.output}\t{job.arguments}\n")
    return jobs


def emit_scripts(cli_args: Dict[str, Any], stream: Optional[TextIO] = None) -> List[Job]:
    """Write the shell invocation of every job to ``stream``."""
    stream = stream or sys.stdout
    config = load_config(cli_args)
    jobs = plan_jobs(config)
    for job in jobs:
        stream.write(
            build_invocation(
                job,
                config.handbrake.preset,
                executable=config.handbrake.executable,
                namespace=config.cache.namespace,
            )
        )
        stream.write("\n")
    return jobs
