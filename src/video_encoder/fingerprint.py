"""Fingerprinting functions for skip/cache detection.

Two fingerprints decide whether an output is up to date:
1. Input fingerprint: SHA-256 of the input file's content
2. Arguments fingerprint: SHA-256 of ``preset + " " + arguments``

Both are stored against the output after a successful encode. An input
may also carry its own ("self") fingerprint together with a size/mtime
stamp, so unchanged inputs are not re-hashed on every run.

The same digests are produced by ``sha256sum`` in the emitted shell
invocation, so scripts and in-process runs share stored metadata.
"""

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

# Metadata keys (prefixed with the configured namespace by xattr stores)
INPUT_HASH_KEY = "input_sha256"
ARGS_HASH_KEY = "args_sha256"
SELF_HASH_KEY = "self_sha256"
SELF_STAMP_KEY = "self_stamp"

CHUNK_SIZE = 65536


@dataclass(frozen=True)
class FingerprintPair:
    """Fingerprints identifying one encode of one input with one argument set."""

    input_hash: str
    args_hash: str

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, str]) -> Optional["FingerprintPair"]:
        """Read a pair stored against an output; None when incomplete."""
        input_hash = metadata.get(INPUT_HASH_KEY)
        args_hash = metadata.get(ARGS_HASH_KEY)
        if not input_hash or not args_hash:
            return None
        return cls(input_hash=input_hash, args_hash=args_hash)

    def to_metadata(self) -> dict:
        return {INPUT_HASH_KEY: self.input_hash, ARGS_HASH_KEY: self.args_hash}


def compute_file_hash(path: Union[str, Path]) -> str:
    """Compute SHA-256 hex digest of a file's content.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")

    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_args_hash(preset: str, arguments: str) -> str:
    """Compute SHA-256 hex digest of the effective argument set."""
    return hashlib.sha256(f"{preset} {arguments}".encode("utf-8")).hexdigest()


def file_stamp(path: Union[str, Path]) -> str:
    """Cheap change detector for a file: ``"<size>:<seconds>.<nanoseconds>"``.

    Matches ``stat -c '%s:%.9Y'`` so emitted scripts can validate it too.
    """
    stat = os.stat(path)
    seconds, nanoseconds = divmod(stat.st_mtime_ns, 1_000_000_000)
    return f"{stat.st_size}:{seconds}.{nanoseconds:09d}"
