"""Storage for fingerprints attached to input and output files.

Reads never fail: missing, unreadable or corrupt metadata comes back as
an empty mapping, which the executor treats as a cache miss. Writes may
raise ``OSError`` and callers decide whether that matters.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Union

import xattr

from .fingerprint import ARGS_HASH_KEY, INPUT_HASH_KEY, SELF_HASH_KEY, SELF_STAMP_KEY
from .models import CacheConfig

METADATA_KEYS = (INPUT_HASH_KEY, ARGS_HASH_KEY, SELF_HASH_KEY, SELF_STAMP_KEY)

PathLike = Union[str, Path]


class MetadataStore(ABC):
    """Abstract fingerprint store keyed by file path."""

    @abstractmethod
    def read(self, path: PathLike) -> Dict[str, str]:
        """Return all known metadata for ``path`` ({} when none or unreadable)."""
        pass

    @abstractmethod
    def write(self, path: PathLike, values: Dict[str, str]) -> None:
        """Store ``values`` for ``path``, keeping other existing keys.

        Raises:
            OSError: If the metadata cannot be written
        """
        pass

    @abstractmethod
    def clear(self, path: PathLike) -> None:
        """Forget all metadata for ``path``. Missing metadata is not an error."""
        pass


class XattrStore(MetadataStore):
    """Fingerprints as extended attributes, e.g. ``user.videoencoder.input_sha256``.

    Attributes live and die with the file, so replacing an output drops
    its stale fingerprints automatically.
    """

    def __init__(self, namespace: str = "user.videoencoder"):
        self.namespace = namespace

    def attribute_name(self, key: str) -> str:
        return f"{self.namespace}.{key}"

    def read(self, path: PathLike) -> Dict[str, str]:
        values = {}
        for key in METADATA_KEYS:
            try:
                raw = xattr.getxattr(str(path), self.attribute_name(key))
            except OSError:
                continue
            try:
                values[key] = raw.decode("utf-8").strip()
            except UnicodeDecodeError:
                continue
        return values

    def write(self, path: PathLike, values: Dict[str, str]) -> None:
        for key, value in values.items():
            xattr.setxattr(str(path), self.attribute_name(key), value.encode("utf-8"))

    def clear(self, path: PathLike) -> None:
        for key in METADATA_KEYS:
            try:
                xattr.removexattr(str(path), self.attribute_name(key))
            except OSError:
                continue


class SidecarStore(MetadataStore):
    """Fingerprints in a hidden JSON file next to the target.

    For filesystems without user extended attributes (some network
    shares, FAT/exFAT drives).
    """

    SUFFIX = ".fingerprints.json"

    def sidecar_path(self, path: PathLike) -> Path:
        path = Path(path)
        return path.with_name(f".{path.name}{self.SUFFIX}")

    def read(self, path: PathLike) -> Dict[str, str]:
        sidecar = self.sidecar_path(path)
        try:
            with open(sidecar, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if k in METADATA_KEYS and isinstance(v, str)}

    def write(self, path: PathLike, values: Dict[str, str]) -> None:
        data = self.read(path)
        data.update(values)
        sidecar = self.sidecar_path(path)
        with open(sidecar, "w", encoding="utf-8") as f:
            json.dump(data, f, sort_keys=True, indent=2)

    def clear(self, path: PathLike) -> None:
        self.sidecar_path(path).unlink(missing_ok=True)


def make_store(cache: CacheConfig) -> MetadataStore:
    """Build the metadata store selected by the cache settings."""
    if cache.backend == "sidecar":
        return SidecarStore()
    return XattrStore(cache.namespace)
