import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import DocumentError

DEFAULT_DOCUMENT_NAME = "VideoEncoder.yaml"


def find_documents(
    source: str,
    recursive: bool = True,
    filename: str = DEFAULT_DOCUMENT_NAME,
) -> List[Path]:
    """
    Find job-description files below a directory.

    Args:
        source: Directory to search.
        recursive: Whether to descend into subdirectories (following symlinks).
        filename: Exact file name a job-description file must have.

    Returns:
        List of Path objects, sorted component by component.
    """
    path = Path(source)
    if not path.is_dir():
        raise FileNotFoundError(f"Source directory not found: {source}")

    files = []

    if recursive:
        for root, _, filenames in os.walk(path, followlinks=True):
            for name in filenames:
                p = Path(root) / name
                if name == filename and p.is_file():
                    files.append(p)
    else:
        for item in path.iterdir():
            if item.name == filename and item.is_file():
                files.append(item)

    # Deterministic sort
    files.sort(key=lambda p: p.parts)
    return files


def load_document(path: Path) -> Any:
    """Parse one job-description file.

    Every scalar is kept as a string, so values such as ``Season: 01``
    keep their leading zeros.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.load(f, Loader=yaml.BaseLoader)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise DocumentError(f"Error parsing config\n{e}", document=path) from e


def discover_documents(
    source: str,
    recursive: bool = True,
    filename: str = DEFAULT_DOCUMENT_NAME,
) -> Dict[Path, Any]:
    """
    Find and parse every job-description file below ``source``.

    Returns:
        Mapping of discovered path to parsed document, in path order.

    Raises:
        FileNotFoundError: If ``source`` is not a directory
        DocumentError: If a file fails to parse, or the same file is
            reachable through two paths (e.g. via a directory symlink)
    """
    documents: Dict[Path, Any] = {}
    seen: Dict[Path, Path] = {}

    for path in find_documents(source, recursive=recursive, filename=filename):
        canonical = path.resolve()
        if canonical in seen:
            raise DocumentError(
                f"Duplicate config file (also found at {seen[canonical]})", document=path
            )
        seen[canonical] = path
        documents[path] = load_document(path)

    return documents
