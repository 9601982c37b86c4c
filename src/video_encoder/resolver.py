"""Resolve a job-description document into an ordered list of jobs.

A document is a list of top-level nodes. Each node is either episodic
(``Seasons`` -> ``IntakeFiles`` -> ``Episodes``), a movie grouping
(``Movies`` -> ``IntakeFiles`` -> ``Outputs``), both, or neither. At every
level the four cascading keys (``Source``, ``Destination``, ``Name``,
``EncodingOptions``) extend the values inherited from the parent level;
see ``ResolvedAttributes.derive``.

Example document::

    - Name: "Show"
      Seasons:
        - Season: "S01"
          IntakeFiles:
            - Source: "disc1.mkv"
              Episodes:
                - Episode: "E01"
                  Title: "Pilot"

yields one job writing ``<destination>/Show - S01E01 - Pilot.m4v``.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import DocumentError
from .models import Job, ResolvedAttributes, scalar_text

OUTPUT_EXTENSION = ".m4v"

SEASONS_KEY = "Seasons"
MOVIES_KEY = "Movies"
INTAKE_FILES_KEY = "IntakeFiles"
EPISODES_KEY = "Episodes"
OUTPUTS_KEY = "Outputs"
SEASON_KEY = "Season"
EPISODE_KEY = "Episode"
TITLE_KEY = "Title"
MOVIE_KEY = "Movie"


class Layout(str, Enum):
    """Shape of a top-level node, decided by which container keys it has."""

    EPISODIC = "episodic"
    MOVIE_GROUPING = "movie_grouping"
    NEITHER = "neither"


def detect_layouts(node: Mapping[str, Any]) -> Tuple[Layout, ...]:
    """Return every layout present on ``node``, episodic first."""
    layouts = []
    if SEASONS_KEY in node:
        layouts.append(Layout.EPISODIC)
    if MOVIES_KEY in node:
        layouts.append(Layout.MOVIE_GROUPING)
    return tuple(layouts) or (Layout.NEITHER,)


def _children(node: Mapping[str, Any], key: str, where: str) -> Iterator[Tuple[str, Dict]]:
    """Yield ``(tree_path, child)`` for each entry of the list under ``key``."""
    if key not in node:
        raise DocumentError(f"Missing required key '{key}'", tree_path=where)
    items = node[key]
    container_path = f"{where}.{key}"
    if not isinstance(items, list):
        raise DocumentError(
            f"Expected a list under '{key}', got {type(items).__name__}",
            tree_path=container_path,
        )
    for index, item in enumerate(items):
        item_path = f"{container_path}[{index}]"
        if not isinstance(item, dict):
            raise DocumentError(
                f"Expected a mapping, got {type(item).__name__}", tree_path=item_path
            )
        yield item_path, item


def _required_text(node: Mapping[str, Any], key: str, where: str) -> str:
    if key not in node:
        raise DocumentError(f"Missing required key '{key}'", tree_path=where)
    try:
        return scalar_text(node[key])
    except TypeError as e:
        raise DocumentError(f"Invalid value for '{key}': {e}", tree_path=f"{where}.{key}") from e


def _derive(parent: ResolvedAttributes, node: Mapping[str, Any], where: str) -> ResolvedAttributes:
    try:
        return parent.derive(node)
    except TypeError as e:
        raise DocumentError(f"Invalid attribute value: {e}", tree_path=where) from e


def _episode_filename(name: str, season: str, episode: str, title: str) -> str:
    return f"{name} - {season}{episode} - {title}{OUTPUT_EXTENSION}"


def _movie_filename(name: str, movie: str) -> str:
    return f"{name}{movie}{OUTPUT_EXTENSION}"


def _resolve_episodic(
    node: Mapping[str, Any],
    attrs: ResolvedAttributes,
    where: str,
    document_path: Optional[Path],
) -> List[Job]:
    jobs = []
    for season_path, season in _children(node, SEASONS_KEY, where):
        season_attrs = _derive(attrs, season, season_path)
        for intake_path, intake_file in _children(season, INTAKE_FILES_KEY, season_path):
            intake_attrs = _derive(season_attrs, intake_file, intake_path)
            for episode_path, episode in _children(intake_file, EPISODES_KEY, intake_path):
                episode_attrs = _derive(intake_attrs, episode, episode_path)
                filename = _episode_filename(
                    episode_attrs.name,
                    _required_text(season, SEASON_KEY, season_path),
                    _required_text(episode, EPISODE_KEY, episode_path),
                    _required_text(episode, TITLE_KEY, episode_path),
                )
                jobs.append(
                    Job(
                        input=episode_attrs.source,
                        output=episode_attrs.destination / filename,
                        arguments=episode_attrs.encoding_options,
                        document=document_path,
                    )
                )
    return jobs


def _resolve_movies(
    node: Mapping[str, Any],
    attrs: ResolvedAttributes,
    where: str,
    document_path: Optional[Path],
) -> List[Job]:
    jobs = []
    for movie_path, movie in _children(node, MOVIES_KEY, where):
        movie_attrs = _derive(attrs, movie, movie_path)
        for intake_path, intake_file in _children(movie, INTAKE_FILES_KEY, movie_path):
            intake_attrs = _derive(movie_attrs, intake_file, intake_path)
            for output_path, output in _children(intake_file, OUTPUTS_KEY, intake_path):
                output_attrs = _derive(intake_attrs, output, output_path)
                filename = _movie_filename(
                    output_attrs.name, _required_text(movie, MOVIE_KEY, movie_path)
                )
                jobs.append(
                    Job(
                        input=output_attrs.source,
                        output=output_attrs.destination / filename,
                        arguments=output_attrs.encoding_options,
                        document=document_path,
                    )
                )
    return jobs


def resolve(
    document: Any,
    base_source: Path,
    base_destination: Path,
    document_path: Optional[Path] = None,
) -> List[Job]:
    """Resolve one parsed document into jobs, in document order.

    Args:
        document: Parsed document; a list of top-level mappings (or None/empty)
        base_source: Inherited ``Source`` of every top-level node
        base_destination: Inherited ``Destination`` of every top-level node
        document_path: Where the document was loaded from, for error reports

    Returns:
        One Job per ``Episode``/``Output`` leaf, depth-first, left to right.

    Raises:
        DocumentError: On any structural problem. No partial result is returned.
    """
    if document is None or document == "":
        return []
    if not isinstance(document, list):
        raise DocumentError(
            f"Expected a list of entries at the top level, got {type(document).__name__}",
            document=document_path,
            tree_path="<root>",
        )

    root = ResolvedAttributes.root(Path(base_source), Path(base_destination))
    jobs: List[Job] = []

    try:
        for index, node in enumerate(document):
            where = f"[{index}]"
            if not isinstance(node, dict):
                raise DocumentError(
                    f"Expected a mapping, got {type(node).__name__}", tree_path=where
                )
            attrs = _derive(root, node, where)

            for layout in detect_layouts(node):
                if layout == Layout.EPISODIC:
                    jobs.extend(_resolve_episodic(node, attrs, where, document_path))
                elif layout == Layout.MOVIE_GROUPING:
                    jobs.extend(_resolve_movies(node, attrs, where, document_path))
    except DocumentError as e:
        if document_path is not None and e.document is None:
            raise e.with_document(document_path) from e
        raise

    return jobs


def resolve_documents(documents: Mapping[Path, Any], base_destination: Path) -> List[Job]:
    """Resolve every discovered document, each rooted at its own directory.

    The first bad document aborts the whole resolution.
    """
    jobs: List[Job] = []
    for path, document in documents.items():
        jobs.extend(resolve(document, Path(path).parent, Path(base_destination), path))
    return jobs
