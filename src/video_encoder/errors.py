"""Exception types shared by discovery, resolution and job execution."""

from pathlib import Path
from typing import Optional, Union


class DocumentError(ValueError):
    """A job-description document is malformed or cannot be used.

    Raised during discovery (parse errors, duplicates) and resolution
    (missing keys, wrong value types). Resolution is all-or-nothing per
    document, so no jobs from the offending document survive.
    """

    def __init__(
        self,
        message: str,
        document: Optional[Union[str, Path]] = None,
        tree_path: Optional[str] = None,
    ):
        self.message = message
        self.document = Path(document) if document is not None else None
        self.tree_path = tree_path
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message
        if self.tree_path:
            text = f"{text} (at {self.tree_path})"
        if self.document is not None:
            text = f"{self.document}: {text}"
        return text

    def with_document(self, document: Union[str, Path]) -> "DocumentError":
        """Return a copy of this error attributed to ``document``."""
        return DocumentError(self.message, document=document, tree_path=self.tree_path)


class JobError(RuntimeError):
    """A single job failed at runtime. Fatal for that job only."""
