"""Selects the source and documentation files of a package for analysis."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator, List

from .config import DEFAULT_EXCLUDED_DIRS, DEFAULT_EXTENSIONS
from .errors import TraversalError
from .logging import get_logger
from .models import Artifact

_logger = get_logger("artifacts")


class ArtifactSelector:
    """Walks a working tree and returns the files eligible for analysis."""

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        exclude_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
    ) -> None:
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.exclude_dirs = frozenset(exclude_dirs)

    def select(self, root: str | Path) -> List[Path]:
        """Return matching files under ``root`` in a deterministic order.

        Unreadable subtrees are logged and skipped; the files collected so far are
        still returned.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.is_dir():
            raise TraversalError(f"Package path is not a directory: {root}")

        files = sorted(
            self._iter_files(root_path),
            key=lambda path: path.relative_to(root_path).as_posix(),
        )
        _logger.debug("Selected %d artifacts under %s", len(files), root_path)
        return files

    def _iter_files(self, root: Path) -> Iterator[Path]:
        def _on_error(error: OSError) -> None:
            _logger.warning("Skipping unreadable path %s: %s", error.filename, error.strerror)

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            dirnames[:] = [name for name in dirnames if name not in self.exclude_dirs]
            current_dir = Path(dirpath)
            for filename in filenames:
                if self._matches(filename):
                    yield current_dir / filename

    def _matches(self, filename: str) -> bool:
        return filename.lower().endswith(self.extensions)


def read_artifact(path: Path) -> Artifact:
    """Load an artifact's text; undecodable bytes are replaced rather than fatal."""
    content = path.read_text(encoding="utf-8", errors="replace")
    return Artifact(path=path, content=content)


__all__ = ["ArtifactSelector", "read_artifact"]
