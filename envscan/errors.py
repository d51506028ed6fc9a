"""Exception hierarchy for the discovery and synthesis pipeline."""

from __future__ import annotations

from pathlib import Path


class EnvScanError(RuntimeError):
    """Base class for envscan failures."""


class ConfigError(EnvScanError):
    """Raised when the configuration file cannot be parsed."""


class PreconditionError(EnvScanError):
    """Raised when required credentials or inputs are missing before a run starts."""


class TraversalError(EnvScanError):
    """Raised when a package working tree cannot be walked."""


class ExtractionError(EnvScanError):
    """Raised when the analysis call for a single artifact fails."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class PersistenceError(EnvScanError):
    """Raised when a manifest cannot be read, written, or published."""


__all__ = [
    "ConfigError",
    "EnvScanError",
    "ExtractionError",
    "PersistenceError",
    "PreconditionError",
    "TraversalError",
]
