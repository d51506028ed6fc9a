"""Read and write the package manifest that holds ``version`` and ``agentConfig``."""

from __future__ import annotations

import json
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .errors import PersistenceError
from .models import PackageConfiguration

MANIFEST_FILENAME = "package.json"
CONFIG_KEY = "agentConfig"
_NEW_MANIFEST_MODE = 0o644


@dataclass
class ManifestDocument:
    """A decoded manifest plus the revision it was read at."""

    data: Dict[str, Any] = field(default_factory=dict)
    sha: Optional[str] = None

    @property
    def version(self) -> Optional[str]:
        value = self.data.get("version")
        return value if isinstance(value, str) else None

    @property
    def configuration(self) -> Optional[PackageConfiguration]:
        return PackageConfiguration.from_payload(self.data.get(CONFIG_KEY))

    def updated(
        self, configuration: PackageConfiguration, version: Optional[str]
    ) -> "ManifestDocument":
        """Return a copy with the new configuration and version; other keys are kept."""
        data = dict(self.data)
        data[CONFIG_KEY] = configuration.to_payload()
        if version is not None:
            data["version"] = version
        return ManifestDocument(data=data, sha=self.sha)

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def loads(
        cls, text: str, *, sha: Optional[str] = None, source: str = MANIFEST_FILENAME
    ) -> "ManifestDocument":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"{source} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{source} must contain a JSON object")
        return cls(data=data, sha=sha)


class ManifestStore(Protocol):
    """Get/put access to one package's manifest."""

    def read(self) -> Optional[ManifestDocument]: ...

    def write(self, document: ManifestDocument) -> None: ...


class LocalManifestStore:
    """Manifest stored in a working tree on disk."""

    def __init__(self, root: Path, filename: str = MANIFEST_FILENAME) -> None:
        self.path = Path(root) / filename

    def read(self) -> Optional[ManifestDocument]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc
        return ManifestDocument.loads(text, source=str(self.path))

    def write(self, document: ManifestDocument) -> None:
        """Replace the manifest atomically so readers never see a partial file."""
        directory = self.path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(document.dumps())
                os.chmod(tmp_name, self._target_mode())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc

    def _target_mode(self) -> int:
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            return _NEW_MANIFEST_MODE


class RemoteManifestStore:
    """Manifest stored at a branch of a hosted repository."""

    def __init__(
        self,
        client: Any,
        owner: str,
        repo: str,
        ref: str,
        *,
        path: str = MANIFEST_FILENAME,
        message: str = "chore: update agentConfig and bump version",
    ) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.ref = ref
        self.path = path
        self.message = message

    def read(self) -> Optional[ManifestDocument]:
        remote = self.client.get_file(self.owner, self.repo, self.path, ref=self.ref)
        if remote is None:
            return None
        return ManifestDocument.loads(
            remote.content, sha=remote.sha, source=f"{self.repo}/{self.path}"
        )

    def write(self, document: ManifestDocument) -> None:
        self.client.put_file(
            self.owner,
            self.repo,
            self.path,
            ref=self.ref,
            content=document.dumps(),
            sha=document.sha,
            message=self.message,
        )


__all__ = [
    "CONFIG_KEY",
    "LocalManifestStore",
    "MANIFEST_FILENAME",
    "ManifestDocument",
    "ManifestStore",
    "RemoteManifestStore",
]
