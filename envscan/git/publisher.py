"""Git plumbing for cloning packages and publishing manifest updates."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, Sequence

from ..errors import EnvScanError, PersistenceError


class Publisher:
    """Clones working trees and commits/pushes updated files."""

    def __init__(
        self,
        runner: Callable[..., str] | None = None,
        *,
        user_name: str = "Agent Config Scanner",
        user_email: str = "bot@elizaos.ai",
    ) -> None:
        self._runner = runner or self._default_runner
        self.user_name = user_name
        self.user_email = user_email

    def clone(self, url: str, dest: Path, *, branch: str | None = None) -> Path:
        """Clone ``url`` into ``dest`` (which must not exist yet)."""
        args = ["git", "clone", "--depth", "1"]
        if branch:
            args.extend(["-b", branch])
        args.extend([url, str(dest)])
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._run(args, cwd=dest.parent)
        except subprocess.CalledProcessError as exc:
            # The URL may embed a token; do not chain the failing command.
            raise EnvScanError(f"Failed to clone into {dest.name}: exit {exc.returncode}") from None
        return dest

    def commit_and_push(
        self,
        repo_path: str | Path,
        files: Sequence[Path | str],
        *,
        message: str,
        push: bool = True,
    ) -> bool:
        """Stage ``files`` and commit them; ``False`` when there is nothing to commit."""
        repo = Path(repo_path)
        if not (repo / ".git").exists():
            return False

        try:
            self._run(["git", "config", "user.name", self.user_name], cwd=repo)
            self._run(["git", "config", "user.email", self.user_email], cwd=repo)

            status = self._run(["git", "status", "--porcelain"], cwd=repo, capture_output=True)
            if not status.strip():
                return False

            for rel in (self._to_relative(repo, Path(file)) for file in files):
                self._run(["git", "add", rel], cwd=repo)
            self._run(["git", "commit", "-m", message], cwd=repo)
            if push:
                self._run(["git", "push", "origin", "HEAD"], cwd=repo)
        except subprocess.CalledProcessError as exc:
            command = " ".join(exc.cmd[:2]) if isinstance(exc.cmd, list) else str(exc.cmd)
            raise PersistenceError(
                f"{command} failed in {repo.name}: exit {exc.returncode}"
            ) from exc
        return True

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _to_relative(repo: Path, file_path: Path) -> str:
        try:
            return file_path.relative_to(repo).as_posix()
        except ValueError:
            return file_path.as_posix()

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        if capture_output:
            return completed.stdout
        return ""
