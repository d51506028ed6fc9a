"""Per-package discovery and synthesis pipeline."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, TypeVar

from .artifacts import ArtifactSelector
from .batching import BatchCoordinator, Sleeper
from .config import Credentials, EnvScanConfig
from .errors import PersistenceError, PreconditionError
from .extractor import DeclarationExtractor
from .git.publisher import Publisher
from .github.client import GitHubClient, GitHubError
from .llm.runner import LLMRunner
from .logging import get_logger
from .manifest import LocalManifestStore, ManifestStore, RemoteManifestStore
from .merge import dedupe_declarations, has_configuration_changed, merge_declarations
from .models import PackageOutcome, PackageStatus, RunSummary
from .versioning import VersionStrategy, bump_patch, resolve_version_strategy

T = TypeVar("T")


class SkipPackage(Exception):
    """Raised by a workspace provider when a package is not eligible for processing."""


@dataclass
class PackageWorkspace:
    """Working tree and manifest access for one package."""

    name: str
    root: Path
    store: ManifestStore
    publish: Optional[Callable[[], bool]] = None
    cleanup: Optional[Callable[[], None]] = None


class WorkspaceProvider(Protocol):
    def open(self, name: str) -> PackageWorkspace: ...


class LocalWorkspaceProvider:
    """Treats ``name`` as a path to an existing working tree; nothing is published."""

    def __init__(self, manifest_path: str = "package.json") -> None:
        self.manifest_path = manifest_path

    def open(self, name: str) -> PackageWorkspace:
        root = Path(name).expanduser().resolve()
        if not root.is_dir():
            raise FileNotFoundError(f"Package path not found: {name}")
        return PackageWorkspace(
            name=root.name,
            root=root,
            store=LocalManifestStore(root, self.manifest_path),
        )


class CloneWorkspaceProvider:
    """Clones the target branch of each repository into a scratch directory."""

    def __init__(
        self,
        client: GitHubClient,
        publisher: Publisher,
        *,
        org: str,
        branch: str,
        workspace_dir: Path,
        token: str | None = None,
        manifest_path: str = "package.json",
        mode: str = "git",
        commit_message: str = "chore: update agentConfig and bump version",
    ) -> None:
        self.client = client
        self.publisher = publisher
        self.org = org
        self.branch = branch
        self.workspace_dir = Path(workspace_dir)
        self.token = token
        self.manifest_path = manifest_path
        self.mode = mode
        self.commit_message = commit_message
        self.logger = get_logger("workspace")

    def open(self, name: str) -> PackageWorkspace:
        try:
            has_branch = self.client.branch_exists(self.org, name, self.branch)
        except GitHubError as exc:
            self.logger.warning("Could not check branches for %s: %s", name, exc)
            raise SkipPackage(f"branch check failed for {self.branch}") from exc
        if not has_branch:
            raise SkipPackage(f"no {self.branch} branch found")

        dest = self.workspace_dir / name
        if dest.exists():
            shutil.rmtree(dest)
        self.publisher.clone(self._clone_url(name), dest, branch=self.branch)

        def _cleanup() -> None:
            shutil.rmtree(dest, ignore_errors=True)

        if self.mode == "api":
            store: ManifestStore = RemoteManifestStore(
                self.client,
                self.org,
                name,
                self.branch,
                path=self.manifest_path,
                message=self.commit_message,
            )
            return PackageWorkspace(name=name, root=dest, store=store, cleanup=_cleanup)

        manifest_file = dest / self.manifest_path

        def _publish() -> bool:
            return self.publisher.commit_and_push(
                dest, [manifest_file], message=self.commit_message
            )

        return PackageWorkspace(
            name=name,
            root=dest,
            store=LocalManifestStore(dest, self.manifest_path),
            publish=_publish,
            cleanup=_cleanup,
        )

    def _clone_url(self, name: str) -> str:
        url = self.client.clone_url(self.org, name)
        if self.token:
            return url.replace("https://", f"https://x-access-token:{self.token}@", 1)
        return url


class RepositorySource:
    """Lists the repositories of an organization that should be scanned."""

    def __init__(self, client: GitHubClient, org: str, exclude: Iterable[str] = ()) -> None:
        self.client = client
        self.org = org
        self.exclude = set(exclude)
        self.logger = get_logger("repositories")

    def list(self) -> List[str]:
        names = self.client.list_repositories(self.org)
        self.logger.info("Found %d repositories in %s", len(names), self.org)
        kept = [name for name in names if name not in self.exclude]
        if len(kept) != len(names):
            self.logger.info(
                "Filtered out %d repositories (%s)",
                len(names) - len(kept),
                ", ".join(sorted(self.exclude)),
            )
        return kept


@dataclass
class RunOptions:
    """Knobs for one run of the driver."""

    limit: Optional[int] = None
    dry_run: bool = False
    package_delay: float = 0.0


class SynthesisDriver:
    """Runs selection, extraction, merge, change detection and persistence per package."""

    def __init__(
        self,
        workspaces: WorkspaceProvider,
        coordinator: BatchCoordinator,
        *,
        selector: ArtifactSelector | None = None,
        version_strategy: VersionStrategy = bump_patch,
        sleep: Sleeper | None = None,
    ) -> None:
        self.workspaces = workspaces
        self.coordinator = coordinator
        self.selector = selector or ArtifactSelector()
        self.version_strategy = version_strategy
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger("orchestrator")

    async def run(self, names: Iterable[str], options: RunOptions | None = None) -> RunSummary:
        """Process packages one at a time; one failure never stops the run."""
        options = options or RunOptions()
        summary = RunSummary()
        updated = 0
        for index, name in enumerate(names):
            if options.limit is not None and updated >= options.limit:
                self.logger.info("Reached limit of %d updated package(s)", options.limit)
                break
            if index and options.package_delay > 0:
                await self._sleep(options.package_delay)
            outcome = await self.process_package(name, dry_run=options.dry_run)
            summary.add(outcome)
            if outcome.status is PackageStatus.UPDATED:
                updated += 1

        counts = summary.counts()
        self.logger.info(
            "Scan completed: %s",
            ", ".join(f"{status}={count}" for status, count in counts.items()),
        )
        return summary

    async def process_package(self, name: str, *, dry_run: bool = False) -> PackageOutcome:
        outcome = PackageOutcome(name=name)
        workspace: PackageWorkspace | None = None
        try:
            workspace = await self._call(self.workspaces.open, name)
            outcome.name = workspace.name
            await self._synthesize(workspace, outcome, dry_run=dry_run)
        except SkipPackage as exc:
            outcome.status = PackageStatus.SKIPPED
            outcome.reason = str(exc)
            self.logger.info("%s: Skipping - %s", name, exc)
        except Exception as exc:
            outcome.status = PackageStatus.FAILED
            outcome.error = exc
            self._log_exception(f"{name}: processing failed", exc)
        finally:
            if workspace is not None and workspace.cleanup is not None:
                workspace.cleanup()
        return outcome

    async def _synthesize(
        self, workspace: PackageWorkspace, outcome: PackageOutcome, *, dry_run: bool
    ) -> None:
        name = workspace.name
        document = await self._call(workspace.store.read)
        prior = document.configuration if document is not None else None

        paths = await self._call(self.selector.select, workspace.root)
        self.logger.info("%s: found %d files to analyze", name, len(paths))
        report = await self.coordinator.run(paths, prior)
        outcome.status = PackageStatus.ANALYZED
        outcome.failures = len(report.failures)

        unique = dedupe_declarations(report.declarations)
        outcome.discovered = [declaration.name for declaration in unique]
        self.logger.info(
            "%s: analysis complete, %d total variables, %d unique",
            name,
            len(report.declarations),
            len(unique),
        )
        if not unique:
            outcome.status = PackageStatus.SKIPPED
            outcome.reason = "no environment variables found"
            self.logger.info("%s: No environment variables found", name)
            return
        self.logger.info("%s: discovered %s", name, ", ".join(outcome.discovered))

        merged = merge_declarations(prior, unique)
        if not has_configuration_changed(prior, merged):
            outcome.status = PackageStatus.UNCHANGED
            self.logger.info("%s: No changes needed - configuration is up to date", name)
            return

        if document is None:
            raise PersistenceError(f"{name} has no manifest to update")

        outcome.old_version = document.version
        if document.version is not None:
            outcome.new_version = self.version_strategy(document.version)
        updated = document.updated(merged, outcome.new_version)

        if dry_run:
            outcome.status = PackageStatus.UPDATED
            outcome.reason = "dry-run"
            self.logger.info("%s: Dry-run, manifest not written", name)
            return

        await self._call(workspace.store.write, updated)
        if workspace.publish is not None:
            outcome.published = await self._call(workspace.publish)
        outcome.status = PackageStatus.UPDATED
        self.logger.info(
            "%s: Updated (%s) version %s -> %s%s",
            name,
            ", ".join(outcome.discovered),
            outcome.old_version or "unknown",
            outcome.new_version or "unknown",
            "" if workspace.publish is None or outcome.published else " (nothing to commit)",
        )

    @staticmethod
    async def _call(func: Callable[..., T], *args: object) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


def build_coordinator(
    config: EnvScanConfig,
    *,
    api_key: str | None = None,
    runner: LLMRunner | None = None,
    sleep: Sleeper | None = None,
) -> BatchCoordinator:
    """Create the process-wide coordinator shared by every package in a run."""
    if runner is None:
        runner = LLMRunner(
            config.llm.model,
            base_url=config.llm.base_url,
            max_tokens=config.llm.max_tokens,
            api_key=api_key or config.llm.api_key,
            request_timeout=config.llm.request_timeout,
        )
    extractor = DeclarationExtractor(runner, max_artifact_chars=config.scan.max_artifact_chars)
    return BatchCoordinator(
        extractor,
        batch_size=config.scan.batch_size,
        delay=config.scan.batch_delay,
        sleep=sleep,
    )


def build_driver(
    config: EnvScanConfig,
    workspaces: WorkspaceProvider,
    *,
    api_key: str | None = None,
    runner: LLMRunner | None = None,
    sleep: Sleeper | None = None,
) -> SynthesisDriver:
    return SynthesisDriver(
        workspaces,
        build_coordinator(config, api_key=api_key, runner=runner, sleep=sleep),
        selector=ArtifactSelector(config.scan.extensions, config.scan.exclude_dirs),
        version_strategy=resolve_version_strategy(config.publish.version_strategy),
        sleep=sleep,
    )


def build_remote_components(
    config: EnvScanConfig, credentials: Credentials
) -> tuple[RepositorySource, CloneWorkspaceProvider]:
    if not credentials.github_token:
        raise PreconditionError("GITHUB_TOKEN environment variable is not set")
    client = GitHubClient(credentials.github_token)
    publisher = Publisher(
        user_name=config.publish.user_name, user_email=config.publish.user_email
    )
    source = RepositorySource(client, config.github.org, config.github.exclude_repos)
    workspaces = CloneWorkspaceProvider(
        client,
        publisher,
        org=config.github.org,
        branch=config.github.branch,
        workspace_dir=config.github.workspace_dir,
        token=credentials.github_token,
        manifest_path=config.github.manifest_path,
        mode=config.publish.mode,
        commit_message=config.publish.commit_message,
    )
    return source, workspaces


__all__ = [
    "CloneWorkspaceProvider",
    "LocalWorkspaceProvider",
    "PackageWorkspace",
    "RepositorySource",
    "RunOptions",
    "SkipPackage",
    "SynthesisDriver",
    "WorkspaceProvider",
    "build_coordinator",
    "build_driver",
    "build_remote_components",
]
