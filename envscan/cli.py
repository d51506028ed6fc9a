"""CLI entrypoints for envscan commands."""

from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path

from .config import EnvScanConfig, load_config, load_credentials
from .errors import ConfigError, EnvScanError, PreconditionError
from .logging import configure_logging, get_logger
from .models import RunSummary
from .orchestrator import (
    LocalWorkspaceProvider,
    RunOptions,
    build_driver,
    build_remote_components,
)


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_dry_run_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Analyze and report without writing or publishing manifests.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envscan",
        description="Discover environment variables in plugin packages and sync agentConfig.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .envscan.yml or the directory containing it.",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan every repository of the organization.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_dry_run_option(scan_parser)
    scan_parser.add_argument("--org", default=None, help="Organization to scan.")
    scan_parser.add_argument("--branch", default=None, help="Branch to analyze and update.")
    scan_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Stop after this many packages were updated (use 1 for a trial run).",
    )
    scan_parser.add_argument(
        "repos",
        nargs="*",
        help="Only process these repositories instead of listing the organization.",
    )

    local_parser = subparsers.add_parser(
        "local",
        help="Analyze local working trees without cloning or pushing.",
    )
    _add_verbose_option(local_parser, suppress_default=True)
    _add_dry_run_option(local_parser)
    local_parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Package directories (defaults to current directory).",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Only analyze packages under this directory (defaults to current directory).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for envscan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file
    )

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"envscan: {exc}\n")

    try:
        if args.command == "scan":
            summary = _run_scan(config, args)
        elif args.command == "local":
            summary = _run_local(config, args)
        elif args.command == "serve":
            _run_serve(args)
            return
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except PreconditionError as exc:
        parser.exit(1, f"envscan: {exc}\n")
    except EnvScanError as exc:
        parser.exit(1, f"envscan {args.command} failed: {exc}\nRun with --verbose for more details.\n")

    _print_summary(summary)


def _run_scan(config: EnvScanConfig, args: argparse.Namespace) -> RunSummary:
    if args.org:
        config.github.org = args.org
    if args.branch:
        config.github.branch = args.branch
    credentials = load_credentials()
    source, workspaces = build_remote_components(config, credentials)
    driver = build_driver(config, workspaces, api_key=credentials.openai_api_key)
    options = RunOptions(
        limit=args.limit,
        dry_run=bool(args.dry_run),
        package_delay=config.github.package_delay,
    )
    workspace_dir = config.github.workspace_dir
    if workspace_dir.exists():
        shutil.rmtree(workspace_dir)
    try:
        names = list(args.repos) or source.list()
        return asyncio.run(driver.run(names, options))
    finally:
        shutil.rmtree(workspace_dir, ignore_errors=True)


def _run_local(config: EnvScanConfig, args: argparse.Namespace) -> RunSummary:
    credentials = load_credentials(require_github=False)
    driver = build_driver(
        config,
        LocalWorkspaceProvider(config.github.manifest_path),
        api_key=credentials.openai_api_key,
    )
    return asyncio.run(driver.run(args.paths, RunOptions(dry_run=bool(args.dry_run))))


def _run_serve(args: argparse.Namespace) -> None:
    from .service import run_service

    run_service(host=args.host, port=args.port, root=args.root)


def _print_summary(summary: RunSummary) -> None:
    logger = get_logger("cli")
    for outcome in summary.outcomes:
        detail = ""
        if outcome.new_version and outcome.old_version != outcome.new_version:
            detail = f" ({outcome.old_version} -> {outcome.new_version})"
        elif outcome.reason:
            detail = f" ({outcome.reason})"
        elif outcome.error is not None:
            detail = f" ({outcome.error})"
        print(f"{outcome.name}: {outcome.status.value}{detail}")
    logger.debug("Outcome counts: %s", summary.counts())


if __name__ == "__main__":
    main(sys.argv[1:])
