"""CLI entry point for inspecting and managing CI runs of a component."""

import argparse
import asyncio
import json
import logging
import os
import re
import sys
from collections.abc import Sequence
from dataclasses import asdict
from typing import Any

from tssc_ci.errors import CIError, PollTimeoutError
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient, KubeConfig
from tssc_ci.models.cancel import CancelOptions, CancelResult
from tssc_ci.models.run import Run
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.loading import open_provider

LOG_LEVEL_ENV = "TSSC_CI_LOG_LEVEL"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_TIMEOUT = 2
EXIT_ERROR = 3

TRIGGER_CHOICES = ("push", "pull_request", "manual", "scheduled", "api", "unknown")
STATUS_CHOICES = ("pending", "running", "success", "failure", "unknown")

log = logging.getLogger("tssc_ci")


def format_run(run: Run) -> dict[str, Any]:
    """Format a run for JSON output."""
    data = asdict(run)
    data["created_at"] = run.created_at.isoformat() if run.created_at else None
    data["results"] = dict(run.results)
    data["finished"] = run.finished
    return data


def format_cancel_result(result: CancelResult) -> dict[str, Any]:
    """Format a cancellation result for JSON output."""
    return {
        "total": result.total,
        "cancelled": result.cancelled,
        "failed": result.failed,
        "skipped": result.skipped,
        "balanced": result.balanced,
        "systemic_failure": result.systemic_failure,
        "details": [asdict(detail) for detail in result.details],
        "errors": [
            {
                "run_key": error.run_key,
                "message": error.message,
                "status_code": error.status_code,
            }
            for error in result.errors
        ],
        "batches": [asdict(batch) for batch in result.batches],
    }


def parse_run_key(value: str) -> int | str:
    """Numeric run keys are integers; anything else stays a string."""
    return int(value) if value.isdigit() else value


def emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def find_run(provider: CIProvider[Any], args: argparse.Namespace) -> int:
    event = RepoEvent(repository=args.repository, sha=args.sha, kind=args.event)
    run = await provider.get_run_for(event, status=args.status)
    if run is None:
        log.info("No run found for %s@%s", args.repository, args.sha)
        emit(None)
        return EXIT_FAILURE
    emit(format_run(run))
    return EXIT_OK


async def wait_run(provider: CIProvider[Any], args: argparse.Namespace) -> int:
    run = Run(
        provider=provider.ci_type,
        job_key=args.job_key,
        run_key=parse_run_key(args.run_key),
    )
    try:
        status = await provider.wait_for_run_finished(
            run, timeout=args.timeout, poll_interval=args.poll_interval
        )
    except PollTimeoutError as exc:
        log.error("%s", exc)
        last = exc.last_value if isinstance(exc.last_value, Run) else run
        emit({"status": "timeout", "run": format_run(last)})
        return EXIT_TIMEOUT
    emit({"status": status})
    return EXIT_OK if status == "success" else EXIT_FAILURE


async def wait_all(provider: CIProvider[Any], args: argparse.Namespace) -> int:
    try:
        await provider.wait_for_all_finished(
            timeout=args.timeout, poll_interval=args.poll_interval
        )
    except PollTimeoutError as exc:
        log.error("%s", exc)
        in_flight = exc.last_value or []
        emit({"status": "timeout", "in_flight": [format_run(r) for r in in_flight]})
        return EXIT_TIMEOUT
    emit({"status": "finished"})
    return EXIT_OK


async def logs(provider: CIProvider[Any], args: argparse.Namespace) -> int:
    run = Run(
        provider=provider.ci_type,
        job_key=args.job_key,
        run_key=parse_run_key(args.run_key),
    )
    print(await provider.get_logs(run))
    return EXIT_OK


async def cancel_all(provider: CIProvider[Any], args: argparse.Namespace) -> int:
    options = CancelOptions(
        event_type=args.event_type,
        branch=args.branch,
        include_completed=args.include_completed,
        exclude_patterns=[re.compile(pattern) for pattern in args.exclude],
        concurrency=args.concurrency,
        dry_run=args.dry_run,
    )
    result = await provider.cancel_all(options)
    emit(format_cancel_result(result))
    if not result.balanced or result.errors:
        return EXIT_FAILURE
    return EXIT_OK


COMMANDS = {
    "find-run": find_run,
    "wait-run": wait_run,
    "wait-all": wait_all,
    "logs": logs,
    "cancel-all": cancel_all,
}


async def run(args: argparse.Namespace) -> int:
    """Open the provider and run the selected command, returning an exit code."""
    if args.kube_config:
        kube_config = KubeConfig.model_validate(json.loads(args.kube_config))
    else:
        kube_config = KubeConfig.in_cluster()
    settings = json.loads(args.provider_config) if args.provider_config else {}

    async with KubeClient.from_config(kube_config) as kube:
        async with open_provider(
            args.provider,
            kube=kube,
            component_name=args.component,
            **settings,
        ) as provider:
            return await COMMANDS[args.command](provider, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find, wait for and cancel CI runs of a TSSC component"
    )
    parser.add_argument(
        "--provider",
        required=True,
        help="CI type (tekton, jenkins, gitlab-ci, github-actions, azure)",
    )
    parser.add_argument("--component", required=True, help="Component name")
    parser.add_argument(
        "--kube-config",
        default="",
        help="JSON Kubernetes connection settings; in-cluster when omitted",
    )
    parser.add_argument(
        "--provider-config",
        default="",
        help="JSON provider settings merged over the integration secret",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    find = commands.add_parser("find-run", help="Find the run for a commit")
    find.add_argument("--repository", required=True)
    find.add_argument("--sha", required=True)
    find.add_argument("--event", choices=TRIGGER_CHOICES, default="unknown")
    find.add_argument("--status", choices=STATUS_CHOICES, default="unknown")

    for name, help_text in (
        ("wait-run", "Wait for a run to finish"),
        ("logs", "Print the logs of a run"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--job-key", required=True)
        sub.add_argument("--run-key", required=True)
        if name == "wait-run":
            sub.add_argument("--timeout", type=float, default=None)
            sub.add_argument("--poll-interval", type=float, default=None)

    wait = commands.add_parser("wait-all", help="Wait until no run is in flight")
    wait.add_argument("--timeout", type=float, default=None)
    wait.add_argument("--poll-interval", type=float, default=None)

    cancel = commands.add_parser("cancel-all", help="Cancel in-flight runs")
    cancel.add_argument("--event-type", choices=TRIGGER_CHOICES, default=None)
    cancel.add_argument("--branch", default=None)
    cancel.add_argument("--include-completed", action="store_true")
    cancel.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Regex over run names to leave alone; may be repeated",
    )
    cancel.add_argument("--concurrency", type=int, default=None)
    cancel.add_argument("--dry-run", action="store_true")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=os.environ.get(LOG_LEVEL_ENV, "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        exit_code = asyncio.run(run(args))
    except (CIError, NotImplementedError) as exc:
        log.error("%s", exc)
        exit_code = EXIT_ERROR
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
