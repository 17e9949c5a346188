"""Correlation of repository events with the CI runs they provoked."""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import datetime, timezone

from tssc_ci.errors import ExhaustedError, NotFoundError
from tssc_ci.git import RepoEvent
from tssc_ci.models.run import Run, RunStatus, TriggerKind
from tssc_ci.polling import (
    DEFAULT_POLICY,
    Done,
    KeepWaiting,
    RetryDecision,
    RetryPolicy,
    run_until,
)

log = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_sha(sha: str | None) -> str:
    return (sha or "").strip().lower()


def sha_matches(run_sha: str | None, query_sha: str | None) -> bool:
    """Match SHAs case-insensitively, allowing truncation on either side."""
    left, right = normalize_sha(run_sha), normalize_sha(query_sha)
    if not left or not right:
        return False
    return left.startswith(right) or right.startswith(left)


def trigger_matches(run_trigger: TriggerKind, wanted: TriggerKind | None) -> bool:
    """An ``unknown`` trigger on either side is compatible with anything."""
    if wanted is None or wanted == "unknown" or run_trigger == "unknown":
        return True
    return run_trigger == wanted


def status_matches(run_status: RunStatus, wanted: RunStatus) -> bool:
    if wanted == "unknown" or run_status == "unknown":
        return True
    return run_status == wanted


def repository_matches(run: Run, repository: str) -> bool:
    """Compare repository names when the provider reports one."""
    if not run.repository_name:
        return True
    return _repo_name(run.repository_name) == _repo_name(repository)


def _repo_name(value: str) -> str:
    # Accept "owner/repo", full clone URLs and bare names.
    name = value.strip().rstrip("/").lower()
    name = name.removesuffix(".git")
    return name.rsplit("/", 1)[-1]


def is_match(
    run: Run,
    event: RepoEvent,
    *,
    status: RunStatus = "unknown",
    trigger: TriggerKind | None = None,
) -> bool:
    """Whether ``run`` was provoked by ``event`` and passes the filters."""
    wanted_trigger = trigger if trigger is not None else event.kind
    return (
        sha_matches(run.commit_sha, event.sha)
        and trigger_matches(run.trigger, wanted_trigger)
        and repository_matches(run, event.repository)
        and status_matches(run.status, status)
    )


def _ordering_key(run: Run) -> tuple[int, datetime, str]:
    numeric = run.run_key if isinstance(run.run_key, int) else -1
    return (numeric, run.created_at or _EPOCH, str(run.run_key))


def pick_latest(runs: Iterable[Run]) -> Run | None:
    """Return the newest run.

    Numeric run keys win by value; otherwise the latest creation time wins.
    Remaining ties fall back to the lexicographic run identifier.
    """
    return max(runs, key=_ordering_key, default=None)


def select_run(
    runs: Iterable[Run],
    event: RepoEvent,
    *,
    status: RunStatus = "unknown",
    trigger: TriggerKind | None = None,
) -> Run | None:
    matches = [
        run
        for run in runs
        if is_match(run, event, status=status, trigger=trigger)
    ]
    return pick_latest(matches)


async def correlate(
    discover: Callable[[], Awaitable[Sequence[Run]]],
    event: RepoEvent,
    *,
    status: RunStatus = "unknown",
    trigger: TriggerKind | None = None,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> Run | None:
    """Find the latest run provoked by ``event``.

    With ``status="unknown"`` a single discovery pass is made. Otherwise the
    lookup is polled until a matching run in that status shows up; running out
    of attempts means there is no such run, while exceeding the wall-clock
    budget raises :class:`~tssc_ci.errors.PollTimeoutError`.

    A discovery that reports NotFound is treated as "no candidates yet".
    """
    context = f"find run for {event.repository}@{event.sha[:12]}"

    async def scan() -> Run | None:
        try:
            candidates = await discover()
        except NotFoundError as exc:
            log.info("%s: nothing to scan yet (%s)", context, exc)
            return None
        run = select_run(candidates, event, status=status, trigger=trigger)
        log.debug(
            "%s: %d candidate(s), match=%s",
            context,
            len(candidates),
            run.describe() if run else None,
        )
        return run

    if status == "unknown":
        return await scan()

    async def step() -> RetryDecision[Run]:
        run = await scan()
        if run is None:
            return KeepWaiting(reason=f"no {status} run yet")
        return Done(run)

    try:
        return await run_until(step, policy, context=context)
    except ExhaustedError as exc:
        log.warning("%s: %s", context, exc)
        return None
