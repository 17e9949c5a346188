"""Bulk cancellation of in-flight runs with bounded concurrency."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from itertools import batched

from tssc_ci.correlation import trigger_matches
from tssc_ci.errors import AccountingError, CIError
from tssc_ci.models.cancel import (
    ACCOUNTING_ERROR_KEY,
    BatchReport,
    CancelDetail,
    CancelError,
    CancelOptions,
    CancelOutcome,
    CancelResult,
)
from tssc_ci.models.run import Run

log = logging.getLogger(__name__)

DRY_RUN_REASON = "Dry run mode"

type CancelFn = Callable[[Run], Awaitable[None]]


def excluded(run: Run, options: CancelOptions) -> bool:
    return any(
        pattern.search(run.display_name) for pattern in options.exclude_patterns
    )


def select_candidates(
    runs: Sequence[Run],
    options: CancelOptions,
    *,
    branch_filter: bool = True,
) -> Sequence[Run]:
    """Apply the cancellation filters to discovered runs.

    ``branch_filter`` is False for providers whose discovery payloads carry no
    branch; the branch option is then ignored.
    """
    if options.branch and not branch_filter:
        log.info("Branch filter not supported for these runs, ignoring it")

    selected: list[Run] = []
    for run in runs:
        if run.finished and not options.include_completed:
            log.debug("Skipping completed run %s (%s)", run.describe(), run.status)
            continue
        if excluded(run, options):
            log.info("Excluding run %s by pattern", run.describe())
            continue
        if not trigger_matches(run.trigger, options.event_type):
            log.debug("Skipping run %s (trigger %s)", run.describe(), run.trigger)
            continue
        if options.branch and branch_filter and run.branch != options.branch:
            log.debug("Skipping run %s (branch %s)", run.describe(), run.branch)
            continue
        selected.append(run)
    return selected


@dataclass(kw_only=True)
class _Accumulator:
    """Mutable tally owned by a single cancel_all invocation."""

    total: int
    details: list[CancelDetail] = field(default_factory=list)
    errors: list[CancelError] = field(default_factory=list)
    batches: list[BatchReport] = field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for detail in self.details if detail.outcome == outcome)

    def freeze(self) -> CancelResult:
        return CancelResult(
            total=self.total,
            cancelled=self.count("cancelled"),
            failed=self.count("failed"),
            skipped=self.count("skipped"),
            details=tuple(self.details),
            errors=tuple(self.errors),
            batches=tuple(self.batches),
        )


def _detail(
    run: Run, outcome: CancelOutcome, reason: str | None = None
) -> CancelDetail:
    return CancelDetail(
        run_key=run.run_key,
        job_key=run.job_key,
        display_name=run.display_name,
        pre_status=run.status,
        branch=run.branch,
        trigger=run.trigger,
        outcome=outcome,
        reason=reason,
    )


async def _cancel_one(
    run: Run, cancel: CancelFn, acc: _Accumulator, *, dry_run: bool
) -> CancelDetail:
    if dry_run:
        log.info("[DryRun] Would cancel %s", run.describe())
        detail = _detail(run, "skipped", DRY_RUN_REASON)
        acc.details.append(detail)
        return detail

    try:
        await cancel(run)
    except Exception as exc:
        log.error("Failed to cancel %s: %s", run.describe(), exc)
        acc.errors.append(
            CancelError(
                run_key=run.run_key,
                message=str(exc),
                status_code=exc.status if isinstance(exc, CIError) else None,
                error=exc,
            )
        )
        detail = _detail(run, "failed", str(exc))
    else:
        log.info("Cancelled %s (was %s)", run.describe(), run.status)
        detail = _detail(run, "cancelled")
    acc.details.append(detail)
    return detail


async def cancel_runs(
    candidates: Sequence[Run],
    cancel: CancelFn,
    options: CancelOptions,
) -> CancelResult:
    """Cancel ``candidates`` in batches of ``options.concurrency``.

    Cancellations within a batch run concurrently and each one records its own
    outcome, so one failure never aborts its siblings. A batch in which every
    cancellation failed is flagged as systemic. The returned result always
    balances; a discrepancy is reported as an extra accounting error.
    """
    acc = _Accumulator(total=len(candidates))
    size = options.concurrency or 1
    batches = list(batched(candidates, size))
    log.info(
        "Cancelling %d run(s) in %d batch(es) of up to %d",
        len(candidates),
        len(batches),
        size,
    )

    for index, batch in enumerate(batches, start=1):
        details = await asyncio.gather(
            *(_cancel_one(run, cancel, acc, dry_run=options.dry_run) for run in batch)
        )
        failed = sum(1 for detail in details if detail.outcome == "failed")
        report = BatchReport(
            index=index,
            size=len(batch),
            cancelled=sum(1 for detail in details if detail.outcome == "cancelled"),
            failed=failed,
            skipped=sum(1 for detail in details if detail.outcome == "skipped"),
            systemic=failed == len(batch),
        )
        acc.batches.append(report)
        log.info(
            "Batch %d/%d complete: %d cancelled, %d failed, %d skipped",
            index,
            len(batches),
            report.cancelled,
            report.failed,
            report.skipped,
        )
        if report.systemic:
            first = next(d for d in details if d.outcome == "failed")
            log.error(
                "Entire batch %d failed, possible systemic issue "
                "(auth, network or API outage). First failure: %s",
                index,
                first.reason,
            )

    return reconcile(acc.freeze())


def reconcile(result: CancelResult) -> CancelResult:
    """Append an accounting error when the counts do not add up."""
    accounted = result.cancelled + result.failed + result.skipped
    if accounted == result.total and len(result.details) == result.total:
        return result
    missing = result.total - accounted
    log.error(
        "Accounting error: %d run(s) unaccounted for (total=%d, accounted=%d)",
        missing,
        result.total,
        accounted,
    )
    error = AccountingError(f"{missing} run(s) lost in processing")
    return CancelResult(
        total=result.total,
        cancelled=result.cancelled,
        failed=result.failed,
        skipped=result.skipped,
        details=result.details,
        errors=(
            *result.errors,
            CancelError(run_key=ACCOUNTING_ERROR_KEY, message=str(error), error=error),
        ),
        batches=result.batches,
    )


async def cancel_all(
    discover: Callable[[], Awaitable[Sequence[Run]]],
    cancel: CancelFn,
    options: CancelOptions | None = None,
    *,
    default_concurrency: int,
    branch_filter: bool = True,
) -> CancelResult:
    """Discover, filter and cancel runs, returning a reconciled result."""
    opts = (options or CancelOptions()).normalized(default_concurrency)
    runs = await discover()
    log.info("Discovered %d run(s)", len(runs))
    candidates = select_candidates(runs, opts, branch_filter=branch_filter)
    log.info(
        "%d run(s) match filters, %d filtered out",
        len(candidates),
        len(runs) - len(candidates),
    )
    if not candidates:
        return CancelResult()
    return await cancel_runs(candidates, cancel, opts)
