"""Models for bulk cancellation options and results."""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Literal

from tssc_ci.models.run import RunStatus, TriggerKind

DEFAULT_CONCURRENCY = 10
MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 16

ACCOUNTING_ERROR_KEY = "ACCOUNTING_ERROR"

type CancelOutcome = Literal["cancelled", "failed", "skipped"]


def clamp_concurrency(value: int) -> int:
    """Clamp a requested concurrency into the supported range."""
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, value))


@dataclass(frozen=True, kw_only=True)
class CancelOptions:
    """Filter and execution options for a bulk cancellation.

    ``concurrency`` of ``None`` means the adaptor default. Exclude patterns are
    matched with ``re.search`` against the run display name.
    """

    event_type: TriggerKind | None = None
    branch: str | None = None
    include_completed: bool = False
    exclude_patterns: Sequence[re.Pattern[str]] = ()
    concurrency: int | None = None
    dry_run: bool = False

    def normalized(
        self, default_concurrency: int = DEFAULT_CONCURRENCY
    ) -> "CancelOptions":
        """Return options with defaults applied and concurrency clamped."""
        concurrency = (
            self.concurrency if self.concurrency is not None else default_concurrency
        )
        return replace(
            self,
            exclude_patterns=tuple(self.exclude_patterns),
            concurrency=clamp_concurrency(concurrency),
        )


@dataclass(frozen=True, kw_only=True)
class CancelDetail:
    """Outcome of one candidate run."""

    run_key: int | str
    job_key: str
    display_name: str
    pre_status: RunStatus
    outcome: CancelOutcome
    reason: str | None = None
    branch: str | None = None
    trigger: TriggerKind | None = None


@dataclass(frozen=True, kw_only=True)
class CancelError:
    """A failed cancellation, or a synthetic accounting entry."""

    run_key: int | str
    message: str
    status_code: int | None = None
    error: BaseException | None = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, kw_only=True)
class BatchReport:
    """Summary of one cancellation batch."""

    index: int
    size: int
    cancelled: int
    failed: int
    skipped: int
    systemic: bool = False


@dataclass(frozen=True, kw_only=True)
class CancelResult:
    """Reconciled accounting of a bulk cancellation."""

    total: int = 0
    cancelled: int = 0
    failed: int = 0
    skipped: int = 0
    details: Sequence[CancelDetail] = ()
    errors: Sequence[CancelError] = ()
    batches: Sequence[BatchReport] = ()

    @property
    def balanced(self) -> bool:
        """Whether every candidate is accounted for exactly once."""
        return (
            self.cancelled + self.failed + self.skipped == self.total
            and len(self.details) == self.total
        )

    @property
    def systemic_failure(self) -> bool:
        return any(batch.systemic for batch in self.batches)
