"""The CI provider contract and the operations shared by all adaptors."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import ClassVar

from tssc_ci import cancellation
from tssc_ci.correlation import correlate
from tssc_ci.errors import ExhaustedError, NotFoundError, PollTimeoutError
from tssc_ci.git import RepoEvent
from tssc_ci.models.cancel import CancelOptions, CancelResult
from tssc_ci.models.run import CIType, Run, RunStatus, TriggerKind
from tssc_ci.polling import (
    Done,
    KeepWaiting,
    RetryDecision,
    RetryPolicy,
    poll,
    run_until,
)
from tssc_ci.providers.config import ProviderConfig

log = logging.getLogger(__name__)

NO_LOGS_PLACEHOLDER = "No logs available for run {run}"


@dataclass(frozen=True, kw_only=True)
class CIProvider[ConfigT: ProviderConfig](ABC):
    """A CI back-end seen through the normalized run model.

    Subclasses implement the provider primitives (discovery, refresh, logs,
    cancellation of one run); correlation, waiting and bulk cancellation are
    shared and run through the poll kernel.
    """

    ci_type: ClassVar[CIType]
    ci_file_path: ClassVar[str]
    supports_branch_filter: ClassVar[bool] = True

    config: ConfigT

    @abstractmethod
    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        """Return candidate runs for a repository event.

        Providers narrow the listing with server-side filters (commit SHA,
        event) where their API offers them; correlation does the rest.
        """

    @abstractmethod
    async def refresh(self, run: Run) -> Run:
        """Fetch the current state of ``run`` as a new Run value."""

    @abstractmethod
    async def fetch_logs(self, run: Run) -> str:
        """Fetch the logs of ``run``; may return an empty string."""

    @abstractmethod
    async def list_in_flight(self) -> Sequence[Run]:
        """Return runs of the component that are running or queued."""

    @abstractmethod
    async def discover_runs(self) -> Sequence[Run]:
        """Return all recent runs of the component's jobs for cancellation."""

    @abstractmethod
    async def cancel_run(self, run: Run) -> None:
        """Cancel one run; cancelling a finished run is a no-op."""

    @abstractmethod
    async def webhook_url(self) -> str:
        """URL the Git provider should deliver webhooks to."""

    async def trigger_run(
        self, job_key: str, parameters: Mapping[str, str] | None = None
    ) -> Run | None:
        """Start a new run of ``job_key`` and return it once visible."""
        raise NotImplementedError(f"{self.ci_type} does not support triggering runs")

    def integration_secret(self) -> Mapping[str, str]:
        """Secret data the provider was configured from."""
        return {
            key: value.get_secret_value()
            for key, value in self.config.integration_secret.items()
        }

    async def get_run_for(
        self,
        event: RepoEvent,
        status: RunStatus = "unknown",
        trigger: TriggerKind | None = None,
        *,
        policy: RetryPolicy | None = None,
    ) -> Run | None:
        """Find the latest run provoked by ``event``.

        Args:
            event: Repository, commit SHA and event kind to correlate
            status: Wanted status; anything but "unknown" polls until it shows
            trigger: Overrides ``event.kind`` as the wanted trigger kind
            policy: Overrides the configured correlation policy

        Returns:
            The matching run, or None if there is none

        """
        return await correlate(
            lambda: self.find_runs(event),
            event,
            status=status,
            trigger=trigger,
            policy=policy or self.config.correlation_policy,
        )

    async def get_status(self, run: Run) -> RunStatus:
        """Refresh ``run``, retrying transient transport errors."""
        current = await poll(
            lambda: self.refresh(run),
            lambda _: True,
            self.config.request_policy,
            context=f"get status of {run.describe()}",
        )
        return current.status

    async def wait_for_run_finished(
        self,
        run: Run,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> RunStatus:
        """Poll ``run`` until it is finished and return its final status.

        Raises:
            PollTimeoutError: If the run does not finish in time; the last
                observed Run is attached as ``last_value``

        """
        policy = RetryPolicy.fixed(
            self.config.run_poll_interval if poll_interval is None else poll_interval,
            timeout=self.config.run_timeout if timeout is None else timeout,
        )

        async def step() -> RetryDecision[Run]:
            current = await self.refresh(run)
            log.info("Run %s status: %s", current.describe(), current.status)
            if current.finished:
                return Done(current)
            return KeepWaiting(reason=f"status {current.status}", last=current)

        try:
            final = await run_until(step, policy, context=f"wait for {run.describe()}")
        except PollTimeoutError as exc:
            if exc.last_value is None:
                exc.last_value = run
            raise
        return final.status

    async def wait_for_all_finished(
        self,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Wait until none of the component's jobs has running or queued runs."""
        policy = RetryPolicy.fixed(
            (
                self.config.wait_all_poll_interval
                if poll_interval is None
                else poll_interval
            ),
            timeout=self.config.wait_all_timeout if timeout is None else timeout,
        )

        async def step() -> RetryDecision[Sequence[Run]]:
            runs = await self.list_in_flight()
            if not runs:
                return Done(runs)
            log.info(
                "%d run(s) still in flight for %s: %s",
                len(runs),
                self.config.component_name,
                ", ".join(run.describe() for run in runs),
            )
            return KeepWaiting(reason=f"{len(runs)} run(s) in flight", last=runs)

        await run_until(
            step,
            policy,
            context=f"wait for all runs of {self.config.component_name}",
        )
        log.info("All runs finished for %s", self.config.component_name)

    async def get_logs(self, run: Run) -> str:
        """Fetch logs, retrying empty bodies before returning a placeholder."""
        try:
            return await poll(
                lambda: self.fetch_logs(run),
                lambda text: bool(text.strip()),
                self.config.logs_policy,
                context=f"get logs of {run.describe()}",
            )
        except (ExhaustedError, PollTimeoutError) as exc:
            log.warning("No logs for %s: %s", run.describe(), exc)
            return NO_LOGS_PLACEHOLDER.format(run=run.describe())

    async def cancel_all(self, options: CancelOptions | None = None) -> CancelResult:
        """Cancel the component's in-flight runs; see :mod:`tssc_ci.cancellation`."""
        return await cancellation.cancel_all(
            self.discover_runs,
            self.cancel_run,
            options,
            default_concurrency=self.config.cancel_concurrency,
            branch_filter=self.supports_branch_filter,
        )

    async def across_jobs(
        self, fetch: Callable[[str], Awaitable[Sequence[Run]]]
    ) -> list[Run]:
        """Collect runs of the source and gitops jobs of the component.

        Errors for the source job propagate; a missing gitops sibling is
        logged and skipped.
        """
        source, gitops = self.config.job_names
        runs = list(await fetch(source))
        try:
            runs.extend(await fetch(gitops))
        except NotFoundError as exc:
            log.info("Gitops job %s not found, skipping: %s", gitops, exc)
        return runs
