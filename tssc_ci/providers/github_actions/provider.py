"""GitHub Actions provider implementation."""

import io
import logging
import zipfile
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

import aiohttp

from tssc_ci.errors import ExhaustedError, raise_for_status
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.run import Run
from tssc_ci.polling import Done, KeepWaiting, RetryDecision, run_until
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.github_actions.config import GitHubActionsConfig
from tssc_ci.providers.github_actions.models import (
    WorkflowJobsResponse,
    WorkflowRun,
    WorkflowRunsResponse,
)

log = logging.getLogger(__name__)

IN_FLIGHT_STATUSES = frozenset(
    ["in_progress", "queued", "waiting", "requested", "pending"]
)
FULL_SHA_LENGTH = 40
PAGE_SIZE = 100


@dataclass(frozen=True, kw_only=True)
class GitHubActionsProvider(CIProvider[GitHubActionsConfig]):
    """GitHub Actions provider.

    Runs are workflow runs keyed by their numeric id; the job key is the
    repository name under the configured owner.
    """

    ci_type = "github-actions"
    ci_file_path = ".github/workflows"

    config: GitHubActionsConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: GitHubActionsConfig, kube: KubeClient
    ) -> AsyncGenerator["GitHubActionsProvider", None]:
        """Create provider with managed session lifecycle."""
        headers = {
            "Authorization": f"Bearer {config.token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
        }
        async with aiohttp.ClientSession(
            base_url=config.api_base_url,
            headers=headers,
        ) as session:
            yield cls(config=config, session=session)

    def runs_url(self, repository: str) -> str:
        return f"repos/{self.config.owner}/{repository}/actions/runs"

    async def list_workflow_runs(
        self, repository: str, workflow: str | None = None, **filters: str
    ) -> Sequence[WorkflowRun]:
        """List recent workflow runs of a repository, or of one of its workflows.

        Keyword arguments are passed as API filters (``head_sha``, ``event``,
        ``created``...).
        """
        params = {"per_page": str(PAGE_SIZE), **filters}
        url = self.runs_url(repository)
        if workflow is not None:
            url = (
                f"repos/{self.config.owner}/{repository}"
                f"/actions/workflows/{workflow}/runs"
            )
        async with self.session.get(url, params=params) as response:
            await raise_for_status(response, f"list workflow runs of {repository}")
            data = await response.json()
        return WorkflowRunsResponse.model_validate(data).workflow_runs

    async def get_workflow_run(self, repository: str, run_id: int) -> WorkflowRun:
        url = f"{self.runs_url(repository)}/{run_id}"
        async with self.session.get(url) as response:
            await raise_for_status(response, f"get workflow run {run_id}")
            data = await response.json()
        return WorkflowRun.model_validate(data)

    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        repository = event.repository.rstrip("/").rsplit("/", 1)[-1]
        filters: dict[str, str] = {}
        if len(event.sha.strip()) == FULL_SHA_LENGTH:
            filters["head_sha"] = event.sha.strip()
        if event.kind in ("push", "pull_request"):
            filters["event"] = event.kind
        runs = await self.list_workflow_runs(repository, **filters)
        return [run.to_run(repository) for run in runs]

    async def refresh(self, run: Run) -> Run:
        workflow_run = await self.get_workflow_run(run.job_key, int(run.run_key))
        return workflow_run.to_run(run.job_key)

    async def fetch_logs(self, run: Run) -> str:
        """Read the run's log archive, or summarize its jobs if there is none."""
        url = f"{self.runs_url(run.job_key)}/{run.run_key}/logs"
        async with self.session.get(url) as response:
            if response.status in (404, 410):
                log.info("No log archive for %s, summarizing jobs", run.describe())
                return await self.jobs_summary(run)
            await raise_for_status(response, f"get logs of {run.describe()}")
            archive = await response.read()

        try:
            return unzip_logs(archive)
        except zipfile.BadZipFile:
            log.warning("Log archive of %s is not a zip file", run.describe())
            return await self.jobs_summary(run)

    async def jobs_summary(self, run: Run) -> str:
        url = f"{self.runs_url(run.job_key)}/{run.run_key}/jobs"
        async with self.session.get(url) as response:
            await raise_for_status(response, f"list jobs of {run.describe()}")
            data = await response.json()

        lines: list[str] = []
        for job in WorkflowJobsResponse.model_validate(data).jobs:
            lines.append(f"--- Job: {job.name} ({job.conclusion or job.status}) ---")
            lines.extend(
                f"  {step.number}. {step.name}: {step.conclusion or step.status}"
                for step in job.steps
            )
        return "\n".join(lines)

    async def _in_flight_for(self, repository: str) -> list[Run]:
        runs = await self.list_workflow_runs(repository)
        return [
            run.to_run(repository) for run in runs if run.status in IN_FLIGHT_STATUSES
        ]

    async def list_in_flight(self) -> Sequence[Run]:
        return await self.across_jobs(self._in_flight_for)

    async def _runs_for(self, repository: str) -> list[Run]:
        runs = await self.list_workflow_runs(repository)
        return [run.to_run(repository) for run in runs]

    async def discover_runs(self) -> Sequence[Run]:
        return await self.across_jobs(self._runs_for)

    async def cancel_run(self, run: Run) -> None:
        """Cancel a workflow run; a run that already completed is left alone."""
        if run.finished:
            log.info("Workflow run %s already finished, nothing to cancel", run.run_key)
            return
        url = f"{self.runs_url(run.job_key)}/{run.run_key}/cancel"
        async with self.session.post(url) as response:
            if response.status == 409:
                log.info("Workflow run %s completed before cancellation", run.run_key)
                return
            await raise_for_status(response, f"cancel {run.describe()}", (202,))
        log.info("Cancelled workflow run %s of %s", run.run_key, run.job_key)

    async def webhook_url(self) -> str:
        raise NotImplementedError("GitHub Actions runs workflows without a webhook")

    async def trigger_run(
        self, job_key: str, parameters: Mapping[str, str] | None = None
    ) -> Run | None:
        """Dispatch a workflow and wait for its run to show up.

        Args:
            job_key: Workflow file name or id in the component repository
            parameters: Workflow inputs

        Returns:
            The newest ``workflow_dispatch`` run of the workflow created after
            the dispatch, or None if none appeared in time

        """
        repository = self.config.component_name
        dispatch_time = datetime.now(timezone.utc).replace(microsecond=0)
        url = (
            f"repos/{self.config.owner}/{repository}"
            f"/actions/workflows/{job_key}/dispatches"
        )
        payload = {"ref": self.config.ref, "inputs": dict(parameters or {})}
        async with self.session.post(url, json=payload) as response:
            await raise_for_status(response, f"dispatch workflow {job_key}", (204,))
        log.info("Dispatched workflow %s on %s", job_key, self.config.ref)

        created = f">={dispatch_time.strftime('%Y-%m-%dT%H:%M:%SZ')}"

        async def step() -> RetryDecision[WorkflowRun]:
            runs = await self.list_workflow_runs(
                repository, job_key, event="workflow_dispatch", created=created
            )
            if not runs:
                return KeepWaiting(reason="dispatched run not visible yet")
            return Done(max(runs, key=lambda run: run.id))

        try:
            workflow_run = await run_until(
                step,
                self.config.dispatch_policy,
                context=f"find run of workflow {job_key}",
            )
        except ExhaustedError as exc:
            log.warning("Dispatched workflow %s did not start: %s", job_key, exc)
            return None
        return workflow_run.to_run(repository)


def unzip_logs(archive: bytes) -> str:
    """Concatenate the text files of a run log archive in name order."""
    sections: list[str] = []
    with zipfile.ZipFile(io.BytesIO(archive)) as zipped:
        for name in sorted(zipped.namelist()):
            if name.endswith("/"):
                continue
            text = zipped.read(name).decode("utf-8", errors="replace")
            sections.append(f"--- {name} ---\n{text}")
    return "\n".join(sections)
