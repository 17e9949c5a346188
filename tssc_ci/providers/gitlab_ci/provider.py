"""GitLab CI provider implementation."""

import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import quote

import aiohttp

from tssc_ci.errors import raise_for_status
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.run import Run
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.gitlab_ci.config import GitLabCIConfig
from tssc_ci.providers.gitlab_ci.models import Pipeline, PipelineJob

log = logging.getLogger(__name__)

IN_FLIGHT_STATUSES = frozenset(
    ["created", "waiting_for_resource", "preparing", "pending", "running"]
)
FULL_SHA_LENGTH = 40
PAGE_SIZE = "100"


@dataclass(frozen=True, kw_only=True)
class GitLabCIProvider(CIProvider[GitLabCIConfig]):
    """GitLab CI pipeline provider.

    Runs are pipelines keyed by their numeric id; the job key is the full
    project path.
    """

    ci_type = "gitlab-ci"
    ci_file_path = ".gitlab-ci.yml"

    config: GitLabCIConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: GitLabCIConfig, kube: KubeClient
    ) -> AsyncGenerator["GitLabCIProvider", None]:
        """Create provider with managed session lifecycle."""
        headers = {"Authorization": f"Bearer {config.token.get_secret_value()}"}
        async with aiohttp.ClientSession(
            base_url=config.base_url, headers=headers
        ) as session:
            yield cls(config=config, session=session)

    @staticmethod
    def encoded(project_path: str) -> str:
        return quote(project_path, safe="")

    async def list_pipelines(
        self, project_path: str, *, sha: str | None = None
    ) -> Sequence[Pipeline]:
        """List the most recent pipelines of a project, optionally by commit."""
        params = {"per_page": PAGE_SIZE}
        if sha is not None:
            params["sha"] = sha
        url = f"projects/{self.encoded(project_path)}/pipelines"
        async with self.session.get(url, params=params) as response:
            await raise_for_status(response, f"list pipelines of {project_path}")
            data = await response.json()
        return [Pipeline.model_validate(item) for item in data]

    async def get_pipeline(self, project_path: str, pipeline_id: int) -> Pipeline:
        url = f"projects/{self.encoded(project_path)}/pipelines/{pipeline_id}"
        async with self.session.get(url) as response:
            await raise_for_status(response, f"get pipeline {pipeline_id}")
            data = await response.json()
        return Pipeline.model_validate(data)

    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        project_path = self.config.project_path(event.repository)
        # The sha filter only takes full commit ids; shorter ones are matched
        # by correlation.
        sha = event.sha.strip() if len(event.sha.strip()) == FULL_SHA_LENGTH else None
        pipelines = await self.list_pipelines(project_path, sha=sha)
        return [pipeline.to_run(project_path) for pipeline in pipelines]

    async def refresh(self, run: Run) -> Run:
        pipeline = await self.get_pipeline(run.job_key, int(run.run_key))
        return pipeline.to_run(run.job_key)

    async def fetch_logs(self, run: Run) -> str:
        """Concatenate the traces of every job of the pipeline."""
        project = self.encoded(run.job_key)
        async with self.session.get(
            f"projects/{project}/pipelines/{run.run_key}/jobs"
        ) as response:
            await raise_for_status(response, f"list jobs of {run.describe()}")
            jobs = [PipelineJob.model_validate(item) for item in await response.json()]

        sections: list[str] = []
        for job in jobs:
            async with self.session.get(
                f"projects/{project}/jobs/{job.id}/trace"
            ) as response:
                await raise_for_status(response, f"get trace of job {job.id}")
                trace = await response.text()
            sections.append(f"--- Job: {job.name} ({job.stage}) ---\n{trace}")
        return "\n".join(sections)

    async def _pipeline_runs(self, repository: str) -> list[Run]:
        project_path = self.config.project_path(repository)
        pipelines = await self.list_pipelines(project_path)
        return [pipeline.to_run(project_path) for pipeline in pipelines]

    async def _in_flight_for(self, repository: str) -> list[Run]:
        project_path = self.config.project_path(repository)
        pipelines = await self.list_pipelines(project_path)
        return [
            pipeline.to_run(project_path)
            for pipeline in pipelines
            if pipeline.status in IN_FLIGHT_STATUSES
        ]

    async def list_in_flight(self) -> Sequence[Run]:
        return await self.across_jobs(self._in_flight_for)

    async def discover_runs(self) -> Sequence[Run]:
        return await self.across_jobs(self._pipeline_runs)

    async def cancel_run(self, run: Run) -> None:
        if run.finished:
            log.info("Pipeline %s already finished, nothing to cancel", run.run_key)
            return
        url = f"projects/{self.encoded(run.job_key)}/pipelines/{run.run_key}/cancel"
        async with self.session.post(url) as response:
            await raise_for_status(response, f"cancel {run.describe()}")
        log.info("Cancelled pipeline %s of %s", run.run_key, run.job_key)

    async def webhook_url(self) -> str:
        raise NotImplementedError("GitLab CI runs pipelines without a webhook")

    async def trigger_run(
        self, job_key: str, parameters: Mapping[str, str] | None = None
    ) -> Run | None:
        """Create a pipeline on the configured ref."""
        project_path = self.config.project_path(job_key)
        payload = {
            "ref": self.config.ref,
            "variables": [
                {"key": key, "value": value}
                for key, value in (parameters or {}).items()
            ],
        }
        async with self.session.post(
            f"projects/{self.encoded(project_path)}/pipeline", json=payload
        ) as response:
            await raise_for_status(
                response, f"create pipeline for {project_path}", (201,)
            )
            data = await response.json()

        pipeline = Pipeline.model_validate(data)
        log.info("Created pipeline %s for %s", pipeline.id, project_path)
        return pipeline.to_run(project_path)
