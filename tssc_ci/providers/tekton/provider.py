"""Tekton Pipelines-as-Code provider implementation."""

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from tssc_ci.errors import NotFoundError
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.run import Run
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.tekton.config import TektonConfig
from tssc_ci.providers.tekton.models import REPOSITORY_LABEL, PipelineRun, TaskRun

log = logging.getLogger(__name__)

CANCEL_PATCH = {"spec": {"status": "Cancelled"}}


@dataclass(frozen=True, kw_only=True)
class TektonProvider(CIProvider[TektonConfig]):
    """Tekton provider backed by PipelineRuns in the CI namespace.

    Runs are keyed by PipelineRun name and grouped by the Git repository
    label set by Pipelines-as-Code.
    """

    ci_type = "tekton"
    ci_file_path = ".tekton"

    config: TektonConfig
    kube: KubeClient = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: TektonConfig, kube: KubeClient
    ) -> AsyncGenerator["TektonProvider", None]:
        """Create provider; the Kubernetes session is owned by the caller."""
        yield cls(config=config, kube=kube)

    async def list_pipeline_runs(self, repository: str) -> Sequence[PipelineRun]:
        """List PipelineRuns created for a Git repository."""
        items = await self.kube.list_pipeline_runs(
            self.config.namespace, f"{REPOSITORY_LABEL}={repository}"
        )
        return [PipelineRun.model_validate(item) for item in items]

    async def get_pipeline_run(self, name: str) -> PipelineRun:
        data = await self.kube.get_pipeline_run(self.config.namespace, name)
        return PipelineRun.model_validate(data)

    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        repository = event.repository.rstrip("/").rsplit("/", 1)[-1]
        pipeline_runs = await self.list_pipeline_runs(repository)
        if not pipeline_runs:
            log.info(
                "No PipelineRuns yet for repository %s, may still be launching",
                repository,
            )
        return [pipeline_run.to_run() for pipeline_run in pipeline_runs]

    async def refresh(self, run: Run) -> Run:
        pipeline_run = await self.get_pipeline_run(str(run.run_key))
        return pipeline_run.to_run()

    async def fetch_logs(self, run: Run) -> str:
        """Concatenate pod logs of every TaskRun of the PipelineRun."""
        pipeline_run = await self.get_pipeline_run(str(run.run_key))
        references = [
            ref for ref in pipeline_run.status.child_references if ref.kind == "TaskRun"
        ]
        if not references:
            log.info("PipelineRun %s has no TaskRuns yet", run.run_key)
            return ""

        sections: list[str] = []
        for ref in references:
            sections.append(
                f"--- TaskRun: {ref.pipeline_task_name or ref.name} ({ref.name}) ---"
            )
            try:
                task_run = TaskRun.model_validate(
                    await self.kube.get_task_run(self.config.namespace, ref.name)
                )
            except NotFoundError:
                sections.append(f"TaskRun '{ref.name}' not found.")
                continue
            pod_name = task_run.status.pod_name if task_run.status else None
            if not pod_name:
                sections.append(f"TaskRun '{ref.name}' has no pod yet.")
                continue
            sections.append(
                await self.kube.get_pod_logs(self.config.namespace, pod_name)
            )
        return "\n".join(sections)

    async def _in_flight_for(self, repository: str) -> Sequence[Run]:
        pipeline_runs = await self.list_pipeline_runs(repository)
        return [
            pipeline_run.to_run()
            for pipeline_run in pipeline_runs
            if pipeline_run.in_flight
        ]

    async def list_in_flight(self) -> Sequence[Run]:
        try:
            return await self.across_jobs(self._in_flight_for)
        except NotFoundError:
            log.info(
                "No PipelineRuns found for %s, nothing to wait for",
                self.config.component_name,
            )
            return []

    async def _runs_for(self, repository: str) -> Sequence[Run]:
        runs: list[Run] = []
        for pipeline_run in await self.list_pipeline_runs(repository):
            run = pipeline_run.to_run()
            if not pipeline_run.in_flight and not run.finished:
                # Labelled completed while the condition still lags behind.
                log.debug("PipelineRun %s already completed, skipping", run.run_key)
                continue
            runs.append(run)
        return runs

    async def discover_runs(self) -> Sequence[Run]:
        return await self.across_jobs(self._runs_for)

    async def cancel_run(self, run: Run) -> None:
        """Cancel a PipelineRun by setting ``spec.status`` to Cancelled."""
        if run.finished:
            log.info("PipelineRun %s already finished, nothing to cancel", run.run_key)
            return
        await self.kube.patch_pipeline_run(
            self.config.namespace, str(run.run_key), CANCEL_PATCH
        )
        log.info("Cancelled PipelineRun %s", run.run_key)

    async def webhook_url(self) -> str:
        """URL of the Pipelines-as-Code controller route."""
        host = await self.kube.get_route_host(
            self.config.webhook_namespace, self.config.webhook_route
        )
        return f"https://{host}"
