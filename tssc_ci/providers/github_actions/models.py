"""Pydantic models for GitHub Actions API responses."""

from collections.abc import Sequence
from datetime import datetime

from pydantic import Field

from tssc_ci.models.base import Model
from tssc_ci.models.run import Run
from tssc_ci.status import GITHUB_EVENT_TO_TRIGGER, github_status


class RepositoryRef(Model):
    name: str
    full_name: str | None = None


class WorkflowRun(Model):
    """A workflow run from GitHub Actions API."""

    id: int
    name: str | None = None
    display_title: str | None = None
    run_number: int | None = None
    status: str | None = None
    conclusion: str | None = None
    event: str | None = None
    head_sha: str | None = None
    head_branch: str | None = None
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    repository: RepositoryRef | None = None

    def to_run(self, repository: str) -> Run:
        return Run(
            provider="github-actions",
            job_key=repository,
            run_key=self.id,
            display_name=self.display_title or self.name or f"run-{self.id}",
            status=github_status(status=self.status, conclusion=self.conclusion),
            trigger=GITHUB_EVENT_TO_TRIGGER.get(self.event or "", "unknown"),
            repository_name=self.repository.name if self.repository else repository,
            commit_sha=self.head_sha,
            branch=self.head_branch,
            created_at=self.created_at,
            url=self.html_url,
            logs_handle=str(self.id),
        )


class WorkflowRunsResponse(Model):
    """Response from list workflow runs API."""

    total_count: int = 0
    workflow_runs: Sequence[WorkflowRun] = Field(default_factory=list)


class Step(Model):
    number: int
    name: str
    status: str | None = None
    conclusion: str | None = None


class WorkflowJob(Model):
    """A job of a workflow run."""

    id: int
    name: str
    status: str | None = None
    conclusion: str | None = None
    steps: Sequence[Step] = Field(default_factory=list)


class WorkflowJobsResponse(Model):
    total_count: int = 0
    jobs: Sequence[WorkflowJob] = Field(default_factory=list)
