"""Pydantic models for GitLab CI API responses."""

from datetime import datetime

from tssc_ci.models.base import Model
from tssc_ci.models.run import Run
from tssc_ci.status import GITLAB_SOURCE_TO_TRIGGER, gitlab_status


class Pipeline(Model):
    """A pipeline from GitLab CI API."""

    id: int
    iid: int | None = None
    project_id: int | None = None
    sha: str | None = None
    ref: str | None = None
    status: str
    source: str | None = None
    web_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_run(self, project_path: str) -> Run:
        return Run(
            provider="gitlab-ci",
            job_key=project_path,
            run_key=self.id,
            display_name=f"Pipeline-{self.id}",
            status=gitlab_status(self.status),
            trigger=GITLAB_SOURCE_TO_TRIGGER.get(self.source or "", "unknown"),
            repository_name=project_path,
            commit_sha=self.sha,
            branch=self.ref,
            created_at=self.created_at,
            url=self.web_url,
            logs_handle=str(self.id),
        )


class PipelineJob(Model):
    """A job of a pipeline."""

    id: int
    name: str
    stage: str | None = None
    status: str | None = None
