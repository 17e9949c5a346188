"""Pydantic models for Azure DevOps Build API responses."""

from collections.abc import Sequence
from datetime import datetime

from pydantic import Field

from tssc_ci.models.base import Model
from tssc_ci.models.run import Run
from tssc_ci.status import AZURE_REASON_TO_TRIGGER, azure_status


class WebLink(Model):
    """Web link in _links."""

    href: str


class BuildLinks(Model):
    """Links in build response."""

    web: WebLink | None = None


class DefinitionRef(Model):
    id: int
    name: str


class RepositoryRef(Model):
    id: str | None = None
    name: str | None = None


class Build(Model):
    """A build (pipeline run) from the Azure DevOps Build API."""

    id: int
    build_number: str | None = Field(default=None, alias="buildNumber")
    status: str | None = None
    result: str | None = None
    reason: str | None = None
    source_version: str | None = Field(default=None, alias="sourceVersion")
    source_branch: str | None = Field(default=None, alias="sourceBranch")
    queue_time: datetime | None = Field(default=None, alias="queueTime")
    definition: DefinitionRef | None = None
    repository: RepositoryRef | None = None
    links: BuildLinks | None = Field(default=None, alias="_links")

    def to_run(self, definition_name: str) -> Run:
        return Run(
            provider="azure",
            job_key=definition_name,
            run_key=self.id,
            display_name=self.build_number or str(self.id),
            status=azure_status(state=self.status, result=self.result),
            trigger=AZURE_REASON_TO_TRIGGER.get(self.reason or "", "unknown"),
            repository_name=self.repository.name if self.repository else None,
            commit_sha=self.source_version,
            branch=(self.source_branch or "").removeprefix("refs/heads/") or None,
            created_at=self.queue_time,
            url=self.links.web.href if self.links and self.links.web else None,
            logs_handle=str(self.id),
        )


class BuildList(Model):
    """Azure's ``{"count": n, "value": [...]}`` envelope of builds."""

    count: int = 0
    value: Sequence[Build] = Field(default_factory=list)


class DefinitionList(Model):
    count: int = 0
    value: Sequence[DefinitionRef] = Field(default_factory=list)


class BuildLog(Model):
    id: int
    line_count: int | None = Field(default=None, alias="lineCount")


class BuildLogList(Model):
    count: int = 0
    value: Sequence[BuildLog] = Field(default_factory=list)
