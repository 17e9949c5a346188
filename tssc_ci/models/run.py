"""Normalized representation of a CI run."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

type CIType = Literal["tekton", "jenkins", "gitlab-ci", "github-actions", "azure"]

type RunStatus = Literal["pending", "running", "success", "failure", "unknown"]

type TriggerKind = Literal[
    "push",
    "pull_request",
    "manual",
    "scheduled",
    "api",
    "unknown",
]

FINISHED_STATUSES: frozenset[RunStatus] = frozenset(["success", "failure"])


@dataclass(frozen=True, kw_only=True)
class Run:
    """One CI execution of a job or pipeline.

    Identity is ``(provider, job_key, run_key)``: two values with the same
    identity describe the same run, even when they were observed at different
    polls and carry different statuses. Only identity fields take part in
    equality and hashing.

    ``run_key`` is an integer when the provider numbers its runs (Jenkins build
    number, GitLab/GitHub/Azure ids) and an opaque string otherwise (Tekton
    PipelineRun name, Jenkins queue items).
    """

    provider: CIType
    job_key: str
    run_key: int | str
    display_name: str = field(default="", compare=False)
    status: RunStatus = field(default="unknown", compare=False)
    trigger: TriggerKind = field(default="unknown", compare=False)
    repository_name: str | None = field(default=None, compare=False)
    commit_sha: str | None = field(default=None, compare=False)
    pull_request_number: int | None = field(default=None, compare=False)
    branch: str | None = field(default=None, compare=False)
    created_at: datetime | None = field(default=None, compare=False)
    url: str | None = field(default=None, compare=False)
    logs_handle: str | None = field(default=None, compare=False)
    results: Mapping[str, Any] = field(
        default_factory=dict, compare=False, repr=False
    )

    @property
    def finished(self) -> bool:
        """Whether the run reached a terminal status."""
        return self.status in FINISHED_STATUSES

    @property
    def identity(self) -> tuple[str, str, int | str]:
        return (self.provider, self.job_key, self.run_key)

    def describe(self) -> str:
        """Short human-readable label used in log lines and errors."""
        name = self.display_name or str(self.run_key)
        return f"{self.provider}:{self.job_key}#{name}"
