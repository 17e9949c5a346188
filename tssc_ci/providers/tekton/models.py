"""Pydantic models for Tekton PipelineRun and TaskRun resources."""

from datetime import datetime
from typing import Any

from pydantic import Field

from tssc_ci.models.base import Model
from tssc_ci.models.run import Run, TriggerKind
from tssc_ci.status import tekton_status

LABEL_PREFIX = "pipelinesascode.tekton.dev/"
REPOSITORY_LABEL = f"{LABEL_PREFIX}url-repository"
SHA_LABEL = f"{LABEL_PREFIX}sha"
STATE_LABEL = f"{LABEL_PREFIX}state"
EVENT_TYPE_LABEL = f"{LABEL_PREFIX}event-type"
PULL_REQUEST_LABEL = f"{LABEL_PREFIX}pull-request"
ON_EVENT_ANNOTATION = f"{LABEL_PREFIX}on-event"
LOG_URL_ANNOTATION = f"{LABEL_PREFIX}log-url"
SOURCE_BRANCH_ANNOTATION = f"{LABEL_PREFIX}source-branch"

COMPLETED_STATE = "completed"


class Condition(Model):
    type: str
    status: str | None = None
    reason: str | None = None
    message: str | None = None


class ChildReference(Model):
    kind: str = ""
    name: str
    pipeline_task_name: str | None = Field(default=None, alias="pipelineTaskName")


class RunResult(Model):
    name: str
    value: Any = None


class ObjectMeta(Model):
    name: str
    namespace: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    creation_timestamp: datetime | None = Field(
        default=None, alias="creationTimestamp"
    )


class PipelineRunSpec(Model):
    status: str | None = None


class PipelineRunStatus(Model):
    conditions: list[Condition] = Field(default_factory=list)
    child_references: list[ChildReference] = Field(
        default_factory=list, alias="childReferences"
    )
    results: list[RunResult] = Field(default_factory=list)


class PipelineRun(Model):
    """A PipelineRun created by Pipelines-as-Code."""

    metadata: ObjectMeta
    spec: PipelineRunSpec = Field(default_factory=PipelineRunSpec)
    status: PipelineRunStatus = Field(default_factory=PipelineRunStatus)

    @property
    def succeeded(self) -> Condition | None:
        return next(
            (c for c in self.status.conditions if c.type == "Succeeded"), None
        )

    @property
    def state(self) -> str | None:
        """Pipelines-as-Code state label, e.g. "started" or "completed"."""
        return self.metadata.labels.get(STATE_LABEL)

    @property
    def in_flight(self) -> bool:
        """Not yet completed according to both the label and the condition.

        The state label is set by the Pipelines-as-Code controller and may lag
        behind the condition, so a run is only in flight when neither says it
        is done.
        """
        if self.state == COMPLETED_STATE:
            return False
        condition = self.succeeded
        return condition is None or condition.status not in ("True", "False")

    @property
    def trigger(self) -> TriggerKind:
        on_event = self.metadata.annotations.get(ON_EVENT_ANNOTATION, "")
        event_type = self.metadata.labels.get(EVENT_TYPE_LABEL, "").lower()
        if "pull_request" in on_event or event_type in (
            "pull_request",
            "merge_request",
        ):
            return "pull_request"
        if "push" in on_event or event_type == "push":
            return "push"
        if event_type == "incoming":
            return "api"
        return "unknown"

    def to_run(self) -> Run:
        condition = self.succeeded
        labels = self.metadata.labels
        pull_request = labels.get(PULL_REQUEST_LABEL, "")
        return Run(
            provider="tekton",
            job_key=labels.get(REPOSITORY_LABEL, ""),
            run_key=self.metadata.name,
            display_name=self.metadata.name,
            status=tekton_status(
                status=condition.status if condition else None,
                reason=condition.reason if condition else None,
            ),
            trigger=self.trigger,
            repository_name=labels.get(REPOSITORY_LABEL),
            commit_sha=labels.get(SHA_LABEL),
            pull_request_number=int(pull_request) if pull_request.isdigit() else None,
            branch=self.metadata.annotations.get(SOURCE_BRANCH_ANNOTATION),
            created_at=self.metadata.creation_timestamp,
            url=self.metadata.annotations.get(LOG_URL_ANNOTATION),
            logs_handle=self.metadata.name,
            results={result.name: result.value for result in self.status.results},
        )


class TaskRunStatus(Model):
    pod_name: str | None = Field(default=None, alias="podName")


class TaskRun(Model):
    metadata: ObjectMeta
    status: TaskRunStatus | None = None
