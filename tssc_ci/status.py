"""Translation of native CI states into normalized run status and trigger kind.

Each provider gets a total function from its native state into
:data:`~tssc_ci.models.run.RunStatus`; anything a table does not list maps to
``"unknown"``. Cancelled and aborted runs count as failures.
"""

from collections.abc import Mapping

from tssc_ci.models.run import RunStatus, TriggerKind

JENKINS_RESULT_TO_STATUS: Mapping[str, RunStatus] = {
    "SUCCESS": "success",
    "FAILURE": "failure",
    "UNSTABLE": "failure",
    "ABORTED": "failure",
    "NOT_BUILT": "pending",
}

GITLAB_STATUS_TO_STATUS: Mapping[str, RunStatus] = {
    "success": "success",
    "failed": "failure",
    "canceled": "failure",
    "skipped": "failure",
    "running": "running",
    "pending": "pending",
    "created": "pending",
    "manual": "pending",
    "scheduled": "pending",
    "waiting_for_resource": "pending",
    "preparing": "pending",
}

GITHUB_CONCLUSION_TO_STATUS: Mapping[str, RunStatus] = {
    "success": "success",
    "failure": "failure",
    "timed_out": "failure",
    "cancelled": "failure",
}

GITHUB_STATUS_TO_STATUS: Mapping[str, RunStatus] = {
    "in_progress": "running",
    "queued": "pending",
    "waiting": "pending",
    "pending": "pending",
}

AZURE_RESULT_TO_STATUS: Mapping[str, RunStatus] = {
    "succeeded": "success",
    "failed": "failure",
    "canceled": "failure",
    "partiallySucceeded": "failure",
}

AZURE_STATE_TO_STATUS: Mapping[str, RunStatus] = {
    "inProgress": "running",
    "notStarted": "pending",
    "postponed": "pending",
}

TEKTON_RUNNING_REASONS = frozenset(["Running", "Started"])
TEKTON_PENDING_REASONS = frozenset(["Pending", "PipelineRunPending"])

GITLAB_SOURCE_TO_TRIGGER: Mapping[str, TriggerKind] = {
    "push": "push",
    "merge_request_event": "pull_request",
    "external_pull_request_event": "pull_request",
    "web": "manual",
    "api": "api",
    "trigger": "api",
    "schedule": "scheduled",
}

GITHUB_EVENT_TO_TRIGGER: Mapping[str, TriggerKind] = {
    "push": "push",
    "pull_request": "pull_request",
    "pull_request_target": "pull_request",
    "workflow_dispatch": "manual",
    "schedule": "scheduled",
    "repository_dispatch": "api",
}

AZURE_REASON_TO_TRIGGER: Mapping[str, TriggerKind] = {
    "individualCI": "push",
    "batchedCI": "push",
    "pullRequest": "pull_request",
    "manual": "manual",
    "schedule": "scheduled",
}


def jenkins_status(*, building: bool, result: str | None) -> RunStatus:
    """Map a Jenkins build; ``result`` is compared case-insensitively."""
    if building:
        return "running"
    if result is None:
        return "unknown"
    return JENKINS_RESULT_TO_STATUS.get(result.upper(), "unknown")


def gitlab_status(status: str | None) -> RunStatus:
    return GITLAB_STATUS_TO_STATUS.get(status or "", "unknown")


def github_status(*, status: str | None, conclusion: str | None) -> RunStatus:
    """Map a workflow run; a known conclusion wins over the run status."""
    if conclusion is not None and conclusion in GITHUB_CONCLUSION_TO_STATUS:
        return GITHUB_CONCLUSION_TO_STATUS[conclusion]
    return GITHUB_STATUS_TO_STATUS.get(status or "", "unknown")


def azure_status(*, state: str | None, result: str | None) -> RunStatus:
    """Map an Azure build, whose result only matters once it is completed."""
    if state == "completed":
        return AZURE_RESULT_TO_STATUS.get(result or "", "unknown")
    return AZURE_STATE_TO_STATUS.get(state or "", "unknown")


def tekton_status(*, status: str | None, reason: str | None) -> RunStatus:
    """Map the ``Succeeded`` condition of a PipelineRun."""
    if status == "True":
        return "success"
    if status == "False":
        return "failure"
    if status == "Unknown":
        if reason in TEKTON_RUNNING_REASONS:
            return "running"
        if reason in TEKTON_PENDING_REASONS:
            return "pending"
    return "unknown"
