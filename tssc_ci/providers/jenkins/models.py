"""Pydantic models for Jenkins JSON API responses.

Build ``actions`` are heterogeneous plugin payloads and are kept as plain
mappings; :func:`extract_sha` and :func:`analyze_trigger` pick the commit and
trigger kind out of them.
"""

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from tssc_ci.models.base import Model
from tssc_ci.models.run import Run, TriggerKind
from tssc_ci.status import jenkins_status

QUEUE_KEY_PREFIX = "queue:"

# A hex token with at least one letter, so dates and build numbers are not SHAs.
SHA_PATTERN = re.compile(r"\b(?=[0-9]*[a-fA-F])[0-9a-fA-F]{7,40}\b")

SHA_PARAMETERS = ("GIT_COMMIT", "ghprbActualCommit")
PULL_REQUEST_PARAMETER_HINTS = ("ghpr", "pull")
PULL_REQUEST_PARAMETERS = ("PR", "PR_NUMBER", "CHANGE_ID")

# Cause matching is ordered; the first hit wins.
CAUSE_TRIGGERS: Sequence[tuple[tuple[str, ...], TriggerKind]] = (
    (("pull request", "PullRequest"), "pull_request"),
    (("push", "GitHubPushCause", "GitLabWebHookCause"), "push"),
    (("started by user", "UserIdCause"), "manual"),
    (("timer", "TimerTrigger"), "scheduled"),
    (("remote", "RemoteCause"), "api"),
)

BUILD_TREE = (
    "builds[number,url,building,result,displayName,description,timestamp,"
    "actions[_class,parameters[name,value],causes[_class,shortDescription,userId],"
    "lastBuiltRevision[SHA1,branch[SHA1,name]],"
    "buildsByBranchName[*[revision[SHA1]]],remoteUrls,"
    "pullRequest[source[commit]]]]"
)


def _actions_with(actions: Sequence[Mapping[str, Any]], key: str) -> list[Any]:
    return [action[key] for action in actions if action.get(key)]


def build_parameters(actions: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    return {
        parameter["name"]: parameter.get("value")
        for parameters in _actions_with(actions, "parameters")
        for parameter in parameters
        if "name" in parameter
    }


def build_causes(actions: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return [cause for causes in _actions_with(actions, "causes") for cause in causes]


def _sha_in_text(text: str | None) -> str | None:
    match = SHA_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_sha(
    actions: Sequence[Mapping[str, Any]],
    *,
    display_name: str | None = None,
    description: str | None = None,
) -> str | None:
    """Find the commit a build ran for.

    Sources are tried in order: the git plugin's last built revision, its
    per-branch revisions, well-known SCM parameters, the pull request plugin,
    cause descriptions and finally the build's display name and description.
    """
    for revision in _actions_with(actions, "lastBuiltRevision"):
        if revision.get("SHA1"):
            return str(revision["SHA1"])

    for branches in _actions_with(actions, "buildsByBranchName"):
        for branch in branches.values():
            sha = (branch.get("revision") or {}).get("SHA1")
            if sha:
                return str(sha)

    parameters = build_parameters(actions)
    for name in SHA_PARAMETERS:
        if parameters.get(name):
            return str(parameters[name])

    for pull_request in _actions_with(actions, "pullRequest"):
        commit = (pull_request.get("source") or {}).get("commit")
        if commit:
            return str(commit)

    for cause in build_causes(actions):
        sha = _sha_in_text(cause.get("shortDescription"))
        if sha:
            return sha

    return _sha_in_text(display_name) or _sha_in_text(description)


def analyze_trigger(actions: Sequence[Mapping[str, Any]]) -> TriggerKind:
    """Infer what started a build from its actions and causes."""
    for action in actions:
        if "PullRequest" in action.get("_class", "") or action.get("pullRequest"):
            return "pull_request"
    for name in build_parameters(actions):
        if name in PULL_REQUEST_PARAMETERS or any(
            hint in name.lower() for hint in PULL_REQUEST_PARAMETER_HINTS
        ):
            return "pull_request"

    for cause in build_causes(actions):
        description = (cause.get("shortDescription") or "").lower()
        class_name = cause.get("_class") or ""
        for markers, trigger in CAUSE_TRIGGERS:
            if any(m.lower() in description or m in class_name for m in markers):
                return trigger

    if _actions_with(actions, "lastBuiltRevision") or _actions_with(
        actions, "buildsByBranchName"
    ):
        return "push"
    return "unknown"


def repository_from(actions: Sequence[Mapping[str, Any]]) -> str | None:
    for urls in _actions_with(actions, "remoteUrls"):
        return str(urls[0])
    return None


def from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class Build(Model):
    """A build of a Jenkins job."""

    number: int
    url: str | None = None
    building: bool = False
    result: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = None
    timestamp: int | None = None
    actions: list[dict[str, Any]] = Field(default_factory=list)

    def to_run(self, job_key: str) -> Run:
        actions = [action for action in self.actions if action]
        return Run(
            provider="jenkins",
            job_key=job_key,
            run_key=self.number,
            display_name=self.display_name or f"#{self.number}",
            status=jenkins_status(building=self.building, result=self.result),
            trigger=analyze_trigger(actions),
            repository_name=repository_from(actions),
            commit_sha=extract_sha(
                actions, display_name=self.display_name, description=self.description
            ),
            created_at=from_millis(self.timestamp),
            url=self.url,
            logs_handle=str(self.number),
        )


class BuildRef(Model):
    number: int
    url: str | None = None


class Job(Model):
    """A job with its most recent builds."""

    name: str | None = None
    url: str | None = None
    builds: list[Build] = Field(default_factory=list)


class JobInfo(Model):
    """Activity summary of a job."""

    in_queue: bool = Field(default=False, alias="inQueue")
    buildable: bool = True
    color: str | None = None
    last_build: BuildRef | None = Field(default=None, alias="lastBuild")


class QueueTask(Model):
    name: str
    url: str | None = None


class QueueItem(Model):
    """An item waiting in the Jenkins build queue.

    Once an executor picks the item up, ``executable`` references the build it
    turned into.
    """

    id: int
    cancelled: bool = False
    executable: BuildRef | None = None
    in_queue_since: int | None = Field(default=None, alias="inQueueSince")
    why: str | None = None
    task: QueueTask | None = None

    def to_run(self, job_key: str) -> Run:
        return Run(
            provider="jenkins",
            job_key=job_key,
            run_key=f"{QUEUE_KEY_PREFIX}{self.id}",
            display_name=f"queued-{self.id}",
            status="failure" if self.cancelled else "pending",
            created_at=from_millis(self.in_queue_since),
            url=self.task.url if self.task else None,
        )


class Queue(Model):
    items: list[QueueItem] = Field(default_factory=list)


class JobActivity(Model):
    """Running builds and queue state of one job."""

    job_name: str
    running_builds: int
    in_queue: bool
    last_build: int | None = None
