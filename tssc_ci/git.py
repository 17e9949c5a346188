"""Shapes consumed from the Git provider layer."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from tssc_ci.models.run import TriggerKind


@dataclass(frozen=True, kw_only=True)
class PullRequest:
    """A pull/merge request as reported by the Git provider."""

    number: int
    sha: str
    repository: str
    merged: bool = False
    merged_at: str | None = None


@dataclass(frozen=True, kw_only=True)
class RepoEvent:
    """A repository event whose CI run we want to find."""

    repository: str
    sha: str
    kind: TriggerKind = "unknown"
    pull_request_number: int | None = None

    @classmethod
    def from_pull_request(
        cls, pull_request: PullRequest, kind: TriggerKind = "pull_request"
    ) -> "RepoEvent":
        """Event for a pull request, or for its merge commit with ``kind="push"``."""
        return cls(
            repository=pull_request.repository,
            sha=pull_request.sha,
            kind=kind,
            pull_request_number=pull_request.number,
        )


class GitClient(Protocol):
    """Operations the test harness performs against the Git provider."""

    async def commit_to_repo(
        self,
        owner: str,
        repo: str,
        modifications: Mapping[str, str],
        message: str,
        branch: str,
    ) -> str:
        """Commit file contents and return the new commit SHA."""

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        head: str,
        base: str,
    ) -> PullRequest:
        """Open a pull request."""

    async def extract_content_by_regex(
        self, owner: str, repo: str, path: str, regex: str, ref: str
    ) -> Sequence[str]:
        """Return all matches of ``regex`` in a file at ``ref``."""
