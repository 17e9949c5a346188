"""Tests for native status and trigger translation."""

import pytest

from tssc_ci.models.run import RunStatus
from tssc_ci.status import (
    AZURE_RESULT_TO_STATUS,
    GITHUB_CONCLUSION_TO_STATUS,
    GITLAB_SOURCE_TO_TRIGGER,
    GITLAB_STATUS_TO_STATUS,
    azure_status,
    github_status,
    gitlab_status,
    jenkins_status,
    tekton_status,
)

STATUSES = {"pending", "running", "success", "failure", "unknown"}


class TestJenkinsStatus:
    """Tests for jenkins_status."""

    def test_building_is_running(self) -> None:
        """A building build is running whatever its result says."""
        assert jenkins_status(building=True, result="SUCCESS") == "running"

    @pytest.mark.parametrize(
        ("result", "expected"),
        [
            ("SUCCESS", "success"),
            ("success", "success"),
            ("FAILURE", "failure"),
            ("UNSTABLE", "failure"),
            ("ABORTED", "failure"),
            ("NOT_BUILT", "pending"),
            ("SOMETHING_NEW", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_result_mapping(self, result: str | None, expected: RunStatus) -> None:
        """Results are compared case-insensitively."""
        assert jenkins_status(building=False, result=result) == expected


class TestGitLabStatus:
    """Tests for gitlab_status."""

    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            ("success", "success"),
            ("failed", "failure"),
            ("canceled", "failure"),
            ("skipped", "failure"),
            ("running", "running"),
            ("pending", "pending"),
            ("created", "pending"),
            ("manual", "pending"),
            ("scheduled", "pending"),
            ("waiting_for_resource", "pending"),
            ("preparing", "pending"),
            ("brand_new", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_mapping(self, native: str | None, expected: RunStatus) -> None:
        """Every documented pipeline status maps to one normalized status."""
        assert gitlab_status(native) == expected

    def test_sources_map_to_triggers(self) -> None:
        """Pipeline sources translate into trigger kinds."""
        assert GITLAB_SOURCE_TO_TRIGGER["push"] == "push"
        assert GITLAB_SOURCE_TO_TRIGGER["merge_request_event"] == "pull_request"
        assert GITLAB_SOURCE_TO_TRIGGER["schedule"] == "scheduled"
        assert GITLAB_SOURCE_TO_TRIGGER["web"] == "manual"


class TestGitHubStatus:
    """Tests for github_status."""

    @pytest.mark.parametrize(
        ("status", "conclusion", "expected"),
        [
            ("completed", "success", "success"),
            ("completed", "failure", "failure"),
            ("completed", "timed_out", "failure"),
            ("completed", "cancelled", "failure"),
            ("in_progress", None, "running"),
            ("queued", None, "pending"),
            ("waiting", None, "pending"),
            ("pending", None, "pending"),
            ("completed", "neutral", "unknown"),
            (None, None, "unknown"),
        ],
    )
    def test_mapping(
        self, status: str | None, conclusion: str | None, expected: RunStatus
    ) -> None:
        """A known conclusion wins, otherwise the run status decides."""
        assert github_status(status=status, conclusion=conclusion) == expected


class TestAzureStatus:
    """Tests for azure_status."""

    @pytest.mark.parametrize(
        ("state", "result", "expected"),
        [
            ("completed", "succeeded", "success"),
            ("completed", "failed", "failure"),
            ("completed", "canceled", "failure"),
            ("completed", "partiallySucceeded", "failure"),
            ("completed", None, "unknown"),
            ("inProgress", None, "running"),
            ("notStarted", None, "pending"),
            ("postponed", None, "pending"),
            ("cancelling", None, "unknown"),
        ],
    )
    def test_mapping(
        self, state: str | None, result: str | None, expected: RunStatus
    ) -> None:
        """The result only counts once the build is completed."""
        assert azure_status(state=state, result=result) == expected

    def test_result_ignored_while_in_progress(self) -> None:
        """A stale result does not finish an in-progress build."""
        assert azure_status(state="inProgress", result="succeeded") == "running"


class TestTektonStatus:
    """Tests for tekton_status."""

    @pytest.mark.parametrize(
        ("status", "reason", "expected"),
        [
            ("True", "Succeeded", "success"),
            ("False", "Failed", "failure"),
            ("False", "Cancelled", "failure"),
            ("Unknown", "Running", "running"),
            ("Unknown", "Started", "running"),
            ("Unknown", "Pending", "pending"),
            ("Unknown", "ResolvingTaskRef", "unknown"),
            (None, None, "unknown"),
        ],
    )
    def test_mapping(
        self, status: str | None, reason: str | None, expected: RunStatus
    ) -> None:
        """The Succeeded condition decides the status."""
        assert tekton_status(status=status, reason=reason) == expected


@pytest.mark.parametrize(
    "table",
    [GITLAB_STATUS_TO_STATUS, GITHUB_CONCLUSION_TO_STATUS, AZURE_RESULT_TO_STATUS],
)
def test_tables_map_into_normalized_statuses(table: dict[str, RunStatus]) -> None:
    """Every table value is one of the five normalized statuses."""
    assert set(table.values()) <= STATUSES
