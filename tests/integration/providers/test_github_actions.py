"""Integration tests for GitHub Actions provider."""

import re
from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr
from yarl import URL

from tssc_ci.errors import RateLimitError
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.cancel import CancelOptions
from tssc_ci.models.run import Run
from tssc_ci.polling import RetryPolicy
from tssc_ci.providers.github_actions import (
    GitHubActionsConfig,
    GitHubActionsProvider,
)
from tssc_ci.testing.github.payloads import (
    logs_archive,
    workflow_job,
    workflow_jobs,
    workflow_run,
    workflow_runs,
)

API_BASE_URL = "http://github.test/"
RUNS_URL = f"{API_BASE_URL}repos/my-org/my-app/actions/runs"
SOURCE_RUNS = re.compile(re.escape(RUNS_URL) + r"\?.*")
GITOPS_RUNS = re.compile(
    re.escape(f"{API_BASE_URL}repos/my-org/my-app-gitops/actions/runs") + r"\?.*"
)
FAST = RetryPolicy(max_attempts=5, min_delay=0.01, max_delay=0.01, timeout=5, jitter=0)
FULL_SHA = "abc123def456abc123def456abc123def456abcd"
RUN = Run(provider="github-actions", job_key="my-app", run_key=12345)
DISPATCHED = {"event": "workflow_dispatch", "status": "queued", "conclusion": None}


@pytest.fixture
def config() -> GitHubActionsConfig:
    """Create test configuration."""
    return GitHubActionsConfig(
        component_name="my-app",
        token=SecretStr("test-token"),
        owner="my-org",
        api_base_url=API_BASE_URL,
        correlation_policy=FAST,
        request_policy=FAST,
        logs_policy=FAST,
        dispatch_policy=FAST,
    )


@pytest.fixture
async def provider(
    config: GitHubActionsConfig, kube: KubeClient
) -> AsyncGenerator[GitHubActionsProvider, None]:
    """Create provider with managed session."""
    async with GitHubActionsProvider.from_config(config, kube) as impl:
        yield impl


class TestGetRunFor:
    """Tests for get_run_for."""

    async def test_filters_by_sha_and_event(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Full SHAs and push/pull_request events are sent as filters."""
        aioresponses.get(
            SOURCE_RUNS,
            payload=workflow_runs(
                workflow_run(
                    run_id=2,
                    head_sha=FULL_SHA,
                    event="pull_request",
                    status="in_progress",
                    conclusion=None,
                    head_branch="feature",
                ),
            ),
        )

        run = await provider.get_run_for(
            RepoEvent(repository="my-org/my-app", sha=FULL_SHA, kind="pull_request"),
            status="running",
        )

        assert run is not None
        assert run.run_key == 2
        assert run.status == "running"
        assert run.branch == "feature"
        [(_, url)] = list(aioresponses.requests)
        assert url.query["head_sha"] == FULL_SHA
        assert url.query["event"] == "pull_request"

    async def test_retries_rate_limits(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """A 429 with Retry-After is retried while polling."""
        aioresponses.get(SOURCE_RUNS, status=429, headers={"Retry-After": "0"})
        aioresponses.get(
            SOURCE_RUNS,
            payload=workflow_runs(
                workflow_run(head_sha=FULL_SHA, status="queued", conclusion=None)
            ),
        )

        run = await provider.get_run_for(
            RepoEvent(repository="my-app", sha=FULL_SHA), status="pending"
        )

        assert run is not None
        assert run.status == "pending"

    async def test_rate_limit_on_single_pass(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Without polling the rate limit error surfaces."""
        aioresponses.get(SOURCE_RUNS, status=429, headers={"Retry-After": "30"})

        with pytest.raises(RateLimitError) as exc_info:
            await provider.get_run_for(RepoEvent(repository="my-app", sha=FULL_SHA))

        assert exc_info.value.retry_after == 30.0


class TestLogs:
    """Tests for fetch_logs."""

    async def test_unzips_log_archive(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Files of the archive are concatenated in name order."""
        aioresponses.get(
            f"{RUNS_URL}/12345/logs",
            body=logs_archive(
                {"2_test.txt": "tests passed\n", "1_build.txt": "image built\n"}
            ),
        )

        logs = await provider.fetch_logs(RUN)

        assert logs.index("--- 1_build.txt ---") < logs.index("--- 2_test.txt ---")
        assert "image built" in logs

    async def test_falls_back_to_job_summary(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Expired archives are replaced by a step summary."""
        aioresponses.get(f"{RUNS_URL}/12345/logs", status=410)
        aioresponses.get(
            f"{RUNS_URL}/12345/jobs",
            payload=workflow_jobs(
                workflow_job(
                    name="build",
                    conclusion="failure",
                    steps=[("Checkout", "success"), ("Build", "failure")],
                )
            ),
        )

        logs = await provider.fetch_logs(RUN)

        assert logs.splitlines() == [
            "--- Job: build (failure) ---",
            "  1. Checkout: success",
            "  2. Build: failure",
        ]


class TestCancel:
    """Tests for cancel_run and cancel_all."""

    async def test_conflict_means_already_completed(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """A 409 for a run that completed meanwhile is not an error."""
        aioresponses.post(f"{RUNS_URL}/12345/cancel", status=409)

        await provider.cancel_run(RUN)

    async def test_cancel_all_in_flight_runs(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Queued and in-progress runs of both repositories are cancelled."""
        aioresponses.get(
            SOURCE_RUNS,
            payload=workflow_runs(
                workflow_run(run_id=1, status="in_progress", conclusion=None),
                workflow_run(run_id=2, status="queued", conclusion=None),
                workflow_run(run_id=3),
            ),
        )
        aioresponses.get(GITOPS_RUNS, payload=workflow_runs())
        aioresponses.post(f"{RUNS_URL}/1/cancel", status=202)
        aioresponses.post(f"{RUNS_URL}/2/cancel", status=202)

        result = await provider.cancel_all(CancelOptions(branch="main"))

        assert result.balanced
        assert result.cancelled == 2


class TestTriggerRun:
    """Tests for trigger_run."""

    async def test_dispatches_and_finds_run(
        self, provider: GitHubActionsProvider, aioresponses: aioresponses_cls
    ) -> None:
        """The newest run of the dispatched workflow is returned."""
        workflow_url = f"{API_BASE_URL}repos/my-org/my-app/actions/workflows/build.yml"
        dispatch_url = f"{workflow_url}/dispatches"
        workflow_runs_url = re.compile(re.escape(f"{workflow_url}/runs") + r"\?.*")
        aioresponses.post(dispatch_url, status=204)
        aioresponses.get(workflow_runs_url, payload=workflow_runs())
        aioresponses.get(
            workflow_runs_url,
            payload=workflow_runs(
                workflow_run(run_id=41, **DISPATCHED),
                workflow_run(run_id=42, **DISPATCHED),
            ),
        )

        run = await provider.trigger_run("build.yml", {"image": "quay.io/org/app"})

        assert run is not None
        assert run.run_key == 42
        assert run.trigger == "manual"
        call = aioresponses.requests[("POST", URL(dispatch_url))][0]
        assert call.kwargs["json"] == {
            "ref": "main",
            "inputs": {"image": "quay.io/org/app"},
        }
        lookups = [url for method, url in aioresponses.requests if method == "GET"]
        assert all(url.query["event"] == "workflow_dispatch" for url in lookups)
        assert all(url.query["created"].startswith(">=") for url in lookups)
        assert all(url.path.endswith("/workflows/build.yml/runs") for url in lookups)


async def test_webhook_not_supported(provider: GitHubActionsProvider) -> None:
    """GitHub Actions has no webhook endpoint of its own."""
    with pytest.raises(NotImplementedError):
        await provider.webhook_url()
