"""Integration tests for Azure Pipelines provider."""

import base64
import re
from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr
from yarl import URL

from tssc_ci.errors import CIError, NotFoundError
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.cancel import CancelOptions
from tssc_ci.models.run import Run
from tssc_ci.polling import RetryPolicy
from tssc_ci.providers.azure import AzureConfig, AzureProvider
from tssc_ci.testing.azure.payloads import build, build_log, definition, envelope

API_BASE_URL = "http://azure.test/my-org/"
BUILDS_URL = f"{API_BASE_URL}my-project/_apis/build/builds"
SOURCE_DEFINITION = re.compile(r".*/_apis/build/definitions\?.*name=my-app$")
GITOPS_DEFINITION = re.compile(r".*/_apis/build/definitions\?.*name=my-app-gitops$")
SOURCE_BUILDS = re.compile(re.escape(BUILDS_URL) + r"\?.*definitions=7(&|$)")
GITOPS_BUILDS = re.compile(re.escape(BUILDS_URL) + r"\?.*definitions=8(&|$)")
FAST = RetryPolicy(max_attempts=5, min_delay=0.01, max_delay=0.01, timeout=5, jitter=0)
SHA = "abc123def456abc123def456abc123def456abcd"


@pytest.fixture
def config() -> AzureConfig:
    """Create test configuration."""
    return AzureConfig(
        component_name="my-app",
        token=SecretStr("test-pat"),
        organization="my-org",
        project="my-project",
        api_base_url=API_BASE_URL,
        correlation_policy=FAST,
        request_policy=FAST,
        logs_policy=FAST,
    )


@pytest.fixture
async def provider(
    config: AzureConfig, kube: KubeClient
) -> AsyncGenerator[AzureProvider, None]:
    """Create provider with managed session."""
    async with AzureProvider.from_config(config, kube) as impl:
        yield impl


async def test_basic_auth_with_empty_username(provider: AzureProvider) -> None:
    """The PAT is sent as the password of an empty user."""
    expected = base64.b64encode(b":test-pat").decode("ascii")

    assert provider.session.headers["Authorization"] == f"Basic {expected}"


class TestGetRunFor:
    """Tests for get_run_for."""

    async def test_finds_build_of_commit(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Scans the definition's builds for the commit."""
        aioresponses.get(SOURCE_DEFINITION, payload=envelope(definition()))
        aioresponses.get(
            SOURCE_BUILDS,
            payload=envelope(
                build(
                    build_id=11, source_version=SHA, status="inProgress", result=None
                ),
                build(build_id=10, source_version=SHA, reason="manual"),
                build(build_id=12, source_version="f" * 40),
            ),
        )

        run = await provider.get_run_for(
            RepoEvent(repository="my-app", sha=SHA[:7], kind="push")
        )

        assert run is not None
        assert run.run_key == 11
        assert run.status == "running"
        assert run.trigger == "push"
        assert run.branch == "main"
        assert run.display_name == "20990101.11"

    async def test_unknown_definition(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """An empty definition lookup raises NotFoundError."""
        aioresponses.get(SOURCE_DEFINITION, payload=envelope())

        with pytest.raises(NotFoundError, match="my-app not found"):
            await provider.list_builds("my-app")


class TestCancelAll:
    """Tests for cancel_all."""

    async def test_cancels_in_flight_builds(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """In-flight builds of both definitions are patched to cancelling."""
        aioresponses.get(SOURCE_DEFINITION, payload=envelope(definition()))
        aioresponses.get(
            GITOPS_DEFINITION,
            payload=envelope(definition(definition_id=8, name="my-app-gitops")),
        )
        aioresponses.get(
            SOURCE_BUILDS,
            payload=envelope(
                build(build_id=1, status="inProgress", result=None),
                build(build_id=2, status="notStarted", result=None),
                build(build_id=3),
            ),
        )
        aioresponses.get(
            GITOPS_BUILDS,
            payload=envelope(
                build(
                    build_id=4,
                    definition_id=8,
                    definition_name="my-app-gitops",
                    status="inProgress",
                    result=None,
                    reason="pullRequest",
                )
            ),
        )
        for build_id in (1, 2):
            aioresponses.patch(
                f"{BUILDS_URL}/{build_id}?api-version=7.1", payload={}
            )

        result = await provider.cancel_all(CancelOptions(event_type="push"))

        assert result.balanced
        assert result.cancelled == 2
        call = aioresponses.requests[
            ("PATCH", URL(f"{BUILDS_URL}/1?api-version=7.1"))
        ][0]
        assert call.kwargs["json"] == {"status": "cancelling"}


class TestLogs:
    """Tests for get_logs."""

    async def test_concatenates_logs_in_id_order(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Every build log is fetched and labelled."""
        aioresponses.get(
            f"{BUILDS_URL}/5/logs?api-version=7.1",
            payload=envelope(build_log(log_id=2), build_log(log_id=1)),
        )
        aioresponses.get(f"{BUILDS_URL}/5/logs/1?api-version=7.1", body="checkout\n")
        aioresponses.get(f"{BUILDS_URL}/5/logs/2?api-version=7.1", body="build\n")

        logs = await provider.get_logs(
            Run(provider="azure", job_key="my-app", run_key=5)
        )

        assert logs.index("--- Log 1 ---") < logs.index("--- Log 2 ---")
        assert "checkout" in logs


class TestTriggerRun:
    """Tests for trigger_run."""

    async def test_runs_pipeline_on_ref(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """Queues a pipeline run and returns its build."""
        runs_url = f"{API_BASE_URL}my-project/_apis/pipelines/7/runs?api-version=7.1"
        aioresponses.get(SOURCE_DEFINITION, payload=envelope(definition()))
        aioresponses.post(runs_url, payload={"id": 99, "state": "inProgress"})
        aioresponses.get(
            f"{BUILDS_URL}/99?api-version=7.1",
            payload=build(
                build_id=99, status="notStarted", result=None, reason="manual"
            ),
        )

        run = await provider.trigger_run("my-app", {"image": "quay.io/org/app"})

        assert run is not None
        assert run.run_key == 99
        assert run.status == "pending"
        assert run.trigger == "manual"
        call = aioresponses.requests[("POST", URL(runs_url))][0]
        assert call.kwargs["json"] == {
            "resources": {"repositories": {"self": {"refName": "refs/heads/main"}}},
            "templateParameters": {"image": "quay.io/org/app"},
        }

    async def test_missing_run_id(
        self, provider: AzureProvider, aioresponses: aioresponses_cls
    ) -> None:
        """A response without a run id is an error."""
        aioresponses.get(SOURCE_DEFINITION, payload=envelope(definition()))
        aioresponses.post(
            f"{API_BASE_URL}my-project/_apis/pipelines/7/runs?api-version=7.1",
            payload={"state": "inProgress"},
        )

        with pytest.raises(CIError, match="Run ID not found"):
            await provider.trigger_run("my-app")
