"""Fixtures for module tests using WireMock testcontainers."""

import json
import os
import subprocess
import sys
from collections.abc import Callable, Generator
from typing import Protocol

import pytest
from testcontainers.core import testcontainers_config
from wiremock.client import (
    HttpMethods,
    Mapping,
    MappingRequest,
    MappingResponse,
    Mappings,
)
from wiremock.constants import Config
from wiremock.testing.testcontainer import WireMockContainer

from tssc_ci.testing.tekton.payloads import secret


class StubFn(Protocol):
    """Protocol for stubbing a JSON response."""

    def __call__(
        self, method: str, url_path_pattern: str, body: object, status: int = 200
    ) -> None:
        """Register a WireMock mapping."""


class RunCliFn(Protocol):
    """Protocol for the CLI runner."""

    def __call__(
        self, provider: str, *args: str, provider_config: str = ""
    ) -> subprocess.CompletedProcess[str]:
        """Run tssc-ci against WireMock and return the finished process."""


@pytest.fixture(scope="session", autouse=True)
def _disable_ryuk() -> None:
    """Disable the extra cleanup instance, we use contexts to clean containers."""
    testcontainers_config.ryuk_disabled = True


@pytest.fixture(scope="session")
def wiremock_server() -> Generator[WireMockContainer, None, None]:
    """Start WireMock container using wiremock's testcontainer support."""
    container = WireMockContainer(secure=False)

    with container as wm:
        Config.base_url = wm.get_url("__admin")
        yield wm
        print(wm.get_logs())


@pytest.fixture(scope="session")
def wiremock_url(wiremock_server: WireMockContainer) -> str:
    """URL of WireMock as seen from the host."""
    return wiremock_server.get_base_url().rstrip("/")


@pytest.fixture(autouse=True)
def _reset_mappings(wiremock_server: WireMockContainer) -> None:
    """Start every test without stubs."""
    Mappings.delete_all_mappings()


def _stub_json(
    method: str, url_path_pattern: str, body: object, status: int = 200
) -> None:
    Mappings.create_mapping(
        Mapping(
            request=MappingRequest(method=method, url_path_pattern=url_path_pattern),
            response=MappingResponse(
                status=status,
                headers={"Content-Type": "application/json"},
                json_body=body,
            ),
        )
    )


@pytest.fixture
def stub_json() -> StubFn:
    """Return a function stubbing JSON responses."""
    return _stub_json


@pytest.fixture
def stub_secret() -> Callable[[str, dict[str, str]], None]:
    """Return a function stubbing integration secrets on the fake cluster."""

    def _stub(name: str, data: dict[str, str]) -> None:
        _stub_json(
            HttpMethods.GET,
            f"/api/v1/namespaces/tssc/secrets/{name}",
            secret(name=name, data=data),
        )

    return _stub


@pytest.fixture
def run_cli(wiremock_url: str) -> RunCliFn:
    """Return a function running the CLI with WireMock as the cluster."""
    kube_config = json.dumps(
        {"api_server": wiremock_url, "token": "kube-token", "verify_ssl": False}
    )

    def _run(
        provider: str, *args: str, provider_config: str = ""
    ) -> subprocess.CompletedProcess[str]:
        command = [
            sys.executable,
            "-m",
            "tssc_ci.cli",
            "--provider",
            provider,
            "--component",
            "my-app",
            "--kube-config",
            kube_config,
        ]
        if provider_config:
            command += ["--provider-config", provider_config]
        return subprocess.run(
            [*command, *args],
            capture_output=True,
            text=True,
            timeout=60,
            env={**os.environ, "TSSC_CI_LOG_LEVEL": "DEBUG"},
        )

    return _run
