"""Fixtures for integration tests."""

from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr

from tssc_ci.kube import KubeClient, KubeConfig

KUBE_URL = "http://kube.test/"


@pytest.fixture
def kube_config() -> KubeConfig:
    """Create Kubernetes connection settings for the mocked API server."""
    return KubeConfig(api_server=KUBE_URL, token=SecretStr("kube-token"))


@pytest.fixture
async def kube(
    kube_config: KubeConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[KubeClient, None]:
    """Create Kubernetes client with managed session."""
    async with KubeClient.from_config(kube_config) as client:
        yield client
