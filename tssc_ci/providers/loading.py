"""Loading of providers from entry points."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import entry_points
from typing import Any

from pydantic import ValidationError

from tssc_ci.errors import ConfigError, NotFoundError
from tssc_ci.kube import KubeClient
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.manifest import ProviderManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "tssc_ci.providers"


class ProviderNotFoundError(ConfigError):
    """Raised when a provider is not found."""


def load_provider_manifest(key: str) -> ProviderManifest[Any]:
    """Load a provider manifest by key.

    Args:
        key: The CI type as registered in pyproject.toml
             (e.g., "tekton", "gitlab-ci")

    Returns:
        The provider manifest instance

    Raises:
        ProviderNotFoundError: If no provider with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: ProviderManifest[Any] = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise ProviderNotFoundError(
        f"Provider '{key}' not found. Available providers: {available}"
    )


async def read_integration_secret(
    manifest: ProviderManifest[Any], kube: KubeClient
) -> dict[str, str]:
    """Read the integration secret a provider is configured from, if any."""
    name = manifest.config_cls.SECRET_NAME
    namespace = manifest.config_cls.SECRET_NAMESPACE
    if name is None:
        return {}
    try:
        return await kube.get_secret(name, namespace)
    except NotFoundError as exc:
        raise ConfigError(
            f"Integration secret {namespace}/{name} not found", status=exc.status
        ) from exc


@asynccontextmanager
async def open_provider(
    ci_type: str,
    *,
    kube: KubeClient,
    component_name: str,
    **settings: Any,
) -> AsyncGenerator[CIProvider[Any], None]:
    """Open the provider registered for ``ci_type``.

    The integration secret is read from the cluster and merged with
    ``settings``; explicit settings win over secret values.

    Raises:
        ProviderNotFoundError: If ``ci_type`` is not registered
        ConfigError: If the secret is missing or the configuration is invalid

    """
    manifest = load_provider_manifest(ci_type)
    secret = await read_integration_secret(manifest, kube)
    try:
        config = manifest.config_cls.model_validate(
            {
                **secret,
                **settings,
                "component_name": component_name,
                "integration_secret": secret,
            }
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid {ci_type} configuration: {exc}") from exc

    log.info("Opening %s provider for component %s", ci_type, component_name)
    async with manifest.provider_factory(config, kube) as provider:
        yield provider
