"""Provider manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from tssc_ci.kube import KubeClient
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.config import ProviderConfig


@dataclass(frozen=True, kw_only=True)
class ProviderManifest[ConfigT: ProviderConfig]:
    """Manifest describing a CI provider plugin.

    The manifest references the configuration class, whose ``SECRET_NAME``
    tells the loader which integration secret to read, and the factory that
    opens a provider with a managed HTTP session.
    """

    config_cls: type[ConfigT]
    provider_factory: Callable[
        [ConfigT, KubeClient], AbstractAsyncContextManager[CIProvider[ConfigT]]
    ]
