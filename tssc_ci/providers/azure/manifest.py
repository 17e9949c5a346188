"""Azure Pipelines provider manifest."""

from tssc_ci.providers.azure.config import AzureConfig
from tssc_ci.providers.azure.provider import AzureProvider
from tssc_ci.providers.manifest import ProviderManifest

azure_manifest = ProviderManifest(
    config_cls=AzureConfig,
    provider_factory=AzureProvider.from_config,
)
