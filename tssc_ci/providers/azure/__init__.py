"""Azure Pipelines provider module."""

from tssc_ci.providers.azure.config import AzureConfig
from tssc_ci.providers.azure.manifest import azure_manifest
from tssc_ci.providers.azure.provider import AzureProvider

__all__ = ["AzureConfig", "AzureProvider", "azure_manifest"]
