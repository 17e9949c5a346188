"""Configuration for the Azure Pipelines provider."""

from typing import ClassVar

from pydantic import SecretStr

from tssc_ci.providers.config import ProviderConfig


class AzureConfig(ProviderConfig):
    """Configuration for Azure Pipelines.

    Pipeline definitions are named after the component and its gitops
    repository. The project is supplied explicitly; the rest comes from the
    integration secret.
    """

    SECRET_NAME: ClassVar[str | None] = "tssc-azure-integration"

    token: SecretStr
    host: str = "dev.azure.com"
    organization: str
    project: str
    ref: str = "refs/heads/main"
    api_base_url: str | None = None

    @property
    def base_url(self) -> str:
        return self.api_base_url or f"https://{self.host}/{self.organization}/"
