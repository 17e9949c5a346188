"""Configuration for the GitLab CI provider."""

from typing import ClassVar

from pydantic import SecretStr

from tssc_ci.providers.config import ProviderConfig


class GitLabCIConfig(ProviderConfig):
    """Configuration for GitLab CI.

    The component's projects live in ``group``: ``<group>/<component>`` and
    ``<group>/<component>-gitops``. ``api_base_url`` defaults to the REST API
    of ``host``.
    """

    SECRET_NAME: ClassVar[str | None] = "tssc-gitlab-integration"

    token: SecretStr
    host: str = "gitlab.com"
    group: str
    ref: str = "main"
    api_base_url: str | None = None

    @property
    def base_url(self) -> str:
        return self.api_base_url or f"https://{self.host}/api/v4/"

    def project_path(self, repository: str) -> str:
        """Full project path; bare repository names are taken from ``group``."""
        repository = repository.strip("/").removesuffix(".git")
        if "/" in repository:
            return repository
        return f"{self.group}/{repository}"
