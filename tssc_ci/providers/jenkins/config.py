"""Configuration for the Jenkins provider."""

from typing import ClassVar

from pydantic import Field, SecretStr

from tssc_ci.polling import RetryPolicy
from tssc_ci.providers.config import ProviderConfig

TRIGGER_POLICY = RetryPolicy(
    max_attempts=30, min_delay=2.0, max_delay=10.0, timeout=300
)
CREDENTIAL_POLICY = RetryPolicy(
    max_attempts=5, min_delay=1.0, max_delay=5.0, timeout=60
)


class JenkinsConfig(ProviderConfig):
    """Configuration for Jenkins.

    Jobs live in a folder named after the component: ``<component>`` and
    ``<component>-gitops``. Authentication uses a user API token over HTTP
    Basic auth.
    """

    SECRET_NAME: ClassVar[str | None] = "tssc-jenkins-integration"

    base_url: str = Field(alias="baseUrl")
    username: str
    token: SecretStr
    build_scan_limit: int = 50
    trigger_policy: RetryPolicy = TRIGGER_POLICY
    credential_policy: RetryPolicy = CREDENTIAL_POLICY

    @property
    def folder(self) -> str:
        return self.component_name
