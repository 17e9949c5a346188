"""Configuration for the GitHub Actions provider."""

from typing import ClassVar

from pydantic import SecretStr

from tssc_ci.polling import RetryPolicy
from tssc_ci.providers.config import ProviderConfig

DISPATCH_POLICY = RetryPolicy(
    max_attempts=30, min_delay=2.0, max_delay=10.0, timeout=300
)


class GitHubActionsConfig(ProviderConfig):
    """Configuration for GitHub Actions.

    The integration secret only carries the token; the owner of the
    component's repositories is supplied explicitly.
    """

    SECRET_NAME: ClassVar[str | None] = "tssc-github-integration"

    token: SecretStr
    owner: str
    ref: str = "main"
    api_base_url: str = "https://api.github.com/"
    dispatch_policy: RetryPolicy = DISPATCH_POLICY
    wait_all_timeout: float = 300
    wait_all_poll_interval: float = 5
