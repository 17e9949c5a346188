"""Configuration shared by every CI provider."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from tssc_ci.models.cancel import DEFAULT_CONCURRENCY
from tssc_ci.polling import DEFAULT_POLICY, RetryPolicy

REQUEST_POLICY = RetryPolicy(max_attempts=3, min_delay=1.0, max_delay=5.0, timeout=60)
LOGS_POLICY = RetryPolicy(max_attempts=5, min_delay=2.0, max_delay=10.0, timeout=120)


class ProviderConfig(BaseModel):
    """Base configuration for CI providers.

    Credential fields of subclasses are loaded from the Kubernetes secret named
    by ``SECRET_NAME``; secret keys map onto fields through aliases. Every retry
    site gets its own named policy so tests and callers can tune them.
    """

    model_config = ConfigDict(populate_by_name=True)

    SECRET_NAME: ClassVar[str | None] = None
    SECRET_NAMESPACE: ClassVar[str] = "tssc"

    component_name: str
    integration_secret: dict[str, SecretStr] = Field(default_factory=dict, repr=False)
    correlation_policy: RetryPolicy = DEFAULT_POLICY
    request_policy: RetryPolicy = REQUEST_POLICY
    logs_policy: RetryPolicy = LOGS_POLICY
    cancel_concurrency: int = DEFAULT_CONCURRENCY
    run_timeout: float = 900
    run_poll_interval: float = 30
    wait_all_timeout: float = 600
    wait_all_poll_interval: float = 5

    @property
    def gitops_name(self) -> str:
        return f"{self.component_name}-gitops"

    @property
    def job_names(self) -> tuple[str, str]:
        """Source and gitops job/repository names of the component."""
        return (self.component_name, self.gitops_name)
