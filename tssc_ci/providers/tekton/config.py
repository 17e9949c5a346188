"""Configuration for the Tekton provider."""

from tssc_ci.polling import RetryPolicy
from tssc_ci.providers.config import ProviderConfig

# Pipelines-as-Code needs a while to turn a webhook into a PipelineRun.
TEKTON_CORRELATION_POLICY = RetryPolicy(
    max_attempts=20, min_delay=10.0, max_delay=30.0, factor=1.5, timeout=900
)


class TektonConfig(ProviderConfig):
    """Configuration for Tekton Pipelines-as-Code.

    Tekton needs no integration secret: PipelineRuns are read through the
    cluster API with the harness's own Kubernetes credentials.
    """

    namespace: str = "tssc-app-ci"
    webhook_route: str = "pipelines-as-code-controller"
    webhook_namespace: str = "openshift-pipelines"
    correlation_policy: RetryPolicy = TEKTON_CORRELATION_POLICY
