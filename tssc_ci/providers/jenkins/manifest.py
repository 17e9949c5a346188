"""Jenkins provider manifest."""

from tssc_ci.providers.jenkins.config import JenkinsConfig
from tssc_ci.providers.jenkins.provider import JenkinsProvider
from tssc_ci.providers.manifest import ProviderManifest

jenkins_manifest = ProviderManifest(
    config_cls=JenkinsConfig,
    provider_factory=JenkinsProvider.from_config,
)
