"""GitLab CI provider manifest."""

from tssc_ci.providers.gitlab_ci.config import GitLabCIConfig
from tssc_ci.providers.gitlab_ci.provider import GitLabCIProvider
from tssc_ci.providers.manifest import ProviderManifest

gitlab_ci_manifest = ProviderManifest(
    config_cls=GitLabCIConfig,
    provider_factory=GitLabCIProvider.from_config,
)
