"""GitHub Actions provider manifest."""

from tssc_ci.providers.github_actions.config import GitHubActionsConfig
from tssc_ci.providers.github_actions.provider import GitHubActionsProvider
from tssc_ci.providers.manifest import ProviderManifest

github_actions_manifest = ProviderManifest(
    config_cls=GitHubActionsConfig,
    provider_factory=GitHubActionsProvider.from_config,
)
