"""GitHub Actions provider module."""

from tssc_ci.providers.github_actions.config import GitHubActionsConfig
from tssc_ci.providers.github_actions.manifest import github_actions_manifest
from tssc_ci.providers.github_actions.provider import GitHubActionsProvider

__all__ = ["GitHubActionsConfig", "GitHubActionsProvider", "github_actions_manifest"]
