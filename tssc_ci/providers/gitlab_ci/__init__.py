"""GitLab CI provider module."""

from tssc_ci.providers.gitlab_ci.config import GitLabCIConfig
from tssc_ci.providers.gitlab_ci.manifest import gitlab_ci_manifest
from tssc_ci.providers.gitlab_ci.provider import GitLabCIProvider

__all__ = ["GitLabCIConfig", "GitLabCIProvider", "gitlab_ci_manifest"]
