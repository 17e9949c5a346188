"""Jenkins provider module."""

from tssc_ci.providers.jenkins.config import JenkinsConfig
from tssc_ci.providers.jenkins.manifest import jenkins_manifest
from tssc_ci.providers.jenkins.provider import JenkinsProvider

__all__ = ["JenkinsConfig", "JenkinsProvider", "jenkins_manifest"]
