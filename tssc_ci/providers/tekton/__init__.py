"""Tekton provider module."""

from tssc_ci.providers.tekton.config import TektonConfig
from tssc_ci.providers.tekton.manifest import tekton_manifest
from tssc_ci.providers.tekton.provider import TektonProvider

__all__ = ["TektonConfig", "TektonProvider", "tekton_manifest"]
