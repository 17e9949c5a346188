"""Tekton provider manifest."""

from tssc_ci.providers.manifest import ProviderManifest
from tssc_ci.providers.tekton.config import TektonConfig
from tssc_ci.providers.tekton.provider import TektonProvider

tekton_manifest = ProviderManifest(
    config_cls=TektonConfig,
    provider_factory=TektonProvider.from_config,
)
