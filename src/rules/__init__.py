"""Rule definitions for trackscan: configuration, provider catalog, custom signatures."""

from rules.config import (
    ConfigError,
    TrackScanConfig,
    load_config,
)
from rules.custom_signatures import (
    CustomFunctionRegistry,
    CustomSignature,
    SignatureError,
    parse_custom_signature,
)
from rules.providers import PROVIDER_CATALOG, ProviderId, ProviderSignature

__all__ = [
    "PROVIDER_CATALOG",
    "ConfigError",
    "CustomFunctionRegistry",
    "CustomSignature",
    "ProviderId",
    "ProviderSignature",
    "SignatureError",
    "TrackScanConfig",
    "load_config",
    "parse_custom_signature",
]
