"""PrepWise platform package: settings and voice provider integration."""

from prepwise_platform.config import (
    PLATFORM_NAME,
    AppSettings,
    load_env_files,
    load_settings,
)
from prepwise_platform.vapi import (
    VapiClient,
    build_request_body,
    normalize_variable_values,
)
from prepwise_platform.voice_client import ProviderEventVoiceClient

__all__ = [
    "PLATFORM_NAME",
    "AppSettings",
    "load_env_files",
    "load_settings",
    "VapiClient",
    "build_request_body",
    "normalize_variable_values",
    "ProviderEventVoiceClient",
]
