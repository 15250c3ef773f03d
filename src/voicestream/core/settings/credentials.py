"""
API key lookup for the cloud streaming vendors.

Keys live in the settings file; each vendor also honours its conventional
environment variable so keys can be supplied without touching the file.
"""

import os
from typing import Dict, Optional, Protocol

from ...utils.logger import get_logger
from .settings import Settings, get_settings

logger = get_logger(__name__)


PROVIDER_ENV_VARS: Dict[str, str] = {
    "Deepgram": "DEEPGRAM_API_KEY",
    "ElevenLabs": "ELEVENLABS_API_KEY",
    "Mistral": "MISTRAL_API_KEY",
    "Soniox": "SONIOX_API_KEY",
}


class CredentialStore(Protocol):
    def get(self, provider_name: str) -> Optional[str]: ...


class SettingsCredentialStore:

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings if self._settings is not None else get_settings()

    def get(self, provider_name: str) -> Optional[str]:
        key = self.settings.api_keys.get(provider_name)
        if key and key.strip():
            return key.strip()

        env_var = PROVIDER_ENV_VARS.get(provider_name)
        if env_var:
            key = os.environ.get(env_var)
            if key and key.strip():
                logger.debug(f"Using {env_var} for {provider_name}")
                return key.strip()

        return None

    def set(self, provider_name: str, api_key: Optional[str]) -> None:
        settings = self.settings
        if api_key and api_key.strip():
            settings.api_keys[provider_name] = api_key.strip()
        else:
            settings.api_keys.pop(provider_name, None)
        settings.save()
