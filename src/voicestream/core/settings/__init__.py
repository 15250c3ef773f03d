from .config import (
    CHANNELS,
    COMMIT_TIMEOUT_SECONDS,
    KEEPALIVE_INTERVAL_SECONDS,
    SAMPLE_RATE,
)
from .credentials import PROVIDER_ENV_VARS, CredentialStore, SettingsCredentialStore
from .settings import (
    Settings,
    get_config_dir,
    get_selected_language,
    get_settings,
)
from .vocabulary import (
    SettingsVocabularyStore,
    VocabularyStore,
    normalize_vocabulary_terms,
)

__all__ = [
    "CHANNELS",
    "COMMIT_TIMEOUT_SECONDS",
    "KEEPALIVE_INTERVAL_SECONDS",
    "SAMPLE_RATE",
    "PROVIDER_ENV_VARS",
    "CredentialStore",
    "SettingsCredentialStore",
    "Settings",
    "get_config_dir",
    "get_selected_language",
    "get_settings",
    "SettingsVocabularyStore",
    "VocabularyStore",
    "normalize_vocabulary_terms",
]
