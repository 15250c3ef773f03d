"""Provider factory keyed on the model's provider."""

from typing import Optional

from ...asr.backends import ParakeetModelCache
from ...settings.credentials import CredentialStore, SettingsCredentialStore
from ...settings.vocabulary import SettingsVocabularyStore, VocabularyStore
from ..events import UnsupportedProviderError
from ..models import ModelProvider, StreamingModel
from ..provider import StreamingProvider
from .deepgram import DeepgramStreamingProvider
from .elevenlabs import ElevenLabsStreamingProvider
from .mistral import MistralStreamingProvider
from .parakeet import ParakeetStreamingProvider
from .soniox import SonioxStreamingProvider

WEBSOCKET_PROVIDERS = {
    ModelProvider.DEEPGRAM: DeepgramStreamingProvider,
    ModelProvider.ELEVENLABS: ElevenLabsStreamingProvider,
    ModelProvider.MISTRAL: MistralStreamingProvider,
    ModelProvider.SONIOX: SonioxStreamingProvider,
}


def create_provider(
    model: StreamingModel,
    credentials: Optional[CredentialStore] = None,
    vocabulary: Optional[VocabularyStore] = None,
    model_cache: Optional[ParakeetModelCache] = None,
) -> StreamingProvider:
    """Build a fresh provider for one session.

    Raises UnsupportedProviderError for providers without a streaming
    implementation; callers are expected to check ``supports_streaming``
    first.
    """
    if model.provider == ModelProvider.PARAKEET:
        return ParakeetStreamingProvider(model_cache)

    provider_class = WEBSOCKET_PROVIDERS.get(model.provider)
    if provider_class is None:
        raise UnsupportedProviderError(
            f"Streaming not supported for {model.provider.value} ({model.name})"
        )
    return provider_class(
        credentials if credentials is not None else SettingsCredentialStore(),
        vocabulary if vocabulary is not None else SettingsVocabularyStore(),
    )


__all__ = [
    "DeepgramStreamingProvider",
    "ElevenLabsStreamingProvider",
    "MistralStreamingProvider",
    "ParakeetStreamingProvider",
    "SonioxStreamingProvider",
    "WEBSOCKET_PROVIDERS",
    "create_provider",
]
