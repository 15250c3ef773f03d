from .events import (
    CommittedTranscript,
    ConnectionFailedError,
    MissingCredentialError,
    NotConnectedError,
    PartialTranscript,
    ServerError,
    SessionStarted,
    StreamingErrorEvent,
    StreamingEvent,
    StreamingTimeoutError,
    StreamingTranscriptionError,
    UnsupportedProviderError,
)
from .models import (
    STREAMING_MODELS,
    ModelProvider,
    StreamingModel,
    get_model_by_id,
    supports_streaming,
)
from .provider import StreamingProvider, WebSocketStreamingProvider
from .providers import create_provider
from .service import StreamingState, StreamingTranscriptionService
from .session import StreamingTranscriptionSession

__all__ = [
    "CommittedTranscript",
    "ConnectionFailedError",
    "MissingCredentialError",
    "NotConnectedError",
    "PartialTranscript",
    "ServerError",
    "SessionStarted",
    "StreamingErrorEvent",
    "StreamingEvent",
    "StreamingTimeoutError",
    "StreamingTranscriptionError",
    "UnsupportedProviderError",
    "STREAMING_MODELS",
    "ModelProvider",
    "StreamingModel",
    "get_model_by_id",
    "supports_streaming",
    "StreamingProvider",
    "WebSocketStreamingProvider",
    "create_provider",
    "StreamingState",
    "StreamingTranscriptionService",
    "StreamingTranscriptionSession",
]
