"""Events and errors shared by every streaming provider."""

from dataclasses import dataclass
from typing import Union


class StreamingTranscriptionError(Exception):
    """Base class for streaming transcription failures."""


class MissingCredentialError(StreamingTranscriptionError):
    def __init__(self, provider_name: str = ""):
        self.provider_name = provider_name
        suffix = f" ({provider_name})" if provider_name else ""
        super().__init__(
            f"API key not configured for streaming transcription{suffix}"
        )


class ConnectionFailedError(StreamingTranscriptionError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Streaming connection failed: {detail}")


class StreamingTimeoutError(StreamingTranscriptionError):
    def __init__(self):
        super().__init__("Streaming transcription timed out waiting for final result")


class ServerError(StreamingTranscriptionError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Streaming server error: {detail}")


class NotConnectedError(StreamingTranscriptionError):
    def __init__(self):
        super().__init__("Not connected to streaming transcription service")


class UnsupportedProviderError(ValueError):
    """Raised when asked to stream with a model that has no streaming provider."""


@dataclass(frozen=True)
class SessionStarted:
    pass


@dataclass(frozen=True)
class PartialTranscript:
    text: str


@dataclass(frozen=True)
class CommittedTranscript:
    text: str


@dataclass(frozen=True)
class StreamingErrorEvent:
    error: BaseException


StreamingEvent = Union[
    SessionStarted, PartialTranscript, CommittedTranscript, StreamingErrorEvent
]
