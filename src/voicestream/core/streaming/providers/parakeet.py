"""On-device Parakeet provider backed by the shared sherpa-onnx model cache."""

import asyncio
from typing import Optional

from ....utils.logger import get_logger
from ...asr.backends import (
    LocalDecodeSession,
    ParakeetModelCache,
    get_parakeet_model_cache,
    parakeet_version_for,
)
from ..events import (
    CommittedTranscript,
    ConnectionFailedError,
    NotConnectedError,
    SessionStarted,
)
from ..models import StreamingModel
from ..provider import StreamingProvider

logger = get_logger(__name__)


class ParakeetStreamingProvider(StreamingProvider):

    display_name = "Parakeet"

    def __init__(self, model_cache: Optional[ParakeetModelCache] = None):
        super().__init__()
        self._model_cache = model_cache or get_parakeet_model_cache()
        self._session: Optional[LocalDecodeSession] = None
        self._closed = False

    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        version = parakeet_version_for(model.name)
        try:
            backend = await asyncio.to_thread(self._model_cache.get_or_load, version)
        except (RuntimeError, ValueError, OSError) as e:
            raise ConnectionFailedError(f"Parakeet {version} model unavailable: {e}") from e

        self._session = backend.create_session()
        self._emit(SessionStarted())
        logger.info(f"Parakeet streaming started for {model.display_name}")

    async def send_audio_chunk(self, data: bytes) -> None:
        if self._session is None:
            raise NotConnectedError()
        self._session.accept_pcm16(data)

    async def commit(self) -> None:
        session = self._session
        if session is None:
            raise NotConnectedError()
        final_text = await asyncio.to_thread(session.finish)
        self._emit(CommittedTranscript(final_text))

    async def disconnect(self) -> None:
        if self._closed:
            return
        self._closed = True
        session, self._session = self._session, None
        if session is not None:
            session.cancel()
        self._finish_events()
        logger.info("Parakeet streaming disconnected")
