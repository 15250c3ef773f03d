"""Recording-controller facing wrapper around a streaming service."""

import asyncio
from typing import Callable, Optional

from ...utils.logger import get_logger
from .events import NotConnectedError, UnsupportedProviderError
from .models import StreamingModel, supports_streaming
from .service import StreamingTranscriptionService

logger = get_logger(__name__)


class StreamingTranscriptionSession:
    """
    Start connecting as soon as recording begins, so the handshake overlaps
    with capture; audio fed in the meantime is buffered and sent once the
    connection is up.

    Typical use::

        session = StreamingTranscriptionSession(on_partial_transcript=print)
        feed = session.prepare(model)
        recorder = AudioRecorder(on_chunk=feed)
        ...
        text = await session.transcribe()
    """

    def __init__(
        self,
        service: Optional[StreamingTranscriptionService] = None,
        on_partial_transcript: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ):
        self.service = service or StreamingTranscriptionService(
            on_partial_transcript=on_partial_transcript,
            on_error=on_error,
        )
        self._start_task: Optional[asyncio.Task] = None

    def prepare(self, model: StreamingModel) -> Callable[[bytes], None]:
        """Begin connecting in the background and return the audio feed."""
        if not supports_streaming(model):
            raise UnsupportedProviderError(f"{model.display_name} does not support streaming")

        self._start_task = asyncio.get_running_loop().create_task(
            self.service.start_streaming(model)
        )
        self._start_task.add_done_callback(self._log_start_failure)
        return self.service.send_audio_chunk

    async def transcribe(self) -> str:
        """Wait for the connection, then stop and return the final text."""
        start_task, self._start_task = self._start_task, None
        if start_task is None:
            raise NotConnectedError()

        await start_task
        return await self.service.stop_and_get_final_text()

    def cancel(self) -> None:
        self.service.cancel()

    @staticmethod
    def _log_start_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Streaming session failed to start: {error}")
