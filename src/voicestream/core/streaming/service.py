"""
Streaming transcription session manager.

Owns the lifecycle of one streaming session at a time:

    idle -> connecting -> streaming -> committing -> done | failed
    (cancelled is reachable from any non-terminal state)

Audio arrives through ``send_audio_chunk`` from any thread, is buffered by an
``AudioChunkBridge`` and forwarded to the provider by a send loop. A second
loop consumes the provider's events, collecting committed segments and
forwarding partial text to the display callback while streaming.
"""

import asyncio
import functools
from enum import Enum
from typing import Callable, List, Optional, Set

from ...utils.logger import get_logger
from ..audio.bridge import AudioChunkBridge
from ..settings.config import COMMIT_TIMEOUT_SECONDS
from ..settings.credentials import CredentialStore
from ..settings.settings import get_selected_language
from ..settings.vocabulary import VocabularyStore
from .events import (
    CommittedTranscript,
    NotConnectedError,
    PartialTranscript,
    StreamingErrorEvent,
)
from .models import StreamingModel
from .provider import StreamingProvider
from .providers import create_provider

logger = get_logger(__name__)

ProviderFactory = Callable[[StreamingModel], StreamingProvider]


class StreamingState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamingTranscriptionService:
    """
    Runs one streaming session against one provider.

    All methods except ``send_audio_chunk`` must be called from the thread
    running the event loop. Sessions must not overlap: start a new one only
    after the previous one has been stopped or cancelled.
    """

    def __init__(
        self,
        provider_factory: Optional[ProviderFactory] = None,
        credentials: Optional[CredentialStore] = None,
        vocabulary: Optional[VocabularyStore] = None,
        language_source: Optional[Callable[[], str]] = None,
        on_partial_transcript: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        commit_timeout: float = COMMIT_TIMEOUT_SECONDS,
    ):
        self._provider_factory = provider_factory or functools.partial(
            create_provider, credentials=credentials, vocabulary=vocabulary
        )
        self._language_source = language_source or get_selected_language
        self.on_partial_transcript = on_partial_transcript
        self.on_error = on_error
        self.commit_timeout = commit_timeout

        self._state = StreamingState.IDLE
        self._provider: Optional[StreamingProvider] = None
        self._bridge = AudioChunkBridge()
        self._send_task: Optional[asyncio.Task] = None
        self._event_task: Optional[asyncio.Task] = None
        self._commit_signal: Optional[asyncio.Event] = None
        self._committed_segments: List[str] = []
        self._partial_callback: Optional[Callable[[str], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> StreamingState:
        return self._state

    @property
    def is_active(self) -> bool:
        """True once the connection is established and audio is flowing."""
        return self._state in (StreamingState.STREAMING, StreamingState.COMMITTING)

    async def start_streaming(self, model: StreamingModel) -> None:
        """
        Connect a provider for ``model`` and start the send and event loops.

        Connection errors propagate to the caller after the half-open provider
        has been disconnected. If ``cancel`` runs while the handshake is in
        flight, the provider is disconnected once and streaming never starts.
        """
        provider = self._provider_factory(model)

        self._loop = asyncio.get_running_loop()
        self._state = StreamingState.CONNECTING
        self._committed_segments = []
        self._provider = provider
        self._partial_callback = self.on_partial_transcript

        language = self._language_source() or "auto"

        try:
            await provider.connect(model, language)
        except (Exception, asyncio.CancelledError) as e:
            cancelled = self._state == StreamingState.CANCELLED
            if not cancelled:
                logger.error(f"Failed to start streaming for {model.display_name}: {e}")
                self._state = StreamingState.FAILED
                self._partial_callback = None
                self._reset_bridge()
            if self._provider is provider:
                self._provider = None
            await provider.disconnect()
            if cancelled and not isinstance(e, asyncio.CancelledError):
                return
            raise

        if self._state == StreamingState.CANCELLED:
            if self._provider is provider:
                self._provider = None
            await provider.disconnect()
            logger.info("Streaming cancelled while connecting")
            return

        self._state = StreamingState.STREAMING
        self._send_task = asyncio.create_task(self._send_loop(provider, self._bridge))
        self._event_task = asyncio.create_task(self._consume_events(provider))

        logger.info(f"Streaming started for model: {model.display_name}")

    def send_audio_chunk(self, data: bytes) -> None:
        """Buffer an audio chunk for sending. Safe to call from the audio thread."""
        self._bridge.send(data)

    async def stop_and_get_final_text(self) -> str:
        """
        Flush buffered audio, commit, and return the finalized text.

        Waits up to ``commit_timeout`` seconds for the provider to
        acknowledge the commit; on timeout whatever was finalized so far is
        returned, possibly an empty string.

        Raises:
            NotConnectedError: No session is streaming.
        """
        provider = self._provider
        if provider is None or self._state != StreamingState.STREAMING:
            raise NotConnectedError()

        self._state = StreamingState.COMMITTING

        await self._drain_remaining_chunks()
        if self._state == StreamingState.CANCELLED:
            return ""

        # Armed before commit so an immediate acknowledgement is not missed
        self._commit_signal = asyncio.Event()

        try:
            await provider.commit()
        except Exception as e:
            if self._state == StreamingState.CANCELLED:
                logger.info(f"Commit interrupted by cancel: {e}")
                return ""
            logger.error(f"Failed to send commit: {e}")
            self._commit_signal = None
            self._state = StreamingState.FAILED
            await self._cleanup()
            raise

        if self._state == StreamingState.CANCELLED:
            return ""

        final_text = await self._wait_for_final_commit()
        if self._state == StreamingState.CANCELLED:
            return ""

        self._state = StreamingState.DONE
        await self._cleanup()
        return final_text

    def cancel(self) -> None:
        """Abort the session without waiting for results."""
        previous_state = self._state
        self._state = StreamingState.CANCELLED
        self._partial_callback = None

        event_task, self._event_task = self._event_task, None
        if event_task is not None:
            event_task.cancel()
        send_task, self._send_task = self._send_task, None
        self._reset_bridge()
        if send_task is not None:
            send_task.cancel()

        self._release_commit_signal()

        provider, self._provider = self._provider, None
        self._committed_segments = []

        # While connecting, start_streaming owns the disconnect
        if provider is not None and previous_state != StreamingState.CONNECTING:
            self._disconnect_in_background(provider)

        if previous_state != StreamingState.CANCELLED:
            logger.info("Streaming cancelled")

    async def _send_loop(self, provider: StreamingProvider, bridge: AudioChunkBridge) -> None:
        async for chunk in bridge:
            if self._bridge is not bridge:
                break
            try:
                await provider.send_audio_chunk(chunk)
            except Exception as e:
                logger.error(f"Failed to send audio chunk: {e}")

    async def _drain_remaining_chunks(self) -> None:
        self._bridge.finish()
        send_task, self._send_task = self._send_task, None
        if send_task is not None:
            await send_task

    async def _consume_events(self, provider: StreamingProvider) -> None:
        async for event in provider.events():
            if isinstance(event, CommittedTranscript):
                text = event.text.strip()
                if text:
                    self._committed_segments.append(text)
                # Any committed event, even an empty one, acknowledges the commit
                if self._state == StreamingState.COMMITTING and self._commit_signal is not None:
                    self._commit_signal.set()
            elif isinstance(event, PartialTranscript):
                callback = self._partial_callback
                if self._state == StreamingState.STREAMING and callback is not None:
                    try:
                        callback(event.text)
                    except Exception:
                        logger.exception("Partial transcript callback failed")
            elif isinstance(event, StreamingErrorEvent):
                logger.error(f"Streaming event error: {event.error}")
                self._notify_error(event.error)

    async def _wait_for_final_commit(self) -> str:
        signal = self._commit_signal
        received_in_time = False
        if signal is not None:
            try:
                await asyncio.wait_for(signal.wait(), timeout=self.commit_timeout)
                received_in_time = True
            except asyncio.TimeoutError:
                logger.info(f"No commit acknowledgement within {self.commit_timeout}s")
        self._commit_signal = None

        if not received_in_time and not self._committed_segments:
            logger.warning("No transcript received from streaming")

        return " ".join(self._committed_segments)

    async def _cleanup(self) -> None:
        self._partial_callback = None

        event_task, self._event_task = self._event_task, None
        if event_task is not None:
            event_task.cancel()
        send_task, self._send_task = self._send_task, None
        if send_task is not None:
            send_task.cancel()

        self._reset_bridge()
        self._release_commit_signal()

        provider, self._provider = self._provider, None
        if provider is not None:
            await provider.disconnect()

        self._state = StreamingState.IDLE
        self._committed_segments = []

    def _reset_bridge(self) -> None:
        self._bridge.finish()
        self._bridge = AudioChunkBridge()

    def _release_commit_signal(self) -> None:
        signal, self._commit_signal = self._commit_signal, None
        if signal is not None:
            signal.set()

    def _notify_error(self, error: BaseException) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Error callback failed")

    def _disconnect_in_background(self, provider: StreamingProvider) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(provider.disconnect())
            self._background_tasks.add(task)
            task.add_done_callback(self._on_background_done)
        elif self._loop is not None and not self._loop.is_closed():
            asyncio.run_coroutine_threadsafe(provider.disconnect(), self._loop)
        else:
            logger.warning("No event loop available to disconnect provider")

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Provider disconnect failed: {task.exception()}")
