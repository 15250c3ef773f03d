"""
Streaming provider interface.

A provider owns one connection to one speech backend for the lifetime of a
single session. It normalises connect/send/commit/disconnect and publishes
what the backend reports as a single ordered stream of ``StreamingEvent``
values, read by exactly one consumer through ``events()``.
"""

import asyncio
import contextlib
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)

from ...utils.logger import get_logger
from ..settings.config import CONNECT_TIMEOUT_SECONDS
from ..settings.credentials import CredentialStore
from ..settings.vocabulary import VocabularyStore, normalize_vocabulary_terms
from .events import (
    ConnectionFailedError,
    MissingCredentialError,
    NotConnectedError,
    StreamingErrorEvent,
    StreamingEvent,
)
from .models import StreamingModel

logger = get_logger(__name__)

ConnectFactory = Callable[..., Awaitable[Any]]


class StreamingProvider(ABC):

    display_name = "Streaming"

    def __init__(self):
        self._events: "asyncio.Queue[Optional[StreamingEvent]]" = asyncio.Queue()
        self._events_finished = False

    @abstractmethod
    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        """Open the session. Raises MissingCredentialError, ConnectionFailedError or ServerError."""

    @abstractmethod
    async def send_audio_chunk(self, data: bytes) -> None:
        """Forward one PCM16 chunk. Raises NotConnectedError outside a live session."""

    @abstractmethod
    async def commit(self) -> None:
        """Signal end of utterance and ask the backend to finalize."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection. Must be safe to call more than once."""

    async def events(self) -> AsyncIterator[StreamingEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    def _emit(self, event: StreamingEvent) -> None:
        if not self._events_finished:
            self._events.put_nowait(event)

    def _finish_events(self) -> None:
        if self._events_finished:
            return
        self._events_finished = True
        self._events.put_nowait(None)


class WebSocketStreamingProvider(StreamingProvider):
    """
    Shared plumbing for the cloud vendors: handshake error mapping, JSON
    framing, the background receive loop and idempotent teardown.

    Subclasses implement ``connect``, ``send_audio_chunk``, ``commit`` and
    ``_handle_message``; ``_before_close`` and ``_reset_transcript`` are
    optional hooks run by ``disconnect``.
    """

    credential_name = ""

    def __init__(
        self,
        credentials: CredentialStore,
        vocabulary: Optional[VocabularyStore] = None,
        connect_factory: Optional[ConnectFactory] = None,
        handshake_timeout: float = CONNECT_TIMEOUT_SECONDS,
    ):
        super().__init__()
        self._credentials = credentials
        self._vocabulary = vocabulary
        self._connect_factory = connect_factory or websocket_connect
        self.handshake_timeout = handshake_timeout
        self._ws: Any = None
        self._receive_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._closed

    async def disconnect(self) -> None:
        if self._closed:
            return
        self._closed = True

        await self._before_close()

        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"{self.display_name} close error ignored: {e}")

        self._finish_events()
        self._reset_transcript()
        logger.info(f"{self.display_name} WebSocket disconnected")

    async def _before_close(self) -> None:
        pass

    def _reset_transcript(self) -> None:
        pass

    @abstractmethod
    def _handle_message(self, message: Dict[str, Any]) -> None:
        """Translate one decoded JSON message into events."""

    def _require_api_key(self) -> str:
        api_key = self._credentials.get(self.credential_name)
        if not api_key:
            raise MissingCredentialError(self.credential_name)
        return api_key

    def _vocabulary_terms(self, limit: Optional[int] = None) -> List[str]:
        if self._vocabulary is None:
            return []
        try:
            terms = self._vocabulary.list()
        except Exception as e:
            logger.warning(f"Could not read vocabulary: {e}")
            return []
        return normalize_vocabulary_terms(terms, limit)

    def _require_ws(self) -> Any:
        if self._ws is None or self._closed:
            raise NotConnectedError()
        return self._ws

    async def _open(self, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        logger.info(f"{self.display_name} WebSocket connecting to {url}")
        try:
            self._ws = await self._connect_factory(
                url,
                additional_headers=headers,
                open_timeout=CONNECT_TIMEOUT_SECONDS,
            )
        except InvalidStatus as e:
            raise ConnectionFailedError(
                f"server rejected handshake (HTTP {e.response.status_code})"
            ) from e
        except (InvalidURI, InvalidHandshake, OSError, asyncio.TimeoutError) as e:
            raise ConnectionFailedError(str(e) or type(e).__name__) from e

    async def _send_json(self, payload: Dict[str, Any]) -> None:
        await self._require_ws().send(json.dumps(payload))

    async def _receive_json(self) -> Optional[Dict[str, Any]]:
        """Read one handshake message. Non-JSON frames yield None."""
        ws = self._require_ws()
        try:
            message = await asyncio.wait_for(ws.recv(), timeout=self.handshake_timeout)
        except asyncio.TimeoutError as e:
            raise ConnectionFailedError(
                f"no handshake reply within {self.handshake_timeout}s"
            ) from e
        except ConnectionClosed as e:
            raise ConnectionFailedError(f"connection closed during handshake: {e}") from e
        return self._decode(message)

    def _start_receiving(self) -> None:
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def _receive_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            async for message in ws:
                payload = self._decode(message)
                if payload is not None:
                    self._handle_message(payload)
        except ConnectionClosed as e:
            if not self._closed:
                logger.error(f"{self.display_name} WebSocket receive error: {e}")
                self._emit(StreamingErrorEvent(ConnectionFailedError(str(e))))
            return
        if not self._closed:
            logger.info(f"{self.display_name} WebSocket closed by server")

    def _decode(self, message: Any) -> Optional[Dict[str, Any]]:
        if isinstance(message, (bytes, bytearray)):
            try:
                message = bytes(message).decode("utf-8")
            except UnicodeDecodeError:
                logger.warning(f"{self.display_name}: received undecodable binary frame")
                return None
        try:
            payload = json.loads(message)
        except (TypeError, ValueError):
            logger.warning(f"{self.display_name}: received unparseable message")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"{self.display_name}: received non-object message")
            return None
        return payload
