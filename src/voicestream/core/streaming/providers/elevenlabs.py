"""ElevenLabs Scribe realtime speech-to-text (server-side VAD commits)."""

import base64
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from ....utils.logger import get_logger
from ...settings.config import SAMPLE_RATE
from ..events import (
    CommittedTranscript,
    PartialTranscript,
    ServerError,
    SessionStarted,
    StreamingErrorEvent,
)
from ..models import StreamingModel
from ..provider import WebSocketStreamingProvider

logger = get_logger(__name__)

ELEVENLABS_URL = "wss://api.elevenlabs.io/v1/speech-to-text/realtime"
ELEVENLABS_REALTIME_MODEL = "scribe_v2_realtime"

COMMITTED_MESSAGE_TYPES = ("committed_transcript", "committed_transcript_with_timestamps")
ERROR_MESSAGE_TYPES = (
    "error",
    "auth_error",
    "quota_exceeded",
    "rate_limited",
    "resource_exhausted",
    "session_time_limit_exceeded",
    "input_error",
    "chunk_size_exceeded",
    "transcriber_error",
)


class ElevenLabsStreamingProvider(WebSocketStreamingProvider):

    display_name = "ElevenLabs"
    credential_name = "ElevenLabs"

    def build_url(self, language: Optional[str]) -> str:
        query = {
            "model_id": ELEVENLABS_REALTIME_MODEL,
            "audio_format": f"pcm_{SAMPLE_RATE}",
            "commit_strategy": "vad",
        }
        if language and language != "auto":
            query["language_code"] = language
        return f"{ELEVENLABS_URL}?{urlencode(query)}"

    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        api_key = self._require_api_key()

        await self._open(self.build_url(language), {"xi-api-key": api_key})

        # The first frame confirms or rejects the session
        handshake = await self._receive_json()
        if handshake is not None:
            message_type = handshake.get("message_type")
            if message_type == "session_started":
                logger.info("Streaming session started")
                self._emit(SessionStarted())
            elif message_type in ("error", "auth_error"):
                raise ServerError(handshake.get("message") or "Unknown error")

        self._start_receiving()

    async def send_audio_chunk(self, data: bytes) -> None:
        await self._send_json(self._audio_envelope(data, commit=False))

    async def commit(self) -> None:
        logger.info("Sending commit message")
        await self._send_json(self._audio_envelope(b"", commit=True))

    @staticmethod
    def _audio_envelope(data: bytes, commit: bool) -> Dict[str, Any]:
        return {
            "message_type": "input_audio_chunk",
            "audio_base_64": base64.b64encode(data).decode("ascii"),
            "commit": commit,
            "sample_rate": SAMPLE_RATE,
        }

    def _handle_message(self, message: Dict[str, Any]) -> None:
        message_type = message.get("message_type")
        if not isinstance(message_type, str):
            logger.warning("Received message without message_type")
            return

        if message_type == "partial_transcript":
            text = message.get("text")
            if isinstance(text, str):
                self._emit(PartialTranscript(text))
        elif message_type in COMMITTED_MESSAGE_TYPES:
            text = message.get("text")
            if isinstance(text, str):
                self._emit(CommittedTranscript(text))
        elif message_type in ERROR_MESSAGE_TYPES:
            error_message = message.get("message") or message_type
            logger.error(f"Server error: {message_type} - {error_message}")
            self._emit(StreamingErrorEvent(ServerError(error_message)))
        else:
            logger.debug(f"Unhandled message type: {message_type}")
