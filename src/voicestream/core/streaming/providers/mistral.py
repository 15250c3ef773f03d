"""Mistral Voxtral realtime transcription (delta accumulation)."""

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

MISTRAL_URL = "wss://api.mistral.ai/v1/audio/transcriptions/realtime"


def extract_error_message(message: Dict[str, Any]) -> str:
    error = message.get("error")
    if isinstance(error, dict):
        for key in ("message", "detail"):
            if isinstance(error.get(key), str):
                return error[key]
    if isinstance(error, str):
        return error
    if isinstance(message.get("message"), str):
        return message["message"]
    return "Unknown error"


class MistralStreamingProvider(WebSocketStreamingProvider):

    display_name = "Mistral"
    credential_name = "Mistral"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._accumulated_text = ""

    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        api_key = self._require_api_key()
        url = f"{MISTRAL_URL}?{urlencode({'model': model.name})}"

        await self._open(url, {"Authorization": f"Bearer {api_key}"})

        handshake = await self._receive_json()
        if handshake is not None:
            message_type = handshake.get("type")
            if message_type == "session.created":
                logger.info("Streaming session created")
                self._emit(SessionStarted())
            elif message_type == "error":
                raise ServerError(extract_error_message(handshake))

        await self._send_json({
            "type": "session.update",
            "session": {
                "audio_format": {
                    "encoding": "pcm_s16le",
                    "sample_rate": SAMPLE_RATE,
                }
            },
        })
        logger.info("Sent session.update with audio format config")

        self._start_receiving()

    async def send_audio_chunk(self, data: bytes) -> None:
        await self._send_json({
            "type": "input_audio.append",
            "audio": base64.b64encode(data).decode("ascii"),
        })

    async def commit(self) -> None:
        logger.info("Sending input_audio.end (commit)")
        await self._send_json({"type": "input_audio.end"})

    def _reset_transcript(self) -> None:
        self._accumulated_text = ""

    def _handle_message(self, message: Dict[str, Any]) -> None:
        message_type = message.get("type")
        if not isinstance(message_type, str):
            logger.warning("Received message without type")
            return

        if message_type == "transcription.text.delta":
            delta = message.get("text")
            if isinstance(delta, str):
                self._accumulated_text += delta
                self._emit(PartialTranscript(self._accumulated_text))
        elif message_type == "transcription.done":
            final_text, self._accumulated_text = self._accumulated_text, ""
            self._emit(CommittedTranscript(final_text))
        elif message_type == "transcription.language":
            logger.info(f"Detected language: {message.get('language')}")
        elif message_type == "session.updated":
            logger.info("Session update acknowledged")
        elif message_type == "error":
            error_message = extract_error_message(message)
            logger.error(f"Server error: {error_message}")
            self._emit(StreamingErrorEvent(ServerError(error_message)))
        else:
            logger.debug(f"Unhandled message type: {message_type}")
