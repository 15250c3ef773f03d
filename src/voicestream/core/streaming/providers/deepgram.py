"""Deepgram realtime listen API (independent-utterance results)."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from ....utils.logger import get_logger
from ...settings.config import (
    CHANNELS,
    DEEPGRAM_MAX_KEYTERMS,
    KEEPALIVE_INTERVAL_SECONDS,
    SAMPLE_RATE,
)
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

DEEPGRAM_URL = "wss://api.deepgram.com/v1/listen"

# Control frames Deepgram sends alongside results
IGNORED_MESSAGE_TYPES = ("Metadata", "SpeechStarted", "UtteranceEnd")


class DeepgramStreamingProvider(WebSocketStreamingProvider):

    display_name = "Deepgram"
    credential_name = "Deepgram"

    def __init__(self, *args, keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS, **kwargs):
        super().__init__(*args, **kwargs)
        self.keepalive_interval = keepalive_interval
        self._keepalive_task: Optional[asyncio.Task] = None
        self._accumulated_final_text = ""

    def build_url(self, model: StreamingModel, language: Optional[str]) -> str:
        query: List[Tuple[str, str]] = [
            ("model", model.name),
            ("encoding", "linear16"),
            ("sample_rate", str(SAMPLE_RATE)),
            ("channels", str(CHANNELS)),
            ("smart_format", "true"),
            ("numerals", "true"),
            ("interim_results", "true"),
        ]
        if language and language != "auto":
            query.append(("language", language))
        for term in self._vocabulary_terms(DEEPGRAM_MAX_KEYTERMS):
            query.append(("keyterm", term))
        return f"{DEEPGRAM_URL}?{urlencode(query)}"

    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        api_key = self._require_api_key()
        url = self.build_url(model, language)

        await self._open(url, {"Authorization": f"Token {api_key}"})

        self._emit(SessionStarted())
        logger.info("Streaming session started")

        self._start_receiving()
        self._keepalive_task = asyncio.create_task(self._keepalive_loop())

    async def send_audio_chunk(self, data: bytes) -> None:
        await self._require_ws().send(data)

    async def commit(self) -> None:
        logger.info("Sending Finalize message (commit)")
        await self._send_json({"type": "Finalize"})

    async def _before_close(self) -> None:
        task, self._keepalive_task = self._keepalive_task, None
        if task is not None:
            task.cancel()

        if self._ws is not None:
            try:
                await self._ws.send(json.dumps({"type": "CloseStream"}))
            except Exception as e:
                logger.debug(f"CloseStream not delivered: {e}")

    def _reset_transcript(self) -> None:
        self._accumulated_final_text = ""

    async def _keepalive_loop(self) -> None:
        await asyncio.sleep(self.keepalive_interval)
        while True:
            ws = self._ws
            if ws is None:
                break
            try:
                await ws.send(json.dumps({"type": "KeepAlive"}))
            except Exception as e:
                logger.warning(f"Keepalive error: {e}")
                break
            await asyncio.sleep(self.keepalive_interval)

    def _handle_message(self, message: Dict[str, Any]) -> None:
        if message.get("type") in IGNORED_MESSAGE_TYPES:
            return

        error = message.get("error")
        if isinstance(error, str):
            logger.error(f"Deepgram error: {error}")
            self._emit(StreamingErrorEvent(ServerError(error)))
            return

        transcript = _first_transcript(message)
        if transcript is None:
            logger.debug("Deepgram message without transcript ignored")
            return

        if message.get("is_final") or message.get("speech_final"):
            if transcript:
                if self._accumulated_final_text:
                    self._accumulated_final_text += " "
                self._accumulated_final_text += transcript
            self._emit(CommittedTranscript(transcript))
        elif transcript:
            if self._accumulated_final_text:
                transcript = f"{self._accumulated_final_text} {transcript}"
            self._emit(PartialTranscript(transcript))


def _first_transcript(message: Dict[str, Any]) -> Optional[str]:
    channel = message.get("channel")
    if not isinstance(channel, dict):
        return None
    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return None
    first = alternatives[0]
    if not isinstance(first, dict):
        return None
    transcript = first.get("transcript")
    return transcript if isinstance(transcript, str) else None
