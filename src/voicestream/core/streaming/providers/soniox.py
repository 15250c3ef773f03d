"""Soniox real-time transcription (token batches with a <fin> marker)."""

from typing import Any, Dict, Optional

from ....utils.logger import get_logger
from ...settings.config import CHANNELS, SAMPLE_RATE
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

SONIOX_URL = "wss://stt-rt.soniox.com/transcribe-websocket"
FINALIZE_MARKER = "<fin>"


class SonioxStreamingProvider(WebSocketStreamingProvider):

    display_name = "Soniox"
    credential_name = "Soniox"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._final_text = ""

    def build_config(self, api_key: str, model: StreamingModel, language: Optional[str]) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "api_key": api_key,
            "model": model.name,
            "audio_format": "pcm_s16le",
            "sample_rate": SAMPLE_RATE,
            "num_channels": CHANNELS,
        }
        if language and language != "auto":
            config["language_hints"] = [language]
            config["language_hints_strict"] = True
        config["enable_language_identification"] = True

        terms = self._vocabulary_terms()
        if terms:
            config["context"] = {"terms": terms}
            logger.debug(f"Added {len(terms)} vocabulary terms to context")
        return config

    async def connect(self, model: StreamingModel, language: Optional[str]) -> None:
        api_key = self._require_api_key()

        await self._open(SONIOX_URL)

        # Authentication travels in the first frame, not in headers
        await self._send_json(self.build_config(api_key, model, language))
        logger.info(f"Sent configuration with model {model.name}")

        self._emit(SessionStarted())
        self._start_receiving()

    async def send_audio_chunk(self, data: bytes) -> None:
        await self._require_ws().send(data)

    async def commit(self) -> None:
        logger.info("Sending finalize message (commit)")
        await self._send_json({"type": "finalize"})

    def _reset_transcript(self) -> None:
        self._final_text = ""

    def _handle_message(self, message: Dict[str, Any]) -> None:
        error_code = message.get("error_code")
        if error_code is not None:
            error_message = message.get("error_message") or f"Unknown error (code {error_code})"
            logger.error(f"Server error: {error_message}")
            self._emit(StreamingErrorEvent(ServerError(error_message)))
            return

        if message.get("finished") is True:
            logger.info("Received finished signal, session complete")
            final_text, self._final_text = self._final_text, ""
            self._emit(CommittedTranscript(final_text))
            return

        tokens = message.get("tokens")
        if not isinstance(tokens, list):
            logger.debug("Received message without tokens array")
            return
        if tokens:
            self._process_tokens(tokens)

    def _process_tokens(self, tokens) -> None:
        new_final = ""
        new_partial = ""
        saw_fin = False

        for token in tokens:
            if not isinstance(token, dict):
                continue
            text = token.get("text")
            if not isinstance(text, str):
                continue
            if text == FINALIZE_MARKER:
                saw_fin = True
                continue
            if token.get("is_final"):
                new_final += text
            else:
                new_partial += text

        self._final_text += new_final

        if saw_fin:
            final_text, self._final_text = self._final_text, ""
            self._emit(CommittedTranscript(final_text))
        elif new_partial:
            self._emit(PartialTranscript(self._final_text + new_partial))
