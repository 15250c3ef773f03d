from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class ModelProvider(str, Enum):
    LOCAL = "Local"
    PARAKEET = "Parakeet"
    GROQ = "Groq"
    ELEVENLABS = "ElevenLabs"
    DEEPGRAM = "Deepgram"
    MISTRAL = "Mistral"
    GEMINI = "Gemini"
    SONIOX = "Soniox"
    CUSTOM = "Custom"
    NATIVE_APPLE = "Native Apple"


@dataclass(frozen=True)
class StreamingModel:
    name: str
    display_name: str
    provider: ModelProvider
    description: str = ""
    is_multilingual: bool = True

    @property
    def language(self) -> str:
        return "Multilingual" if self.is_multilingual else "English-only"


STREAMING_MODELS: List[StreamingModel] = [
    StreamingModel(
        name="parakeet-tdt-0.6b-v2",
        display_name="Parakeet V2",
        provider=ModelProvider.PARAKEET,
        description="NVIDIA's Parakeet V2 model optimized for fast English-only transcription",
        is_multilingual=False,
    ),
    StreamingModel(
        name="parakeet-tdt-0.6b-v3",
        display_name="Parakeet V3",
        provider=ModelProvider.PARAKEET,
        description="NVIDIA's Parakeet V3 model with English and 25 European languages",
    ),
    StreamingModel(
        name="scribe_v2",
        display_name="Scribe V2 Realtime (ElevenLabs)",
        provider=ModelProvider.ELEVENLABS,
        description="ElevenLabs' Scribe V2 Realtime model",
    ),
    StreamingModel(
        name="nova-3",
        display_name="Nova 3 Realtime (Deepgram)",
        provider=ModelProvider.DEEPGRAM,
        description="Deepgram's Nova 3 model for realtime transcription",
    ),
    StreamingModel(
        name="nova-3-medical",
        display_name="Nova 3 Medical Realtime (Deepgram)",
        provider=ModelProvider.DEEPGRAM,
        description="Deepgram's Nova 3 model tuned for medical vocabulary",
        is_multilingual=False,
    ),
    StreamingModel(
        name="voxtral-mini-transcribe-realtime-2602",
        display_name="Voxtral Realtime (Mistral)",
        provider=ModelProvider.MISTRAL,
        description="Mistral's Voxtral Realtime model for streaming transcription",
    ),
    StreamingModel(
        name="stt-rt-v4",
        display_name="Soniox Realtime V4",
        provider=ModelProvider.SONIOX,
        description="Soniox real-time streaming model v4 for low-latency transcription",
    ),
]


def get_model_by_id(model_id: str) -> Optional[StreamingModel]:
    for model in STREAMING_MODELS:
        if model.name == model_id:
            return model
    return None


def supports_streaming(model: StreamingModel) -> bool:
    if model.provider == ModelProvider.ELEVENLABS:
        return model.name == "scribe_v2"
    if model.provider == ModelProvider.DEEPGRAM:
        return model.name in ("nova-3", "nova-3-medical")
    if model.provider == ModelProvider.PARAKEET:
        return True
    if model.provider == ModelProvider.MISTRAL:
        return model.name == "voxtral-mini-transcribe-realtime-2602"
    if model.provider == ModelProvider.SONIOX:
        return model.name == "stt-rt-v4"
    return False
