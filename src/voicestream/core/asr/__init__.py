from .backends import (
    PARAKEET_MODEL_DIRS,
    LocalDecodeSession,
    ParakeetModelCache,
    SherpaOnnxBackend,
    get_parakeet_model_cache,
    parakeet_version_for,
    pcm16_to_float32,
)

__all__ = [
    "PARAKEET_MODEL_DIRS",
    "LocalDecodeSession",
    "ParakeetModelCache",
    "SherpaOnnxBackend",
    "get_parakeet_model_cache",
    "parakeet_version_for",
    "pcm16_to_float32",
]
