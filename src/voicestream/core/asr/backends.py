"""
On-device Parakeet inference through sherpa-onnx.

Models are resolved from the local models directory by declared version
and loaded once per process; each streaming session gets its own
``LocalDecodeSession`` that is fed PCM chunks as they arrive and decoded
when the utterance is committed.
"""

import os
import threading
from typing import Dict, Optional

import numpy as np

from ...utils.logger import get_logger
from ..settings.config import SAMPLE_RATE
from .file_utils import find_transducer_files, get_models_dir

logger = get_logger(__name__)


PARAKEET_MODEL_DIRS: Dict[str, str] = {
    "v2": "sherpa-onnx-nemo-parakeet-tdt-0.6b-v2-int8",
    "v3": "sherpa-onnx-nemo-parakeet-tdt-0.6b-v3-int8",
}


def parakeet_version_for(model_name: str) -> str:
    return "v2" if "v2" in model_name.lower() else "v3"


def pcm16_to_float32(data: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM bytes to float32 samples in [-1, 1)."""
    samples = np.frombuffer(data[: len(data) - len(data) % 2], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


class SherpaOnnxBackend:
    def __init__(self):
        self._recognizer = None
        self._lock = threading.Lock()

    def load(self, model_path: str) -> None:
        import sherpa_onnx

        if not os.path.isabs(model_path):
            full_model_path = os.path.join(get_models_dir(), model_path)
        else:
            full_model_path = model_path

        if not os.path.isdir(full_model_path):
            raise RuntimeError(
                f"Model directory not found: {full_model_path}. "
                f"Please download the model first."
            )

        files = find_transducer_files(full_model_path)
        missing = [name for name, path in files.items() if not path]
        if missing:
            raise RuntimeError(
                f"Missing Transducer model files in {full_model_path}: {', '.join(missing)}"
            )

        logger.info(
            f"Loading Transducer model: encoder={files['encoder']}, "
            f"decoder={files['decoder']}, joiner={files['joiner']}"
        )

        try:
            self._recognizer = sherpa_onnx.OfflineRecognizer.from_transducer(
                encoder=files["encoder"],
                decoder=files["decoder"],
                joiner=files["joiner"],
                tokens=files["tokens"],
                num_threads=4,
                sample_rate=SAMPLE_RATE,
                provider="cpu",
                debug=False,
                decoding_method="greedy_search",
                model_type="nemo_transducer",
            )
        except Exception as e:
            self._recognizer = None
            raise RuntimeError(
                f"Failed to load model from '{full_model_path}': {e}"
            ) from e

    def create_stream(self):
        if self._recognizer is None:
            raise RuntimeError("Model not loaded. Call load() first.")
        return self._recognizer.create_stream()

    def decode_stream(self, stream) -> str:
        if self._recognizer is None:
            raise RuntimeError("Model not loaded. Call load() first.")

        # The recognizer is shared between sessions; decode one stream at a time
        with self._lock:
            self._recognizer.decode_stream(stream)
            return stream.result.text.strip()

    def create_session(self) -> "LocalDecodeSession":
        return LocalDecodeSession(self)

    def unload(self) -> None:
        if self._recognizer is not None:
            del self._recognizer
            self._recognizer = None

    @property
    def is_loaded(self) -> bool:
        return self._recognizer is not None


class LocalDecodeSession:
    """
    One utterance on a loaded backend.

    Chunks go into the session's own recognizer stream as they arrive; the
    offline transducer decodes that stream once, on finish.
    """

    def __init__(self, backend: SherpaOnnxBackend, sample_rate: int = SAMPLE_RATE):
        self._backend = backend
        self._sample_rate = sample_rate
        self._stream = backend.create_stream()
        self._sample_count = 0
        self._cancelled = False

    @property
    def sample_count(self) -> int:
        return self._sample_count

    def accept_pcm16(self, data: bytes) -> None:
        if self._cancelled or self._stream is None:
            return
        samples = pcm16_to_float32(data)
        if samples.size:
            self._stream.accept_waveform(self._sample_rate, samples)
            self._sample_count += samples.size

    def finish(self) -> str:
        stream, self._stream = self._stream, None
        if self._cancelled or stream is None or not self._sample_count:
            return ""
        return self._backend.decode_stream(stream)

    def cancel(self) -> None:
        self._cancelled = True
        self._stream = None


class ParakeetModelCache:
    """Loads each Parakeet version at most once and shares it across sessions."""

    def __init__(self, model_dirs: Optional[Dict[str, str]] = None):
        self._model_dirs = dict(model_dirs or PARAKEET_MODEL_DIRS)
        self._backends: Dict[str, SherpaOnnxBackend] = {}
        self._lock = threading.Lock()

    def model_path(self, version: str) -> str:
        if version not in self._model_dirs:
            raise ValueError(f"Unknown Parakeet version: {version}")
        return os.path.join(get_models_dir(), self._model_dirs[version])

    def get_or_load(self, version: str) -> SherpaOnnxBackend:
        with self._lock:
            backend = self._backends.get(version)
            if backend is not None and backend.is_loaded:
                return backend

            backend = SherpaOnnxBackend()
            backend.load(self.model_path(version))
            self._backends[version] = backend
            logger.info(f"Parakeet {version} model ready")
            return backend

    def unload_all(self) -> None:
        with self._lock:
            for backend in self._backends.values():
                backend.unload()
            self._backends.clear()


_model_cache: Optional[ParakeetModelCache] = None


def get_parakeet_model_cache() -> ParakeetModelCache:
    global _model_cache
    if _model_cache is None:
        _model_cache = ParakeetModelCache()
    return _model_cache
