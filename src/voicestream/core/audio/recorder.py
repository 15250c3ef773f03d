from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import numpy as np

from ...utils.logger import get_logger
from ..settings.config import CHANNELS, CHUNK_DURATION_MS, SAMPLE_RATE

logger = get_logger(__name__)


def _sounddevice():
    # PortAudio may be absent on headless hosts
    import sounddevice

    return sounddevice


@dataclass
class AudioDevice:
    name: str
    index: int
    channels: int
    default_sample_rate: float


class AudioRecorder:
    """
    Captures microphone audio as 16-bit PCM chunks.

    Each captured block is handed to ``on_chunk`` as little-endian int16
    bytes straight from the PortAudio callback thread, so the callback must
    not block.
    """

    def __init__(
        self,
        on_chunk: Callable[[bytes], None],
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        device: Optional[str] = None,
        chunk_duration_ms: int = CHUNK_DURATION_MS,
        on_audio_level: Optional[Callable[[float], None]] = None,
    ):
        self.on_chunk = on_chunk
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self.chunk_duration_ms = chunk_duration_ms
        self.on_audio_level = on_audio_level

        self._stream: Any = None
        self._is_recording = False
        self._last_error: Optional[str] = None
        self._chunk_count = 0

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    def start(self) -> bool:
        if self._is_recording:
            return True

        self._last_error = None
        self._chunk_count = 0

        sd = _sounddevice()

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=int(self.sample_rate * self.chunk_duration_ms / 1000),
                device=self._get_device_index(),
                callback=self._audio_callback,
            )
            self._is_recording = True
            self._stream.start()
            logger.info(
                f"Recording started ({self.sample_rate} Hz, device={self.device or 'default'})"
            )
            return True

        except sd.PortAudioError as e:
            self._last_error = f"Audio device error: {e}"
            self._is_recording = False
            return False
        except Exception as e:
            self._last_error = f"Failed to start recording: {e}"
            self._is_recording = False
            return False

    def stop(self) -> None:
        if not self._is_recording:
            return

        self._is_recording = False

        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

        logger.info(f"Recording stopped after {self._chunk_count} chunks")

    def _audio_callback(self, indata: np.ndarray, frames: int, time, status) -> None:
        if status:
            logger.debug(f"Audio status: {status}")
        if not self._is_recording:
            return

        pcm = indata
        if pcm.ndim > 1:
            pcm = pcm[:, 0] if pcm.shape[1] > 1 else pcm.flatten()
        self._chunk_count += 1
        self.on_chunk(pcm.astype("<i2", copy=False).tobytes())

        if self.on_audio_level is not None:
            level = float(np.abs(pcm.astype(np.float32)).mean()) / 32768.0
            self.on_audio_level(min(1.0, level * 10))

    def _get_device_index(self) -> Optional[int]:
        if self.device is None:
            return None

        for device in self.list_devices():
            if device.name == self.device:
                return device.index

        logger.warning(f"Input device '{self.device}' not found, using default")
        return None

    @staticmethod
    def list_devices() -> List[AudioDevice]:
        devices = []

        for i, device in enumerate(_sounddevice().query_devices()):
            if device["max_input_channels"] > 0:
                devices.append(
                    AudioDevice(
                        name=device["name"],
                        index=i,
                        channels=device["max_input_channels"],
                        default_sample_rate=device["default_samplerate"],
                    )
                )

        return devices
