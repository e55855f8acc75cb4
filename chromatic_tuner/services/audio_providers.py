"""Audio sources for the tuner: live input via sounddevice, WAV files via soundfile."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

import numpy as np
import soundfile as sf

from ..core.interfaces import IAudioProvider
from ..logger import get_logger
from ..note_types import AudioFrame, ErrorKind

logger = get_logger(__name__)

OnData = Callable[[np.ndarray, float], None]


class CaptureError(Exception):
    """Raised when an audio source cannot be opened."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of opening an audio source: a running provider or an error kind."""

    provider: Optional[IAudioProvider] = None
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.provider is not None


_PERMISSION_MARKERS = ("permission", "access denied", "not permitted", "not authorized")
_NOT_FOUND_MARKERS = (
    "no such device",
    "invalid device",
    "no input device",
    "no default input",
    "device unavailable",
    "error querying device",
    "no such file",
)
_UNSUPPORTED_MARKERS = ("invalid sample rate", "not supported", "invalid number of channels")


def classify_capture_error(error: Exception) -> ErrorKind:
    """Map an exception raised while opening a source to an ErrorKind."""
    if isinstance(error, CaptureError):
        return error.kind
    if isinstance(error, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(error, FileNotFoundError):
        return ErrorKind.DEVICE_NOT_FOUND

    message = str(error).lower()
    if any(marker in message for marker in _PERMISSION_MARKERS):
        return ErrorKind.PERMISSION_DENIED
    if any(marker in message for marker in _NOT_FOUND_MARKERS):
        return ErrorKind.DEVICE_NOT_FOUND
    if any(marker in message for marker in _UNSUPPORTED_MARKERS):
        return ErrorKind.UNSUPPORTED
    return ErrorKind.UNKNOWN


def _load_sounddevice():
    """Import sounddevice, which fails with OSError when PortAudio is missing."""
    try:
        import sounddevice as sd
    except OSError as e:
        raise CaptureError(ErrorKind.UNSUPPORTED, f"PortAudio unavailable: {e}") from e
    return sd


def to_mono(block: np.ndarray) -> np.ndarray:
    """Downmix a (frames x channels) block to a 1-D float32 array."""
    if block.ndim > 1:
        block = block.mean(axis=1) if block.shape[1] > 1 else block[:, 0]
    return np.array(block, dtype=np.float32)


def list_input_devices() -> List[Dict[str, Any]]:
    """Describe every device with at least one input channel.

    Raises:
        CaptureError: If PortAudio is not available
    """
    sd = _load_sounddevice()
    devices = []
    for device_id, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": device_id,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "default_samplerate": device["default_samplerate"],
                }
            )
    return devices


def open_capture(provider: IAudioProvider, on_data: OnData) -> CaptureResult:
    """Start a provider and report the outcome as a CaptureResult instead of raising."""
    try:
        provider.start(on_data)
    except CaptureError as e:
        logger.error(f"Could not start audio capture: {e}")
        return CaptureResult(error=e.kind)
    return CaptureResult(provider=provider)


class LiveAudioProvider(IAudioProvider):
    """Provides live audio from an input device using sounddevice."""

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: int = 48000,
        channels: int = 1,
        blocksize: int = 1024,
    ):
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        self._device_id = device_id
        self._sample_rate = sample_rate
        self._channels = channels
        self._blocksize = blocksize
        self._stream = None
        self._on_data: Optional[OnData] = None

    def start(self, on_data: OnData) -> None:
        if self._stream is not None:
            logger.warning("Audio input already running")
            return

        sd = _load_sounddevice()
        self._on_data = on_data
        try:
            if self._device_id is not None:
                sd.query_devices(self._device_id, kind="input")
            self._stream = sd.InputStream(
                device=self._device_id,
                channels=self._channels,
                samplerate=self._sample_rate,
                blocksize=self._blocksize,
                callback=self._audio_callback,
                dtype="float32",
            )
            self._stream.start()
        except Exception as e:
            kind = classify_capture_error(e)
            logger.error(f"Failed to start audio input ({kind.value}): {e}")
            self._close_stream()
            raise CaptureError(kind, str(e)) from e

        logger.info(
            f"Audio input started: device={self._device_id}, rate={self._sample_rate}Hz, "
            f"blocksize={self._blocksize}"
        )

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except Exception as e:
            logger.warning(f"Error closing audio stream: {e}")
        self._stream = None

    def stop(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
        except Exception as e:
            logger.error(f"Error stopping audio input: {e}")
        self._close_stream()
        logger.info("Audio input stopped")

    def _audio_callback(self, indata: np.ndarray, _frames: int, _time_info, status) -> None:
        """Runs on the PortAudio thread; must not block."""
        if status:
            logger.warning(f"Audio callback status: {status}")
        if self._on_data:
            self._on_data(to_mono(indata), time.time())

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels


class WavFileAudioProvider(IAudioProvider):
    """Provides audio data by reading from a WAV file."""

    def __init__(
        self,
        file_path: str,
        chunk_size: int = 1024,
        loop: bool = False,
        gain: float = 1.0,
        realtime: bool = True,
    ):
        self._file_path = file_path
        self._chunk_size = chunk_size
        self._loop = loop
        self._gain = gain
        self._realtime = realtime
        self._on_data: Optional[OnData] = None
        self._is_running = False
        self._thread: Optional[threading.Thread] = None

        if not os.path.exists(self._file_path):
            raise CaptureError(ErrorKind.DEVICE_NOT_FOUND, f"No such file: {self._file_path}")
        try:
            info = sf.info(self._file_path)
        except Exception as e:
            raise CaptureError(classify_capture_error(e), str(e)) from e
        self._sample_rate = info.samplerate
        self._channels = info.channels

    def start(self, on_data: OnData) -> None:
        if self._is_running:
            return

        self._on_data = on_data
        self._is_running = True
        self._thread = threading.Thread(target=self._stream_data, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._is_running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    @property
    def is_running(self) -> bool:
        """Returns True if the provider is currently streaming data."""
        return self._is_running

    def _stream_data(self) -> None:
        try:
            with sf.SoundFile(self._file_path) as f:
                while self._is_running:
                    data = f.read(self._chunk_size, dtype="float32", always_2d=True)
                    if len(data) == 0:
                        if self._loop:
                            f.seek(0)
                            continue
                        break

                    block = to_mono(data)
                    if self._gain != 1.0:
                        block *= self._gain

                    if self._on_data:
                        self._on_data(block, time.time())

                    # Simulate real-time playback speed
                    if self._realtime:
                        time.sleep(len(data) / self._sample_rate)
        except Exception as e:
            logger.error(f"Error streaming WAV file {self._file_path}: {e}")
        finally:
            self._is_running = False

    def iter_frames(self, frame_size: int, hop_size: Optional[int] = None) -> Iterator[AudioFrame]:
        """Yield analysis frames from the whole file without real-time pacing.

        Args:
            frame_size: Samples per frame
            hop_size: Samples between frame starts, defaults to frame_size

        A file shorter than one frame is yielded as a single short frame.
        """
        if frame_size <= 0:
            raise ValueError("frame_size must be positive")
        hop = hop_size if hop_size is not None else frame_size
        if hop <= 0:
            raise ValueError("hop_size must be positive")

        data, rate = sf.read(self._file_path, dtype="float32", always_2d=True)
        samples = to_mono(data)
        if self._gain != 1.0:
            samples *= self._gain

        if samples.size < frame_size:
            if samples.size:
                yield AudioFrame(samples, rate)
            return
        for start in range(0, samples.size - frame_size + 1, hop):
            yield AudioFrame(samples[start : start + frame_size], rate)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels
