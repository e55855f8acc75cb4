"""Host loop that feeds captured audio into the tuner at a fixed tick rate."""

from __future__ import annotations

import threading
import time
from typing import Optional

import numpy as np

from ..core.events import TunerEvents
from ..core.interfaces import IAudioProvider
from ..logger import get_logger
from ..note_types import AudioFrame, TunerReading, TunerState
from ..tuner import Tuner
from .audio_providers import open_capture

logger = get_logger(__name__)


class FrameBuffer:
    """Rolling window over the most recent `frame_size` samples.

    Capture callbacks write blocks of any size; the tick loop takes snapshots.
    Consecutive snapshots overlap when ticks are faster than the block rate.
    """

    def __init__(self, frame_size: int, sample_rate: int) -> None:
        if frame_size <= 0:
            raise ValueError("frame_size must be positive")
        self._frame_size = frame_size
        self._sample_rate = sample_rate
        self._buffer = np.zeros(frame_size, dtype=np.float32)
        self._filled = 0
        self._lock = threading.Lock()

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._filled >= self._frame_size

    def write(self, samples: np.ndarray, _timestamp: float = 0.0) -> None:
        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        count = samples.size
        if count == 0:
            return
        with self._lock:
            if count >= self._frame_size:
                self._buffer[:] = samples[-self._frame_size :]
            else:
                self._buffer[:-count] = self._buffer[count:]
                self._buffer[-count:] = samples
            self._filled = min(self._frame_size, self._filled + count)

    def snapshot(self) -> Optional[AudioFrame]:
        """The latest full frame, or None until enough audio has arrived."""
        with self._lock:
            if self._filled < self._frame_size:
                return None
            return AudioFrame(self._buffer.copy(), self._sample_rate)

    def clear(self) -> None:
        with self._lock:
            self._buffer[:] = 0.0
            self._filled = 0


class TunerService:
    """Runs capture and a background tick loop around a Tuner."""

    def __init__(
        self,
        audio_provider: IAudioProvider,
        tuner: Optional[Tuner] = None,
        frame_size: int = 8192,
        tick_rate_hz: float = 60.0,
        events: Optional[TunerEvents] = None,
    ) -> None:
        if tick_rate_hz <= 0:
            raise ValueError("tick_rate_hz must be positive")
        self._provider = audio_provider
        self._tuner = tuner or Tuner()
        self._frame_size = frame_size
        self._interval = 1.0 / tick_rate_hz
        self._events = events or TunerEvents()
        self._events.on_state_change(self._log_transition)
        self._buffer = FrameBuffer(frame_size, audio_provider.sample_rate)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def tuner(self) -> Tuner:
        return self._tuner

    @property
    def events(self) -> TunerEvents:
        return self._events

    @property
    def buffer(self) -> FrameBuffer:
        return self._buffer

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def reading(self) -> TunerReading:
        return self._tuner.reading

    def start(self) -> bool:
        """Open capture and begin ticking; restarts cleanly if already running.

        Returns:
            True if capture started, False if the tuner entered the error state
        """
        if self._thread is not None:
            self.stop()

        self._buffer = FrameBuffer(self._frame_size, self._provider.sample_rate)
        self._tuner.start()

        result = open_capture(self._provider, self._buffer.write)
        if not result.ok:
            reading = self._tuner.fail(result.error)
            self._events.emit_error(result.error)
            self._events.emit_reading(reading)
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="tuner-tick", daemon=True)
        self._thread.start()
        logger.info(f"Tuner service started ({1.0 / self._interval:.0f} ticks/s)")
        return True

    def retry(self) -> bool:
        """Re-attempt capture after an error."""
        self._tuner.retry()
        return self.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._provider.stop()
        self._events.emit_reading(self._tuner.stop())
        logger.info("Tuner service stopped")

    def set_reference_pitch(self, hz: float) -> float:
        return self._tuner.set_reference_pitch(hz)

    def tick(self) -> TunerReading:
        """Process the latest buffered frame once and publish the reading."""
        reading = self._tuner.tick(self._buffer.snapshot())
        self._events.emit_reading(reading)
        return reading

    def _run(self) -> None:
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.tick()
            next_tick += self._interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                # Fell behind; do not try to catch up with a burst of ticks
                next_tick = time.monotonic()
                delay = 0.0
            self._stop_event.wait(delay)

    @staticmethod
    def _log_transition(previous: TunerState, current: TunerState) -> None:
        logger.info(f"Tuner state {previous.value} -> {current.value}")
