"""Per-tick tuner pipeline: frame gate, pitch estimate, note mapping, smoothing."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Tuple, Union

from .core.interfaces import IPitchEstimator
from .detection.autocorrelation import AutocorrelationEstimator
from .detection.stability import ControllerState, StabilityController
from .logger import get_logger
from .note_types import AudioFrame, ErrorKind, NoteInfo, PitchEstimate, TunerReading, TunerState
from .note_utils import DEFAULT_REFERENCE_PITCH, clamp_reference_pitch, map_to_note

logger = get_logger(__name__)


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class SetReferencePitch:
    hz: float


@dataclass(frozen=True)
class CaptureFailed:
    kind: ErrorKind


Command = Union[Start, Stop, Retry, SetReferencePitch, CaptureFailed]


@dataclass(frozen=True)
class TunerSession:
    """Everything the tuner remembers between ticks."""

    controller: ControllerState = field(default_factory=ControllerState)
    reference_pitch: float = DEFAULT_REFERENCE_PITCH

    def __post_init__(self):
        object.__setattr__(self, "reference_pitch", clamp_reference_pitch(self.reference_pitch))


class TunerPipeline:
    """Stateless processing of one tick; the session is passed in and returned."""

    def __init__(
        self,
        estimator: Optional[IPitchEstimator] = None,
        controller: Optional[StabilityController] = None,
    ) -> None:
        self._estimator = estimator or AutocorrelationEstimator()
        self._controller = controller or StabilityController()

    @property
    def estimator(self) -> IPitchEstimator:
        return self._estimator

    @property
    def controller(self) -> StabilityController:
        return self._controller

    def apply(self, session: TunerSession, command: Command) -> TunerSession:
        """Apply a single host command to the session."""
        controller = self._controller
        if isinstance(command, Start):
            return replace(session, controller=controller.start(session.controller))
        if isinstance(command, Stop):
            return replace(session, controller=controller.stop(session.controller))
        if isinstance(command, Retry):
            return replace(session, controller=controller.retry(session.controller))
        if isinstance(command, CaptureFailed):
            return replace(session, controller=controller.fail(session.controller, command.kind))
        if isinstance(command, SetReferencePitch):
            return replace(session, reference_pitch=clamp_reference_pitch(command.hz))
        raise ValueError(f"Unknown command: {command!r}")

    def detect(
        self, frame: AudioFrame, reference_pitch: float
    ) -> Tuple[Optional[PitchEstimate], Optional[NoteInfo]]:
        """Run estimation and note mapping on one frame.

        Any failure inside the computation counts as no detection for this frame.
        """
        try:
            estimate = self._estimator.estimate(frame)
            if estimate is None:
                return None, None
            return estimate, map_to_note(estimate.frequency, reference_pitch)
        except Exception as e:
            logger.error(f"Error in pitch detection: {e}", exc_info=True)
            return None, None

    def tick(
        self,
        session: TunerSession,
        frame: Optional[AudioFrame],
        commands: Iterable[Command] = (),
    ) -> Tuple[TunerSession, TunerReading]:
        """Advance the tuner by one tick.

        Args:
            session: State before the tick
            frame: Latest audio frame, or None if capture has nothing yet
            commands: Host commands applied, in order, before the frame

        Returns:
            The new session and the reading to display. Without a frame, or
            while idle or in error, the session comes back unchanged apart
            from the commands.
        """
        for command in commands:
            session = self.apply(session, command)

        if frame is None or not session.controller.is_running:
            return session, self._controller.reading(session.controller)

        estimate, note = self.detect(frame, session.reference_pitch)
        controller_state, reading = self._controller.update(
            session.controller, note, estimate.frequency if note is not None else None
        )
        return replace(session, controller=controller_state), reading


class Tuner:
    """Thread-safe owner of a tuner session.

    Commands may arrive from a different thread than the one calling tick();
    a single lock serializes both.
    """

    def __init__(
        self,
        pipeline: Optional[TunerPipeline] = None,
        reference_pitch: float = DEFAULT_REFERENCE_PITCH,
    ) -> None:
        self._pipeline = pipeline or TunerPipeline()
        self._session = TunerSession(reference_pitch=reference_pitch)
        self._reading = TunerReading(state=TunerState.IDLE)
        self._lock = threading.Lock()

    def _command(self, command: Command) -> TunerReading:
        with self._lock:
            self._session = self._pipeline.apply(self._session, command)
            self._reading = self._pipeline.controller.reading(self._session.controller)
            return self._reading

    def start(self) -> TunerReading:
        return self._command(Start())

    def stop(self) -> TunerReading:
        return self._command(Stop())

    def retry(self) -> TunerReading:
        return self._command(Retry())

    def fail(self, kind: ErrorKind) -> TunerReading:
        return self._command(CaptureFailed(kind))

    def set_reference_pitch(self, hz: float) -> float:
        """Set the A4 reference, clamped to the supported range. Returns the effective value."""
        self._command(SetReferencePitch(hz))
        return self.reference_pitch

    def tick(self, frame: Optional[AudioFrame]) -> TunerReading:
        with self._lock:
            self._session, self._reading = self._pipeline.tick(self._session, frame)
            return self._reading

    @property
    def pipeline(self) -> TunerPipeline:
        return self._pipeline

    @property
    def reading(self) -> TunerReading:
        with self._lock:
            return self._reading

    @property
    def reference_pitch(self) -> float:
        with self._lock:
            return self._session.reference_pitch

    @property
    def state(self) -> TunerState:
        with self._lock:
            return self._session.controller.state

    @property
    def session(self) -> TunerSession:
        with self._lock:
            return self._session
