"""Hold-based smoothing of per-frame notes and the tuner's display state machine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from ..logger import get_logger
from ..note_types import ErrorKind, NoteInfo, TunerReading, TunerState

logger = get_logger(__name__)

# Frames a note stays on screen after detection stops
HOLD_BUDGET = 10


@dataclass(frozen=True)
class HoldState:
    """The last confident note and how many empty frames it may still be shown for."""

    last_note: Optional[NoteInfo] = None
    last_frequency: Optional[float] = None
    frames_remaining: int = 0


@dataclass(frozen=True)
class ControllerState:
    state: TunerState = TunerState.IDLE
    error: Optional[ErrorKind] = None
    hold: HoldState = field(default_factory=HoldState)

    @property
    def is_running(self) -> bool:
        return self.state in (TunerState.LISTENING, TunerState.ACTIVE)


class StabilityController:
    """
    Smooths the per-frame note stream so the display does not flicker.

    The controller only carries configuration. Every method takes the current
    ControllerState and returns the next one.
    """

    def __init__(self, hold_budget: int = HOLD_BUDGET):
        if hold_budget < 0:
            raise ValueError("hold_budget must not be negative")
        self._hold_budget = hold_budget

    @property
    def hold_budget(self) -> int:
        return self._hold_budget

    def start(self, current: ControllerState) -> ControllerState:
        """Enter LISTENING with a cleared hold, restarting if already running."""
        if current.is_running:
            logger.debug("Restarting while running")
        return ControllerState(state=TunerState.LISTENING)

    def retry(self, current: ControllerState) -> ControllerState:
        """Re-attempt listening after a capture failure."""
        if current.state is TunerState.ERROR:
            logger.info(f"Retrying after {current.error.value if current.error else 'error'}")
        return self.start(current)

    def stop(self, current: ControllerState) -> ControllerState:
        if current.state is TunerState.ERROR:
            # An error is only cleared by retrying
            return current
        return ControllerState(state=TunerState.IDLE)

    def fail(self, current: ControllerState, kind: ErrorKind) -> ControllerState:
        logger.error(f"Capture failed: {kind.value}")
        return ControllerState(state=TunerState.ERROR, error=kind)

    def update(
        self,
        current: ControllerState,
        note: Optional[NoteInfo],
        frequency: Optional[float] = None,
    ) -> Tuple[ControllerState, TunerReading]:
        """Fold one frame's detection result into the hold state.

        Args:
            current: State before this frame
            note: Note mapped this frame, or None if nothing was detected
            frequency: Measured frequency behind `note`

        Returns:
            The next state and the reading to display
        """
        if not current.is_running:
            return current, self.reading(current)

        hold = current.hold
        if note is not None:
            hold = HoldState(note, frequency, self._hold_budget)
            state = TunerState.ACTIVE
        elif hold.frames_remaining > 0:
            hold = replace(hold, frames_remaining=hold.frames_remaining - 1)
            state = TunerState.ACTIVE
        else:
            if hold.last_note is not None:
                logger.debug(f"Hold expired for {hold.last_note}")
            hold = HoldState()
            state = TunerState.LISTENING

        next_state = ControllerState(state=state, hold=hold)
        return next_state, self.reading(next_state)

    @staticmethod
    def reading(current: ControllerState) -> TunerReading:
        """Render the observable reading for a state."""
        if current.state is TunerState.ACTIVE:
            return TunerReading(
                state=current.state,
                note=current.hold.last_note,
                frequency=current.hold.last_frequency,
            )
        if current.state is TunerState.ERROR:
            return TunerReading(state=current.state, error=current.error)
        return TunerReading(state=current.state)
