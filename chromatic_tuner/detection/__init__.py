"""Frame gating, pitch estimation and note smoothing."""

from .autocorrelation import AutocorrelationEstimator, McLeodEstimator
from .frame_gate import FrameGate, rms
from .stability import HOLD_BUDGET, ControllerState, HoldState, StabilityController

__all__ = [
    "AutocorrelationEstimator",
    "McLeodEstimator",
    "FrameGate",
    "rms",
    "HOLD_BUDGET",
    "ControllerState",
    "HoldState",
    "StabilityController",
]
