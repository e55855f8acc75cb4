"""Core components for the chromatic tuner."""

# Import interfaces for easier access
from .interfaces import (
    IPitchEstimator,
    IAudioProvider,
)

__all__ = ["IPitchEstimator", "IAudioProvider"]
