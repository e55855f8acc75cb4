"""Factory for creating chromatic tuner components."""

from typing import Any, Dict, Optional, Type

from ..detection.autocorrelation import AutocorrelationEstimator, McLeodEstimator
from ..detection.stability import StabilityController
from ..logger import get_logger
from ..services.audio_providers import LiveAudioProvider, WavFileAudioProvider
from ..services.tuner_service import TunerService
from ..tuner import Tuner, TunerPipeline
from .config import ConfigManager
from .events import TunerEvents
from .interfaces import IAudioProvider, IPitchEstimator

logger = get_logger(__name__)

# Detector config keys each estimator understands
_ESTIMATOR_KEYS = {
    "autocorrelation": ("noise_floor", "edge_threshold", "min_frequency", "max_frequency"),
    "mcleod": ("noise_floor", "clarity_threshold", "min_frequency", "max_frequency"),
}


class ComponentFactory:
    """Factory for creating chromatic tuner components."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize the component factory.

        Args:
            config_manager: Configuration manager, or None to create a default one
        """
        self.config_manager = config_manager or ConfigManager()

        self.estimator_classes: Dict[str, Type[IPitchEstimator]] = {
            "autocorrelation": AutocorrelationEstimator,
            "mcleod": McLeodEstimator,
        }

        self.audio_provider_classes: Dict[str, Type[IAudioProvider]] = {
            "live": LiveAudioProvider,
            "wav": WavFileAudioProvider,
        }

    def create_estimator(self, implementation: Optional[str] = None, **kwargs) -> IPitchEstimator:
        """Create a pitch estimator.

        Args:
            implementation: 'autocorrelation' or 'mcleod', None for the configured one
            **kwargs: Overrides for the detector configuration

        Raises:
            ValueError: If the implementation is not registered
        """
        if implementation is None:
            implementation = self.config_manager.get_config("tuner")["estimator"]
        if implementation not in self.estimator_classes:
            raise ValueError(f"Unknown estimator implementation: {implementation}")

        config = self.config_manager.get_config("detector")
        config.update(kwargs)
        params = {k: v for k, v in config.items() if k in _ESTIMATOR_KEYS[implementation]}

        instance = self.estimator_classes[implementation](**params)
        logger.info(f"Created estimator: {implementation}")
        return instance

    def create_tuner(self, estimator: Optional[str] = None, **kwargs) -> Tuner:
        """Create a Tuner wired to the configured estimator and hold budget.

        Args:
            estimator: Estimator implementation name, None for the configured one
            **kwargs: 'reference_pitch' or 'hold_frames' overrides
        """
        config = self.config_manager.get_config("tuner")
        config.update(kwargs)

        pipeline = TunerPipeline(
            estimator=self.create_estimator(estimator),
            controller=StabilityController(hold_budget=int(config["hold_frames"])),
        )
        return Tuner(pipeline, reference_pitch=float(config["reference_pitch"]))

    def create_audio_provider(self, implementation: str = "live", **kwargs: Any) -> IAudioProvider:
        """Create an audio provider.

        Args:
            implementation: 'live' for an input device or 'wav' for a file
            **kwargs: Constructor parameters; live inputs default to the audio_input config

        Raises:
            ValueError: If the implementation is not registered
        """
        if implementation not in self.audio_provider_classes:
            raise ValueError(f"Unknown audio provider implementation: {implementation}")

        if implementation == "live":
            config = self.config_manager.get_config("audio_input")
            params = {
                "device_id": config["device_id"],
                "sample_rate": config["sample_rate"],
                "channels": config["channels"],
                "blocksize": config["blocksize"],
            }
            params.update(kwargs)
        else:
            params = dict(kwargs)

        instance = self.audio_provider_classes[implementation](**params)
        logger.info(f"Created audio provider: {implementation}")
        return instance

    def create_tuner_service(
        self,
        audio_provider: Optional[IAudioProvider] = None,
        tuner: Optional[Tuner] = None,
        events: Optional[TunerEvents] = None,
    ) -> TunerService:
        """Create a TunerService, building the provider and tuner from config if not given."""
        audio_config = self.config_manager.get_config("audio_input")
        tuner_config = self.config_manager.get_config("tuner")

        return TunerService(
            audio_provider=audio_provider or self.create_audio_provider("live"),
            tuner=tuner or self.create_tuner(),
            frame_size=int(audio_config["frame_size"]),
            tick_rate_hz=float(tuner_config["tick_rate_hz"]),
            events=events,
        )
