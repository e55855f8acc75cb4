import json

import pytest

from chromatic_tuner.core.config import ConfigManager
from chromatic_tuner.core.factory import ComponentFactory
from chromatic_tuner.detection.autocorrelation import AutocorrelationEstimator, McLeodEstimator
from chromatic_tuner.services.audio_providers import LiveAudioProvider
from chromatic_tuner.services.tuner_service import TunerService


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(str(tmp_path))


def test_defaults_written(tmp_path, config_manager):
    for name in ("tuner", "detector", "audio_input"):
        assert (tmp_path / f"{name}.json").exists()
    assert config_manager.get_config("tuner")["reference_pitch"] == 440.0
    assert config_manager.get_config("detector")["noise_floor"] == 0.01
    assert config_manager.get_config("audio_input")["frame_size"] == 8192


def test_update_persists(tmp_path, config_manager):
    assert config_manager.update_config("tuner", {"hold_frames": 4})
    reloaded = ConfigManager(str(tmp_path))
    assert reloaded.get_config("tuner")["hold_frames"] == 4


def test_reference_pitch_clamped(tmp_path, config_manager):
    config_manager.update_config("tuner", {"reference_pitch": 480})
    assert config_manager.get_config("tuner")["reference_pitch"] == 446.0

    (tmp_path / "tuner.json").write_text(json.dumps({"reference_pitch": 300}))
    assert ConfigManager(str(tmp_path)).get_config("tuner")["reference_pitch"] == 432.0


def test_missing_keys_filled(tmp_path):
    (tmp_path / "detector.json").write_text(json.dumps({"noise_floor": 0.05}))
    config = ConfigManager(str(tmp_path)).get_config("detector")
    assert config["noise_floor"] == 0.05
    assert config["edge_threshold"] == 0.2


def test_corrupt_file_uses_defaults(tmp_path):
    (tmp_path / "tuner.json").write_text("{not json")
    assert ConfigManager(str(tmp_path)).get_config("tuner")["estimator"] == "autocorrelation"


def test_invalid_values_fall_back(tmp_path):
    (tmp_path / "tuner.json").write_text(
        json.dumps({"estimator": "fft", "hold_frames": "lots", "tick_rate_hz": "30"})
    )
    config = ConfigManager(str(tmp_path)).get_config("tuner")
    assert config["estimator"] == "autocorrelation"
    assert config["hold_frames"] == 10
    assert config["tick_rate_hz"] == 30.0


def test_negative_hold_frames(config_manager):
    config_manager.update_config("tuner", {"hold_frames": -3})
    assert config_manager.get_config("tuner")["hold_frames"] == 0


def test_infinite_integer_falls_back(tmp_path):
    (tmp_path / "tuner.json").write_text('{"hold_frames": Infinity}')
    assert ConfigManager(str(tmp_path)).get_config("tuner")["hold_frames"] == 10


@pytest.mark.parametrize(
    "section, stored, expected",
    [
        ("detector", {"min_frequency": 2000.0}, {"min_frequency": 40.0, "max_frequency": 1200.0}),
        ("detector", {"max_frequency": -5.0}, {"min_frequency": 40.0, "max_frequency": 1200.0}),
        ("detector", {"clarity_threshold": 1.5}, {"clarity_threshold": 0.9}),
        ("detector", {"noise_floor": -0.1}, {"noise_floor": 0.01}),
        ("audio_input", {"frame_size": 0}, {"frame_size": 8192}),
        ("audio_input", {"sample_rate": -48000}, {"sample_rate": 48000}),
        ("tuner", {"tick_rate_hz": 0}, {"tick_rate_hz": 60.0}),
        ("tuner", {"tick_rate_hz": float("nan")}, {"tick_rate_hz": 60.0}),
        ("audio_input", {"blocksize": None}, {"blocksize": 1024}),
    ],
)
def test_out_of_range_values_fall_back(tmp_path, section, stored, expected):
    (tmp_path / f"{section}.json").write_text(json.dumps(stored))
    config = ConfigManager(str(tmp_path)).get_config(section)
    for key, value in expected.items():
        assert config[key] == value


def test_update_rejects_out_of_range(config_manager):
    config_manager.update_config("detector", {"min_frequency": 80.0, "max_frequency": 70.0})
    config = config_manager.get_config("detector")
    assert (config["min_frequency"], config["max_frequency"]) == (40.0, 1200.0)


def test_reset(config_manager):
    config_manager.update_config("tuner", {"estimator": "mcleod"})
    assert config_manager.reset_config("tuner")
    assert config_manager.get_config("tuner")["estimator"] == "autocorrelation"


def test_unknown_config(config_manager):
    with pytest.raises(ValueError):
        config_manager.get_config("nope")
    assert config_manager.update_config("nope", {}) is False
    assert config_manager.reset_config("nope") is False


def test_get_config_returns_copy(config_manager):
    config_manager.get_config("tuner")["hold_frames"] = 99
    assert config_manager.get_config("tuner")["hold_frames"] == 10


class TestComponentFactory:
    def test_default_estimator(self, config_manager):
        estimator = ComponentFactory(config_manager).create_estimator()
        assert isinstance(estimator, AutocorrelationEstimator)
        assert estimator.edge_threshold == 0.2
        assert estimator.min_frequency == 40.0
        assert estimator.max_frequency == 1200.0
        assert estimator.gate.noise_floor == 0.01

    def test_noise_floor_reaches_gate(self, config_manager):
        config_manager.update_config("detector", {"noise_floor": 0.05})
        for name in ("autocorrelation", "mcleod"):
            estimator = ComponentFactory(config_manager).create_estimator(name)
            assert estimator.gate.noise_floor == 0.05

    def test_mcleod_from_config(self, config_manager):
        config_manager.update_config("tuner", {"estimator": "mcleod"})
        config_manager.update_config("detector", {"clarity_threshold": 0.8})
        estimator = ComponentFactory(config_manager).create_estimator()
        assert isinstance(estimator, McLeodEstimator)
        assert estimator.clarity_threshold == 0.8

    def test_estimator_overrides(self, config_manager):
        estimator = ComponentFactory(config_manager).create_estimator(
            "autocorrelation", min_frequency=60.0
        )
        assert estimator.min_frequency == 60.0

    def test_unknown_estimator(self, config_manager):
        with pytest.raises(ValueError):
            ComponentFactory(config_manager).create_estimator("fft")

    def test_tuner_settings(self, config_manager):
        config_manager.update_config("tuner", {"hold_frames": 3})
        tuner = ComponentFactory(config_manager).create_tuner(reference_pitch=443.0)
        assert tuner.reference_pitch == 443.0
        assert tuner.pipeline.controller.hold_budget == 3

    def test_live_provider_from_config(self, config_manager):
        provider = ComponentFactory(config_manager).create_audio_provider("live", sample_rate=44100)
        assert isinstance(provider, LiveAudioProvider)
        assert provider.sample_rate == 44100
        assert provider.channels == 1

    def test_unknown_provider(self, config_manager):
        with pytest.raises(ValueError):
            ComponentFactory(config_manager).create_audio_provider("bluetooth")

    def test_service(self, config_manager):
        factory = ComponentFactory(config_manager)
        service = factory.create_tuner_service(audio_provider=factory.create_audio_provider("live"))
        assert isinstance(service, TunerService)
        assert service.buffer.frame_size == 8192
        assert not service.is_running
