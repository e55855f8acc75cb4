import json

import numpy as np
import pytest
import soundfile as sf

from chromatic_tuner.cli.main import format_meter, format_reading, main, tuning_status
from chromatic_tuner.note_types import ErrorKind, NoteInfo, TunerReading, TunerState


@pytest.fixture
def a440_wav(tmp_path):
    path = tmp_path / "a440.wav"
    t = np.arange(48000) / 48000
    sf.write(str(path), 0.5 * np.sin(2 * np.pi * 440.0 * t), 48000)
    return str(path)


def test_analyze_reports_note(a440_wav, tmp_path, capsys):
    exit_code = main(["analyze", a440_wav, "--config-dir", str(tmp_path / "config")])
    out = capsys.readouterr().out
    assert exit_code == 0
    assert "A4" in out
    assert "Note statistics:" in out


def test_analyze_silence(tmp_path, capsys):
    path = tmp_path / "silence.wav"
    sf.write(str(path), np.zeros(16384), 48000)
    exit_code = main(["analyze", str(path), "--config-dir", str(tmp_path / "config")])
    assert exit_code == 0
    assert "No notes detected" in capsys.readouterr().out


def test_analyze_with_flats_and_reference(tmp_path, capsys):
    path = tmp_path / "asharp.wav"
    t = np.arange(48000) / 48000
    sf.write(str(path), 0.5 * np.sin(2 * np.pi * 466.16 * t), 48000)
    exit_code = main(
        [
            "analyze",
            str(path),
            "--flats",
            "--estimator",
            "mcleod",
            "--reference",
            "440",
            "--config-dir",
            str(tmp_path / "config"),
        ]
    )
    assert exit_code == 0
    assert "Bb4" in capsys.readouterr().out


def test_analyze_missing_file(tmp_path, capsys):
    exit_code = main(["analyze", str(tmp_path / "nope.wav"), "--config-dir", str(tmp_path)])
    assert exit_code == 1
    assert "not-found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_format_meter():
    assert format_meter(0) == "[----------|----------]"
    assert format_meter(10) == "[----------|-*--------]"
    assert format_meter(-50) == "[*---------|----------]"
    assert format_meter(-500) == format_meter(-50)


def test_format_reading():
    note = NoteInfo("A", 4, 440.0, 3)
    active = TunerReading(state=TunerState.ACTIVE, note=note, frequency=440.76)
    line = format_reading(active)
    assert line.startswith("A4")
    assert "+3 cents" in line
    assert "440.76 Hz" in line
    assert line.endswith("in tune")

    assert format_reading(TunerReading(state=TunerState.LISTENING)) == "listening..."
    assert format_reading(TunerReading(state=TunerState.IDLE)) == "idle"
    error = TunerReading(state=TunerState.ERROR, error=ErrorKind.PERMISSION_DENIED)
    assert format_reading(error) == "error: Microphone access denied"
    missing = TunerReading(state=TunerState.ERROR, error=ErrorKind.DEVICE_NOT_FOUND)
    assert format_reading(missing) == "error: No audio input device found"


@pytest.mark.parametrize(
    "cents, status",
    [(0, "in tune"), (-5, "in tune"), (6, "close"), (-10, "close"), (11, "sharp"), (-30, "flat")],
)
def test_tuning_status(cents, status):
    assert tuning_status(cents) == status


def test_analyze_ignores_invalid_detector_range(a440_wav, tmp_path, capsys):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "detector.json").write_text(json.dumps({"min_frequency": 2000.0}))
    exit_code = main(["analyze", a440_wav, "--config-dir", str(config_dir)])
    assert exit_code == 0
    assert "A4" in capsys.readouterr().out


def test_analyze_ignores_invalid_frame_size(a440_wav, tmp_path, capsys):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "audio_input.json").write_text(json.dumps({"frame_size": -1}))
    assert main(["analyze", a440_wav, "--config-dir", str(config_dir)]) == 0
    assert "A4" in capsys.readouterr().out


def test_analyze_rejects_zero_hop(a440_wav, tmp_path, capsys):
    exit_code = main(["analyze", a440_wav, "--hop-size", "0", "--config-dir", str(tmp_path)])
    assert exit_code == 1
    assert "must be positive" in capsys.readouterr().err


def test_analyze_tiny_frame_size(tmp_path, capsys):
    path = tmp_path / "short.wav"
    sf.write(str(path), np.zeros(64), 48000)
    exit_code = main(["analyze", str(path), "--frame-size", "3", "--config-dir", str(tmp_path)])
    assert exit_code == 0
    assert "No notes detected" in capsys.readouterr().out


def test_listen_rejects_invalid_sample_rate(tmp_path, capsys):
    exit_code = main(["listen", "--sample-rate", "0", "--config-dir", str(tmp_path)])
    assert exit_code == 1
    assert "Invalid setting" in capsys.readouterr().err
