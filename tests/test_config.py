import json
from dataclasses import replace

import pytest

from artiscan import config
from artiscan.config import ScanSettings, validate_settings


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "config_dir", lambda: tmp_path)
    return tmp_path


def test_missing_file_gives_defaults(config_home):
    assert config.load_scan_settings() == ScanSettings()


def test_saved_settings_are_loaded_back(config_home):
    settings = replace(ScanSettings(), min_rarity=4, max_rows=12, stop_key="f10", profile=True)
    config.save_scan_settings(settings)

    raw = json.loads((config_home / "config.json").read_text(encoding="utf-8"))
    assert raw["version"] == config.CONFIG_VERSION
    assert config.load_scan_settings() == settings


def test_bad_values_fall_back_per_field(config_home):
    payload = {
        "version": 1,
        "scan": {
            "stability_frames": "three",
            "slot_retries": 0,
            "max_rows": -2,
            "debug_ocr": "yes",
            "stop_key": "ESC",
            "recognition_workers": 8,
        },
    }
    (config_home / "config.json").write_text(json.dumps(payload), encoding="utf-8")

    settings = config.load_scan_settings()
    assert settings.stability_frames == 3
    assert settings.slot_retries == 2
    assert settings.max_rows is None
    assert settings.debug_ocr is False
    assert settings.stop_key == "escape"
    assert settings.recognition_workers == 8


def test_inconsistent_file_resets_to_defaults(config_home):
    payload = {"version": 1, "scan": {"min_rarity": 5, "max_rarity": 2}}
    (config_home / "config.json").write_text(json.dumps(payload), encoding="utf-8")
    assert config.load_scan_settings() == ScanSettings()


def test_corrupt_file_gives_defaults(config_home):
    (config_home / "config.json").write_text("{not json", encoding="utf-8")
    assert config.load_scan_settings() == ScanSettings()


def test_reset_writes_defaults(config_home):
    config.save_scan_settings(replace(ScanSettings(), slot_retries=5))
    config.reset_scan_settings()
    assert config.load_scan_settings() == ScanSettings()


@pytest.mark.parametrize(
    "overrides",
    [
        {"stability_frames": 0},
        {"stability_threshold": -1.0},
        {"stability_frames": 5, "stability_max_polls": 4},
        {"stability_frames": 3, "stability_max_polls": 3},
        {"slot_retries": 0},
        {"min_rarity": 0},
        {"max_rarity": 6},
        {"max_rows": 0},
        {"recognition_workers": 0},
    ],
)
def test_validate_settings_rejects(overrides):
    with pytest.raises(ValueError):
        validate_settings(replace(ScanSettings(), **overrides))


def test_save_refuses_invalid_settings(config_home):
    with pytest.raises(ValueError):
        config.save_scan_settings(replace(ScanSettings(), no_progress_limit=0))
    assert not (config_home / "config.json").exists()


def test_setting_names():
    names = config.setting_names()
    assert "stability_frames" in names
    assert "stop_key" in names


def test_max_polls_one_above_stable_frames_is_accepted():
    validate_settings(replace(ScanSettings(), stability_frames=3, stability_max_polls=4))
