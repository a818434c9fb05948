from pathlib import Path

import pytest

from livescan.core.config import settings as cfg


def test_load_settings_reads_updated_file(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "scanner.yml"
    conf_path.write_text("interval_ms: 300\npreferred_decoder: zxing\n", encoding="utf-8")
    monkeypatch.setenv("LVS_CONFIG", str(conf_path))

    first = cfg.load_settings()
    assert first.interval_ms == 300
    assert first.preferred_decoder == "zxing"

    conf_path.write_text("interval_ms: 500\n", encoding="utf-8")

    second = cfg.load_settings()
    assert second.interval_ms == 500
    assert second.preferred_decoder == "native"


def test_env_overrides_yaml(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "scanner.yml"
    conf_path.write_text("interval_ms: 300\nresult_ttl_ms: 5000\n", encoding="utf-8")
    monkeypatch.setenv("LVS_CONFIG", str(conf_path))
    monkeypatch.setenv("LVS_INTERVAL_MS", "125")

    settings = cfg.load_settings()
    assert settings.interval_ms == 125
    assert settings.result_ttl_ms == 5000


def test_missing_config_file_uses_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("LVS_CONFIG", str(tmp_path / "missing.yml"))
    settings = cfg.load_settings()
    assert settings.interval_ms == 250
    assert settings.result_ttl_ms == 8000
    assert settings.auto_fallback is True


@pytest.mark.parametrize("value", ["auto", "", "None"])
def test_preferred_decoder_auto_means_no_preference(value):
    assert cfg.ScannerSettings(preferred_decoder=value).preferred_decoder is None


def test_preferred_decoder_validation():
    assert cfg.ScannerSettings(preferred_decoder=" ZXing ").preferred_decoder == "zxing"
    with pytest.raises(ValueError):
        cfg.ScannerSettings(preferred_decoder="quagga")


def test_duration_validation():
    with pytest.raises(ValueError):
        cfg.ScannerSettings(interval_ms=0)
    with pytest.raises(ValueError):
        cfg.ScannerSettings(result_ttl_ms=-1)


def test_dimension_and_ratio_validation():
    with pytest.raises(ValueError):
        cfg.ScannerSettings(display_width=0)
    with pytest.raises(ValueError):
        cfg.ScannerSettings(device_pixel_ratio=0)
    with pytest.raises(ValueError):
        cfg.ScannerSettings(camera_index=-1)


def test_validate_assignment():
    settings = cfg.ScannerSettings()
    with pytest.raises(ValueError):
        settings.interval_ms = 0


def test_settings_to_dict_round_trips_fields():
    data = cfg.settings_to_dict(cfg.ScannerSettings(interval_ms=400))
    assert data["interval_ms"] == 400
    assert cfg.ScannerSettings(**data).interval_ms == 400
