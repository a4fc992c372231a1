import json
from pathlib import Path

import pytest

from bypass_verifier.config import (
    DPI_WARN_MAX_KB,
    READINESS_TIMEOUT,
    VerifierConfig,
    load_config,
    save_config,
)
from bypass_verifier.errors import ConfigError


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path / "missing.json")
    assert config.readiness_timeout == READINESS_TIMEOUT
    assert config.dpi_warn_max_kb == DPI_WARN_MAX_KB
    assert not config.game_filter_enabled


def test_file_overrides_defaults(tmp_path):
    path = tmp_path / "appconfig.json"
    path.write_text(json.dumps({"game_filter_enabled": True, "readiness_timeout": 2.5}), encoding="utf-8")
    config = load_config(path)
    assert config.game_filter_enabled
    assert config.readiness_timeout == 2.5


def test_unknown_file_key_is_ignored(tmp_path, caplog):
    path = tmp_path / "appconfig.json"
    path.write_text(json.dumps({"colour": "blue"}), encoding="utf-8")
    load_config(path)
    assert "colour" in caplog.text


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_malformed_file(tmp_path, content):
    path = tmp_path / "appconfig.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_keyword_overrides_win(tmp_path):
    path = tmp_path / "appconfig.json"
    path.write_text(json.dumps({"filter_all_ip": False}), encoding="utf-8")
    config = load_config(path, filter_all_ip=True, app_path=str(tmp_path), report_dir=None)
    assert config.filter_all_ip
    assert config.app_path == tmp_path
    assert config.report_dir is None


def test_unknown_override_rejected():
    with pytest.raises(ConfigError):
        load_config(None, colour="blue")


def test_save_and_reload(tmp_path):
    path = tmp_path / "cfg" / "appconfig.json"
    original = VerifierConfig(app_path=tmp_path, game_filter_enabled=True, report_dir=tmp_path / "r")
    save_config(original, path)
    loaded = load_config(path)
    assert loaded.game_filter_enabled
    assert loaded.app_path == tmp_path
    assert loaded.report_dir == tmp_path / "r"


def test_derived_paths(tmp_path):
    config = VerifierConfig(app_path=tmp_path, engine_executable="nfqws")
    assert config.bin_dir == tmp_path / "bin"
    assert config.lists_dir == tmp_path / "lists"
    assert config.profiles_dir == tmp_path / "profiles"
    assert config.engine_path == tmp_path / "bin" / "nfqws"


def test_report_dir_fallback(tmp_path):
    assert VerifierConfig(report_dir=tmp_path).resolved_report_dir == tmp_path
    assert isinstance(VerifierConfig().resolved_report_dir, Path)
