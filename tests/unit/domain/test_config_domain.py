from __future__ import annotations

"""
Unit tests for configuration defaults and JSON persistence.
"""

import json
import os

import pytest

from scribewatch.domain import constants as const
from scribewatch.domain.config import (
    ConfigurationError,
    get_config_file_path,
    get_default_config,
    load_config,
    save_config,
)


def test_defaults_live_under_user_data_dir(isolated_user_data_dir) -> None:
    defaults = get_default_config()

    for key in ("watch_path", "output_path", "completed_path", "failed_path", "log_path"):
        assert defaults[key].startswith(str(isolated_user_data_dir))
    assert defaults["language"] == "en"
    assert defaults["model"] == "base"
    assert defaults["check_interval"] == 5
    assert defaults["timeout_seconds"] == 600
    assert defaults["max_retries"] == 2
    assert defaults["extensions"] == const.DEFAULT_AUDIO_EXTENSIONS


def test_missing_default_file_yields_defaults() -> None:
    assert load_config() == get_default_config()


def test_explicit_missing_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "absent.json"))


def test_save_then_load_merges_over_defaults() -> None:
    save_config({"language": "fr", "max_retries": 4})

    with open(get_config_file_path(), "r", encoding="utf-8") as f:
        on_disk = json.load(f)
    assert on_disk["version"] == const.CURRENT_CONFIG_VERSION

    loaded = load_config()
    assert loaded["language"] == "fr"
    assert loaded["max_retries"] == 4
    assert loaded["model"] == "base"
    assert "version" not in loaded


def test_corrupt_file_is_fatal(tmp_path) -> None:
    target = tmp_path / "broken.json"
    target.write_text("{ not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(target))


def test_non_object_file_is_fatal(tmp_path) -> None:
    target = tmp_path / "list.json"
    target.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(target))


def test_config_file_path_is_json() -> None:
    assert os.path.basename(get_config_file_path()) == "config.json"
