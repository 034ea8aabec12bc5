import json
from pathlib import Path

import pytest

from pyenvman.core.config_manager import ConfigManager, atomic_save_json, get_default_home
from pyenvman.core.errors import ConfigError


def test_layout_follows_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYENVMAN_HOME", str(tmp_path / "h"))
    monkeypatch.setenv("PYENVMAN_ENV_DIR", str(tmp_path / "envs"))

    manager = ConfigManager()

    assert get_default_home() == tmp_path / "h"
    assert manager.registry_file == tmp_path / "h" / "environments.json"
    assert manager.catalog_file == tmp_path / "h" / "version.config"
    assert manager.settings_file == tmp_path / "h" / "settings.json"
    assert manager.env_dir == tmp_path / "envs"


def test_env_dir_defaults_under_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PYENVMAN_ENV_DIR", raising=False)

    assert ConfigManager(home=tmp_path).env_dir == tmp_path / "python_env"


def test_missing_settings_use_defaults(config: ConfigManager) -> None:
    assert config.get("min_python_version") == "3.6"
    assert config.get_source_url("3.11.10") == "https://www.python.org/ftp/python/3.11.10/Python-3.11.10.tgz"
    assert config.get_build_jobs() >= 1


def test_settings_are_merged_over_defaults(config: ConfigManager) -> None:
    config.settings_file.write_text(json.dumps({"build_jobs": 3}), encoding="utf-8")

    settings = config.load_settings()

    assert settings["build_jobs"] == 3
    assert settings["request_timeout"] == 30
    assert config.get_build_jobs() == 3


@pytest.mark.parametrize("content", ["{broken", json.dumps({"build_jobs": "many"}), json.dumps([1, 2])])
def test_invalid_settings_fall_back_to_defaults(config: ConfigManager, content: str) -> None:
    config.settings_file.write_text(content, encoding="utf-8")

    assert config.load_settings() == ConfigManager.get_builtin_defaults()


def test_validate_rejects_bad_values(config: ConfigManager) -> None:
    settings = config.get_builtin_defaults()
    settings["build_jobs"] = True
    with pytest.raises(ConfigError):
        config.validate_settings(settings)

    settings["build_jobs"] = -1
    with pytest.raises(ConfigError):
        config.validate_settings(settings)

    del settings["build_jobs"]
    with pytest.raises(ConfigError):
        config.validate_settings(settings)


def test_save_settings_is_atomic_and_reloadable(config: ConfigManager) -> None:
    settings = config.get_builtin_defaults()
    settings["max_python_version"] = "3.13"

    config.save_settings(settings)

    assert ConfigManager(home=config.home).get("max_python_version") == "3.13"
    assert [p.name for p in config.home.iterdir() if p.name.endswith(".tmp")] == []


def test_atomic_save_json_replaces_whole_file(tmp_path: Path) -> None:
    target = tmp_path / "data.json"
    target.write_text("old", encoding="utf-8")

    atomic_save_json(target, {"环境": 1})

    assert json.loads(target.read_text(encoding="utf-8")) == {"环境": 1}
