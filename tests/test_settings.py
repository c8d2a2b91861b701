import os
import sys

import pytest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, db_path_from_env, settings_path_from_env, log_level_from_env
from db import SettingsRepository
from settings_schema import DEFAULT_SETTINGS, validate_settings


def test_defaults_written_to_yaml(tmp_path):
    yaml_file = tmp_path / "settings.yaml"
    repo = SettingsRepository(str(tmp_path / "s.db"), str(yaml_file))
    data = yaml.safe_load(yaml_file.read_text())
    assert set(data) == set(DEFAULT_SETTINGS)
    assert repo.get_float("balance_threshold", 0) == 0.5
    assert repo.get_int("default_suggestion_limit", 0) == 5
    assert repo.get_pairs("complementary_pairs") == [
        ("chest", "back"),
        ("legs", "core"),
        ("shoulders", "arms"),
    ]


def test_yaml_edits_are_picked_up(tmp_path):
    yaml_file = tmp_path / "settings.yaml"
    repo = SettingsRepository(str(tmp_path / "s.db"), str(yaml_file))
    data = yaml.safe_load(yaml_file.read_text())
    data["deload_factor"] = 0.85
    yaml_file.write_text(yaml.safe_dump(data))
    assert repo.get_float("deload_factor", 0.9) == 0.85


def test_invalid_yaml_values_rejected(tmp_path):
    yaml_file = tmp_path / "settings.yaml"
    yaml_file.write_text(yaml.safe_dump({"balance_threshold": 3}))
    with pytest.raises(ValueError):
        SettingsRepository(str(tmp_path / "s.db"), str(yaml_file))


def test_set_text_validates_before_writing(tmp_path):
    repo = SettingsRepository(str(tmp_path / "s.db"), str(tmp_path / "settings.yaml"))
    with pytest.raises(ValueError):
        repo.set_text("complementary_pairs", "chest-back")
    with pytest.raises(ValueError):
        repo.set_float("rank_high_cutoff", 0)
    assert repo.get_text("complementary_pairs", "") == DEFAULT_SETTINGS["complementary_pairs"]
    repo.set_text("canonical_muscle_groups", " chest , back ")
    assert repo.get_list("canonical_muscle_groups") == ["chest", "back"]


def test_yaml_config_round_trip(tmp_path):
    cfg = YamlConfig(str(tmp_path / "nested" / "cfg.yaml"))
    assert cfg.load() == {}
    cfg.save({"b": 1, "a": "x"})
    assert cfg.load() == {"a": "x", "b": 1}


def test_yaml_config_requires_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        YamlConfig(str(path)).load()


def test_validate_settings():
    validate_settings(dict(DEFAULT_SETTINGS))
    with pytest.raises(ValueError):
        validate_settings({"default_lookback_days": 0})


def test_environment(monkeypatch):
    monkeypatch.setenv("PROGRESSION_DB", "/tmp/p.db")
    monkeypatch.setenv("PROGRESSION_SETTINGS", "/tmp/p.yaml")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert db_path_from_env() == "/tmp/p.db"
    assert settings_path_from_env() == "/tmp/p.yaml"
    assert log_level_from_env() == 10
    monkeypatch.setenv("LOG_LEVEL", "nonsense")
    assert log_level_from_env() == 20


def test_unknown_keys_rejected(tmp_path):
    yaml_file = tmp_path / "settings.yaml"
    repo = SettingsRepository(str(tmp_path / "s.db"), str(yaml_file))
    with pytest.raises(ValueError, match="favourite_colour"):
        repo.set_text("favourite_colour", "blue")
    assert "favourite_colour" not in repo.all_settings()
    assert "favourite_colour" not in yaml.safe_load(yaml_file.read_text())
    with pytest.raises(ValueError):
        validate_settings({"favourite_colour": "blue"})


def test_unknown_yaml_keys_rejected(tmp_path):
    yaml_file = tmp_path / "settings.yaml"
    yaml_file.write_text(yaml.safe_dump({"balance_threshold": 0.5, "typo_threshold": 1}))
    with pytest.raises(ValueError):
        SettingsRepository(str(tmp_path / "s.db"), str(yaml_file))


def test_non_finite_settings_rejected(tmp_path):
    repo = SettingsRepository(str(tmp_path / "s.db"), str(tmp_path / "settings.yaml"))
    with pytest.raises(ValueError):
        repo.set_text("deload_factor", "nan")
    assert repo.get_float("deload_factor", 0) == 0.9
