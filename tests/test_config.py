"""
Unit tests for config.py
"""

import pytest
import yaml

from config import (
    ReducerConfig,
    create_default_config,
    default_config,
    load_config,
    validate_config,
)


class TestLoadConfig:

    def test_defaults(self):
        config = default_config()
        assert config['reduction']['initial_granularity'] == 2
        assert config['reduction']['quick'] is False
        assert config['reduction']['transform_passes'] == ["ConstantFold"]
        assert config['oracle']['candidate_argument'] == "path"
        assert config['oracle']['query_path'].endswith("query.sql")
        assert config['reporting']['stats_file'] == "stats.csv"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_partial_file_is_filled_with_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({'reduction': {'quick': True}, 'debug': True}))

        config = load_config(str(path))
        assert config['reduction']['quick'] is True
        assert config['reduction']['enable_token_reduction'] is True
        assert config['debug'] is True
        assert config['logging']['log_level'] == "INFO"

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REDUCER_QUERY_PATH", str(tmp_path / "candidate.sql"))
        monkeypatch.setenv("REDUCER_QUICK", "yes")
        monkeypatch.setenv("REDUCER_TIMEOUT", "2.5")

        config = default_config()
        assert config['oracle']['query_path'] == str(tmp_path / "candidate.sql")
        assert config['reduction']['quick'] is True
        assert config['oracle']['timeout'] == 2.5

    def test_invalid_timeout_override_is_ignored(self, monkeypatch):
        monkeypatch.setenv("REDUCER_TIMEOUT", "soon")
        assert default_config()['oracle']['timeout'] is None

    def test_create_default_config_round_trip(self, tmp_path):
        path = tmp_path / "reducer.yaml"
        create_default_config(str(path))
        config = load_config(str(path))
        assert config['reduction'] == ReducerConfig().to_dict()['reduction']


class TestValidateConfig:

    def test_default_config_is_valid(self):
        assert validate_config(default_config())

    def test_existing_test_script(self, shell_script):
        config = default_config()
        config['oracle']['test_script'] = shell_script("exit 1")
        assert validate_config(config)

    @pytest.mark.parametrize("section, key, value", [
        ('reduction', 'initial_granularity', 1),
        ('reduction', 'transform_passes', ["NoSuchPass"]),
        ('oracle', 'candidate_argument', "stdin"),
        ('oracle', 'timeout', 0),
        ('oracle', 'test_script', "/nonexistent/check.sh"),
        ('logging', 'log_level', "LOUD"),
        ('reporting', 'output_dir', ""),
    ])
    def test_invalid_values(self, section, key, value):
        config = default_config()
        config[section][key] = value
        assert not validate_config(config)
