"""
Tests for configuration loading.
"""

import pytest
import yaml

from sweep_engine.config import SweepConfig, load_config
from sweep_engine.exceptions import ConfigError
from sweep_engine.models import SearchScope


class TestLoadConfig:
    """Test cases for load_config."""

    @pytest.fixture
    def config_data(self):
        return {
            "searchRoots": ["OU=Workstations,DC=corp,DC=local"],
            "searchScope": "oneLevel",
            "inactivityDays": 90,
            "exceptionNames": ["X1", " ", "KIOSK "],
            "quarantinePath": "OU=Quarantine,DC=corp,DC=local",
            "retentionDays": 30,
            "directory": {"mockMode": True, "mockAccounts": [{"name": "PC1", "path": "OU=A,DC=x"}]},
        }

    @pytest.fixture
    def config_file(self, tmp_path, config_data):
        path = tmp_path / "sweep.yaml"
        path.write_text(yaml.safe_dump(config_data), encoding="utf-8")
        return path

    def test_load_camel_case_keys(self, config_file):
        config = load_config(config_file)

        assert config.search_roots == ["OU=Workstations,DC=corp,DC=local"]
        assert config.search_scope == SearchScope.ONE_LEVEL
        assert config.inactivity_days == 90
        assert config.exception_names == {"X1", "KIOSK"}
        assert config.quarantine_path == "OU=Quarantine,DC=corp,DC=local"
        assert config.retention_days == 30
        assert config.directory.mock_mode is True
        assert config.directory.mock_accounts[0]["name"] == "PC1"

    def test_defaults(self, config_file):
        config = load_config(config_file)

        assert config.log_file == "computer_sweep.log"
        assert config.log_max_age_days == 365
        assert config.log_max_lines is None
        assert config.protect_exceptions_in_quarantine is False
        assert config.local_time is True

    def test_utc_timestamps(self, tmp_path, config_data):
        path = tmp_path / "utc.yaml"
        path.write_text(yaml.safe_dump(dict(config_data, localTime=False)), encoding="utf-8")

        assert load_config(path).local_time is False

    def test_overrides_replace_file_values(self, config_file):
        config = load_config(config_file, {"retention_days": 7, "quarantine_path": None})

        assert config.retention_days == 7
        assert config.quarantine_path == "OU=Quarantine,DC=corp,DC=local"

    def test_overrides_only(self):
        config = load_config(None, {
            "search_roots": ["OU=A,DC=x"],
            "inactivity_days": 30,
            "quarantine_path": "OU=Q,DC=x",
            "retention_days": 0,
        })

        assert config.search_scope == SearchScope.SUBTREE
        assert config.exception_names == set()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("searchRoots: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    @pytest.mark.parametrize("key,value", [
        ("searchRoots", []),
        ("searchRoots", ["  "]),
        ("inactivityDays", 0),
        ("retentionDays", -1),
        ("quarantinePath", ""),
        ("searchScope", "everything"),
    ])
    def test_invalid_values(self, tmp_path, config_data, key, value):
        config_data[key] = value
        path = tmp_path / "sweep.yaml"
        path.write_text(yaml.safe_dump(config_data), encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_single_exception_name(self):
        config = SweepConfig(
            search_roots=["OU=A,DC=x"],
            inactivity_days=30,
            quarantine_path="OU=Q,DC=x",
            retention_days=10,
            exception_names="SRV1",
        )

        assert config.exception_names == {"SRV1"}
