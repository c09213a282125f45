"""Unit tests for Configuration Management."""

import json
import os
import tempfile
from pathlib import Path

import pytest
import yaml

from hackathon_baseline.core.config import (
    Configuration,
    ConfigurationError,
    DEFAULT_ASSUME_ROLE_NAME,
    DEFAULT_REGION,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the caller's AWS environment out of these tests."""
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)


def write_config(data, suffix=".yaml"):
    with tempfile.NamedTemporaryFile(mode="w", suffix=suffix, delete=False) as f:
        if suffix == ".json":
            json.dump(data, f)
        else:
            yaml.dump(data, f)
        return f.name


class TestConfiguration:
    """Test cases for Configuration class."""

    def test_load_valid_json_config(self, accounts_source):
        """Test loading a JSON account list."""
        config_path = write_config(
            {"cloudTeamEmail": "cloud@example.com", "accounts": accounts_source},
            suffix=".json",
        )

        try:
            config = Configuration(config_path)
            assert config.get_cloud_team_email() == "cloud@example.com"
            assert config.get_accounts_source() == accounts_source
            assert config.get_assume_role_name() == DEFAULT_ASSUME_ROLE_NAME
            assert config.get_region() == DEFAULT_REGION
            assert config.get_account_delay() == 2.0
        finally:
            os.unlink(config_path)

    def test_load_valid_yaml_config(self, accounts_source):
        """Test loading a YAML account list with explicit settings."""
        config_path = write_config({
            "cloudTeamEmail": "cloud@example.com",
            "assumeRoleName": "HackathonAdmin",
            "region": "eu-west-1",
            "accountDelaySeconds": 0,
            "accounts": accounts_source,
        })

        try:
            config = Configuration(config_path)
            assert config.get_assume_role_name() == "HackathonAdmin"
            assert config.get_region() == "eu-west-1"
            assert config.get_account_delay() == 0.0
        finally:
            os.unlink(config_path)

    def test_missing_config_file(self):
        """Test handling of missing configuration file."""
        with pytest.raises(ConfigurationError) as exc_info:
            Configuration("/nonexistent/accounts.json")

        assert "Configuration file not found" in str(exc_info.value)

    def test_invalid_json(self):
        """Test handling of unparseable content."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            f.write('{"accounts": [')
            config_path = f.name

        try:
            with pytest.raises(ConfigurationError) as exc_info:
                Configuration(config_path)

            assert "Invalid YAML/JSON" in str(exc_info.value)
        finally:
            os.unlink(config_path)

    def test_non_mapping_document(self):
        """Test a top-level list is rejected."""
        config_path = write_config(["not", "a", "mapping"])

        try:
            with pytest.raises(ConfigurationError, match="must contain a mapping"):
                Configuration(config_path)
        finally:
            os.unlink(config_path)

    def test_missing_accounts_section(self):
        """Test validation of missing accounts section."""
        config_path = write_config({"cloudTeamEmail": "cloud@example.com"})

        try:
            with pytest.raises(ConfigurationError) as exc_info:
                Configuration(config_path)

            assert "Required configuration section 'accounts' is missing" in str(exc_info.value)
        finally:
            os.unlink(config_path)

    def test_accounts_not_a_list(self):
        config_path = write_config({"cloudTeamEmail": "cloud@example.com", "accounts": {"a": 1}})

        try:
            with pytest.raises(ConfigurationError, match="must be a list"):
                Configuration(config_path)
        finally:
            os.unlink(config_path)

    def test_missing_cloud_team_email(self, accounts_source):
        config_path = write_config({"accounts": accounts_source})

        try:
            with pytest.raises(ConfigurationError, match="cloudTeamEmail"):
                Configuration(config_path)
        finally:
            os.unlink(config_path)

    def test_negative_account_delay(self, accounts_source):
        config_path = write_config({
            "cloudTeamEmail": "cloud@example.com",
            "accountDelaySeconds": -1,
            "accounts": accounts_source,
        })

        try:
            with pytest.raises(ConfigurationError, match="accountDelaySeconds"):
                Configuration(config_path)
        finally:
            os.unlink(config_path)

    def test_environment_overrides(self, monkeypatch, accounts_source):
        """Test environment variable overrides."""
        config_path = write_config({
            "cloudTeamEmail": "cloud@example.com",
            "region": "ap-south-1",
            "accounts": accounts_source,
        })
        monkeypatch.setenv("AWS_REGION", "us-west-2")
        monkeypatch.setenv("AWS_PROFILE", "hackathon")

        try:
            config = Configuration(config_path)
            assert config.get_region() == "us-west-2"
            assert config.get_profile_name() == "hackathon"
        finally:
            os.unlink(config_path)

    def test_templates_dir_relative_to_config_file(self, tmp_path, accounts_source):
        """Test relative templatesDir resolves against the config location."""
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        config_path = config_dir / "accounts.json"
        config_path.write_text(json.dumps({
            "cloudTeamEmail": "cloud@example.com",
            "templatesDir": "../cloudformation",
            "accounts": accounts_source,
        }))

        config = Configuration(str(config_path))

        assert config.get_templates_dir().resolve() == (tmp_path / "cloudformation").resolve()

    def test_auto_detect_config(self, tmp_path, monkeypatch, accounts_source):
        """Test auto-detection of config/accounts.json."""
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "accounts.json").write_text(json.dumps({
            "cloudTeamEmail": "cloud@example.com",
            "accounts": accounts_source,
        }))
        monkeypatch.chdir(tmp_path)

        config = Configuration()

        assert config.config_path == Path("config/accounts.json")
