"""Configuration management for hackathon account automation.

This module handles loading the account list configuration (YAML or JSON),
validating its top-level structure, applying defaults and supporting
environment variable overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


DEFAULT_ASSUME_ROLE_NAME = "OrganizationAccountAccessRole"
DEFAULT_REGION = "ap-south-1"
DEFAULT_TEMPLATES_DIR = "cloudformation"
DEFAULT_ACCOUNT_DELAY_SECONDS = 2.0

AUTO_DETECT_PATHS = ("accounts.yaml", "config/accounts.json", "config/accounts.yaml")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Configuration:
    """Account list configuration with YAML/JSON loading and validation.

    The file has the shape::

        cloudTeamEmail: cloud-team@example.com
        assumeRoleName: OrganizationAccountAccessRole
        region: ap-south-1
        accounts:
          - teamName: team-01
            accountId: "111111111111"
            budgetLimit: 500
            teamEmail: team01@example.com

    Per-account validation is done by AccountIterator; this class only
    checks the top-level structure.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects accounts.yaml or config/accounts.json.

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = {}
        self._config_path = self._resolve_config_path(config_path)
        self._load_configuration()
        self._apply_environment_overrides()
        self._validate_configuration()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object to configuration file

        Raises:
            ConfigurationError: When configuration file not found
        """
        if config_path:
            path = Path(config_path)
        else:
            candidates = [Path(p) for p in AUTO_DETECT_PATHS]
            path = next((p for p in candidates if p.exists()), candidates[0])

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}. "
                "Please create an account configuration file or specify a valid path."
            )

        return path

    def _load_configuration(self) -> None:
        """Load configuration from YAML or JSON file.

        Raises:
            ConfigurationError: When the file cannot be read or parsed
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML/JSON in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )
        self._config = loaded

    def _validate_configuration(self) -> None:
        """Validate configuration has required top-level fields.

        Raises:
            ConfigurationError: When required fields are missing
        """
        if "accounts" not in self._config:
            raise ConfigurationError("Required configuration section 'accounts' is missing")

        if not isinstance(self._config["accounts"], list):
            raise ConfigurationError("Field 'accounts' must be a list")

        email = self._config.get("cloudTeamEmail")
        if not isinstance(email, str) or not email:
            raise ConfigurationError("Required field 'cloudTeamEmail' is missing")

        for key in ("assumeRoleName", "region", "templatesDir"):
            value = self._config.get(key)
            if value is not None and (not isinstance(value, str) or not value):
                raise ConfigurationError(f"Field '{key}' must be a non-empty string")

        delay = self._config.get("accountDelaySeconds")
        if delay is not None:
            if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
                raise ConfigurationError(
                    "Field 'accountDelaySeconds' must be a non-negative number"
                )

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if "AWS_REGION" in os.environ:
            self._config["region"] = os.environ["AWS_REGION"]

        if "AWS_PROFILE" in os.environ:
            self._config["profileName"] = os.environ["AWS_PROFILE"]

    @property
    def config_path(self) -> Path:
        """Path the configuration was loaded from."""
        return self._config_path

    def get_cloud_team_email(self) -> str:
        return self._config["cloudTeamEmail"]

    def get_assume_role_name(self) -> str:
        return self._config.get("assumeRoleName") or DEFAULT_ASSUME_ROLE_NAME

    def get_region(self) -> str:
        return self._config.get("region") or DEFAULT_REGION

    def get_profile_name(self) -> Optional[str]:
        return self._config.get("profileName")

    def get_templates_dir(self) -> Path:
        """Get the CloudFormation templates directory.

        Relative paths are resolved against the configuration file location.

        Returns:
            Absolute path to the templates directory
        """
        templates_dir = Path(self._config.get("templatesDir") or DEFAULT_TEMPLATES_DIR)
        if not templates_dir.is_absolute():
            templates_dir = self._config_path.resolve().parent / templates_dir
        return templates_dir

    def get_account_delay(self) -> float:
        delay = self._config.get("accountDelaySeconds")
        return DEFAULT_ACCOUNT_DELAY_SECONDS if delay is None else float(delay)

    def get_accounts_source(self) -> List[Dict[str, Any]]:
        """Get the raw account entries.

        Returns:
            List of account entries exactly as loaded
        """
        return self._config["accounts"]
