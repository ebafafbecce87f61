"""Configuration module for Pivotal Tracker to Jira migration.

Handles loading and accessing configuration settings.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from p2j.type_definitions import Config, ConfigValue

config_logger = logging.getLogger("config_loader")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

DEFAULT_JIRA_CONFIG: dict[str, Any] = {
    "url": "",
    "email": "",
    "api_token": "",
    "project_key": "",
    "story_point_field": "customfield_10016",
    "verify_ssl": True,
    "request_timeout": 60,
}

DEFAULT_MIGRATION_CONFIG: dict[str, Any] = {
    "log_level": "INFO",
    "max_concurrent": 10,
    "pivotal_csv": "pivotal.csv",
    "jira_csv": "jira_import_ready.csv",
    "attachments_folder": "attachments",
    "user_mapping_file": "config/user_mapping.yaml",
    "status_mapping": {},
    "rate_limit_backoff": 10.0,
    "skip_completed": False,
}

LOG_LEVELS = ("DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL", "SUCCESS")

MIGRATION_PATH_KEYS = (
    "pivotal_csv",
    "jira_csv",
    "attachments_folder",
    "user_mapping_file",
    "log_file",
)


def is_test_environment() -> bool:
    """Detect if code is running in a test environment.

    This checks for environment variables that would indicate pytest is running.

    Returns:
        bool: True if running in a test environment, False otherwise

    """
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True

    return os.environ.get("P2J_TEST_MODE", "").lower() in ("true", "1", "yes")


class ConfigLoader:
    """Loads and provides access to configuration settings from YAML files and environment variables."""

    def __init__(
        self,
        config_file_path: Path | None = None,
        *,
        load_env_files: bool = True,
    ) -> None:
        """Initialize the configuration loader.

        Args:
            config_file_path (Path): Path to the YAML configuration file
            load_env_files (bool): Whether to read .env files before applying overrides

        """
        if load_env_files:
            self._load_environment_configuration()

        self.config: Config = self._load_yaml_config(config_file_path or DEFAULT_CONFIG_PATH)

        # Fill in defaults for anything the YAML file left out
        jira_section = {**DEFAULT_JIRA_CONFIG, **(self.config.get("jira") or {})}
        migration_section = {**DEFAULT_MIGRATION_CONFIG, **(self.config.get("migration") or {})}
        self.config["jira"] = jira_section  # type: ignore[typeddict-item]
        self.config["migration"] = migration_section  # type: ignore[typeddict-item]

        self._apply_environment_overrides()

        self.config["jira"]["url"] = str(self.config["jira"]["url"]).rstrip("/")

    def _load_environment_configuration(self) -> None:
        """Load environment variables from .env files based on execution context.

        The loading order respects precedence:
        - .env (base config for all environments)
        - .env.local (local development overrides, if present)
        - .env.test (test-specific config, if in test environment)

        Later files override values from earlier files.
        """
        load_dotenv(".env")
        config_logger.debug("Loaded base environment from .env")

        if Path(".env.local").exists():
            load_dotenv(".env.local", override=True)
            config_logger.debug("Loaded local overrides from .env.local")

        if is_test_environment() and Path(".env.test").exists():
            load_dotenv(".env.test", override=True)
            config_logger.debug("Loaded test environment from .env.test")

    def _load_yaml_config(self, config_file_path: Path) -> Config:
        """Load configuration from YAML file.

        Args:
            config_file_path (Path): Path to the YAML configuration file

        Returns:
            dict: Configuration settings

        """
        try:
            with config_file_path.open("r", encoding="utf-8") as config_file:
                config: Config = yaml.safe_load(config_file) or {}  # type: ignore[assignment]
                return config
        except FileNotFoundError:
            config_logger.exception("Config file not found: %s", config_file_path)
            raise

    def _apply_environment_overrides(self) -> None:
        """Override configuration settings with environment variables."""
        for env_var, env_value in os.environ.items():
            if not env_var.startswith("P2J_"):
                continue

            match env_var.split("_"):
                case ["P2J", "LOG", "LEVEL"]:
                    log_level = env_value.upper()
                    if log_level in LOG_LEVELS:
                        self.config["migration"]["log_level"] = log_level  # type: ignore[typeddict-item]
                    config_logger.debug("Applied log level: %s", log_level)

                # P2J_JIRA_CSV is a file path, not a Jira connection setting
                case ["P2J", *rest] if "_".join(rest).lower() in MIGRATION_PATH_KEYS:
                    key = "_".join(rest).lower()
                    self.config["migration"][key] = env_value  # type: ignore[literal-required]
                    config_logger.debug("Applied migration path: %s=%s", key, env_value)

                case ["P2J", "JIRA", *rest] if rest:
                    key = "_".join(rest).lower()
                    if key in ("url", "email", "api_token", "project_key", "story_point_field"):
                        # Credentials and keys stay strings even when they look numeric
                        self.config["jira"][key] = env_value  # type: ignore[literal-required]
                    else:
                        self.config["jira"][key] = self._convert_value(env_value)  # type: ignore[literal-required]
                    config_logger.debug("Applied Jira config: %s", key)

                case ["P2J", "MAX", "CONCURRENT"]:
                    try:
                        self.config["migration"]["max_concurrent"] = int(env_value)
                        config_logger.debug("Applied max concurrent: %s", env_value)
                    except ValueError:
                        config_logger.warning(
                            "Ignoring invalid P2J_MAX_CONCURRENT=%r, keeping %s",
                            env_value,
                            self.config["migration"]["max_concurrent"],
                        )

                case ["P2J", "RATE", "LIMIT", "BACKOFF"]:
                    try:
                        self.config["migration"]["rate_limit_backoff"] = float(env_value)
                    except ValueError:
                        config_logger.warning("Ignoring invalid P2J_RATE_LIMIT_BACKOFF=%r", env_value)

                case ["P2J", "SKIP", "COMPLETED"]:
                    self.config["migration"]["skip_completed"] = env_value.lower() in (
                        "true", "yes", "y", "1",
                    )

    def _convert_value(self, value: str) -> ConfigValue:
        """Convert string value to appropriate type."""
        if value.isdigit():
            return int(value)

        match value.lower():
            case "true" | "yes" | "y":
                return True
            case "false" | "no" | "n":
                return False
            case _:
                return value

    def get_config(self) -> Config:
        """Get the complete configuration dictionary."""
        return self.config
