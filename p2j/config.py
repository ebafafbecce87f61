"""Configuration module for the Pivotal Tracker to Jira migration.
Provides a centralized configuration interface using ConfigLoader.
"""

import logging
import threading
from pathlib import Path
from typing import Any

import yaml

from p2j.config_loader import ConfigLoader
from p2j.display import ExtendedLogger, configure_logging
from p2j.type_definitions import Config, DirType, UserMapping

REQUIRED_JIRA_KEYS = ("url", "email", "api_token", "project_key")

root_dir = Path(__file__).parent.parent
var_dir = root_dir / "var"

var_dirs: dict[DirType, Path] = {
    "root": var_dir,
    "logs": var_dir / "logs",
}

_config: Config | None = None
_config_lock = threading.Lock()


def load_config(config_file: Path | None = None, *, reload: bool = False) -> Config:
    """Load the configuration once and hand the same dict out afterwards.

    Args:
        config_file: Optional YAML file replacing config/config.yaml
        reload: Discard any cached configuration first

    Returns:
        The merged configuration (YAML, .env files, P2J_* variables)

    """
    global _config
    with _config_lock:
        if _config is None or reload or config_file is not None:
            _config = ConfigLoader(config_file).get_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration. Used by tests."""
    global _config
    with _config_lock:
        _config = None


def get_path(path_type: DirType) -> Path:
    """Get a specific path from var_dirs."""
    if path_type not in var_dirs:
        msg = f"Invalid path type: {path_type}"
        raise ValueError(msg)

    return var_dirs[path_type]


def setup_logging(config: Config) -> ExtendedLogger:
    """Configure rich logging from the migration section and return the run logger."""
    migration_config = config["migration"]
    log_file = migration_config.get("log_file") or str(get_path("logs") / "migration.log")
    return configure_logging(migration_config.get("log_level", "INFO"), log_file)


def validate_config(
    config: Config,
    logger: logging.Logger | ExtendedLogger,
    *,
    require_jira: bool = True,
) -> bool:
    """Validate that all required configuration values are set.

    Args:
        config: Configuration to check
        logger: Logger receiving one error line per problem
        require_jira: Whether Jira credentials are needed for this run

    Returns:
        True when the configuration is usable

    """
    problems: list[str] = []

    if require_jira:
        jira_config = config["jira"]
        missing = [
            f"P2J_JIRA_{key.upper()}" for key in REQUIRED_JIRA_KEYS if not jira_config.get(key)
        ]
        if missing:
            problems.append(f"Missing required settings: {', '.join(missing)}")

    max_concurrent = config["migration"].get("max_concurrent")
    if not isinstance(max_concurrent, int) or isinstance(max_concurrent, bool) or max_concurrent < 1:
        problems.append(f"max_concurrent must be an integer >= 1 (got {max_concurrent!r})")

    for problem in problems:
        logger.error(problem)

    return not problems


def update_from_cli_args(config: Config, args: Any, logger: logging.Logger | ExtendedLogger) -> None:
    """Update migration configuration from CLI arguments.

    Args:
        config: Configuration to update in place
        args: An object containing CLI arguments (typically from argparse)
        logger: Logger for the applied overrides

    """
    migration_config = config["migration"]

    concurrent = getattr(args, "concurrent", None)
    if concurrent is not None and concurrent > 0:
        migration_config["max_concurrent"] = concurrent
        logger.info("Max concurrent set to %d", concurrent)

    for arg_name, key in (
        ("input", "pivotal_csv"),
        ("output", "jira_csv"),
        ("csv", "jira_csv"),
        ("folder", "attachments_folder"),
    ):
        value = getattr(args, arg_name, None)
        if value:
            migration_config[key] = value  # type: ignore[literal-required]
            logger.info("Using %s: %s", key, value)

    if getattr(args, "skip_completed", False):
        migration_config["skip_completed"] = True
        logger.debug("Setting skip_completed=True from CLI arguments")


def load_user_mapping(path: str | Path, logger: logging.Logger | ExtendedLogger) -> UserMapping:
    """Load the Pivotal person -> Jira account id table.

    A missing file means "map nobody": every person ends up in the description.
    """
    mapping_path = Path(path)
    if not mapping_path.is_absolute() and not mapping_path.exists():
        candidate = root_dir / mapping_path
        if candidate.exists():
            mapping_path = candidate

    try:
        with mapping_path.open("r", encoding="utf-8") as mapping_file:
            data = yaml.safe_load(mapping_file) or {}
    except FileNotFoundError:
        logger.warning("User mapping file not found: %s (no users will be mapped)", mapping_path)
        return {}

    if not isinstance(data, dict):
        logger.warning("User mapping file %s is not a mapping; ignoring it", mapping_path)
        return {}

    mapping = {str(source): str(target) for source, target in data.items() if source and target}
    logger.debug("Loaded %d user mappings from %s", len(mapping), mapping_path)
    return mapping
