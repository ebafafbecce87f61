"""Type definitions for the Pivotal Tracker to Jira migration.

This module contains the configuration shapes and literal types used
throughout the migration process.
"""

from pathlib import Path
from typing import Literal, NotRequired, TypedDict

type Record = dict[str, str]
type IssueMapping = dict[str, str]
type StatusMapping = dict[str, str]
type UserMapping = dict[str, str]

type ConfigValue = str | int | bool | dict[str, str]


class JiraConfig(TypedDict):
    """Configuration for the Jira client."""

    url: str
    email: str
    api_token: str
    project_key: str
    story_point_field: str
    verify_ssl: bool
    request_timeout: int


type LogLevel = Literal[
    "DEBUG",
    "INFO",
    "NOTICE",
    "WARNING",
    "ERROR",
    "CRITICAL",
    "SUCCESS",
]


class MigrationConfig(TypedDict):
    """Configuration for the migration."""

    log_level: LogLevel
    max_concurrent: int
    pivotal_csv: str
    jira_csv: str
    attachments_folder: str
    user_mapping_file: str
    status_mapping: StatusMapping
    rate_limit_backoff: float
    skip_completed: bool
    log_file: NotRequired[str]


class Config(TypedDict):
    """Configuration for the config loader."""

    jira: JiraConfig
    migration: MigrationConfig


type PhaseName = Literal["convert", "import", "attachments"]

type DirType = Literal[
    "root",
    "logs",
]

type PathLike = str | Path
