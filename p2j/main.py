"""Main entry point for the Pivotal Tracker to Jira migration tool.

Sub-commands:
    migrate      auth check, convert, import and attachment upload
    auth-check   verify the Jira credentials
    convert      Pivotal CSV -> Jira CSV, no Jira access needed
    import       create Jira issues from the Jira CSV and record the keys
    attachments  upload attachment folders to the created issues
"""

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from p2j import __version__
from p2j.clients.jira_client import JiraClient
from p2j.config import (
    load_config,
    load_user_mapping,
    setup_logging,
    update_from_cli_args,
    validate_config,
)
from p2j.config_loader import LOG_LEVELS
from p2j.display import ExtendedLogger, print_phase_summary
from p2j.migration import MigrationOrchestrator
from p2j.models import MigrationError, MigrationResult
from p2j.type_definitions import Config
from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import CsvRecordStore


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", metavar="PATH", help="YAML configuration file")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Log level (overrides P2J_LOG_LEVEL and the config file)",
    )


def _add_concurrent_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--concurrent",
        type=int,
        metavar="N",
        help="Maximum number of concurrent Jira requests",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all sub-commands."""
    parser = argparse.ArgumentParser(
        prog="p2j",
        description="Pivotal Tracker to Jira migration tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Run the whole migration (auth check, convert, import, attachments)",
    )
    mode = migrate_parser.add_mutually_exclusive_group()
    mode.add_argument("--convert-only", action="store_true", help="Only convert the Pivotal CSV")
    mode.add_argument("--import-only", action="store_true", help="Only import issues")
    mode.add_argument(
        "--attachments-only", action="store_true", help="Only upload attachments",
    )
    _add_concurrent_argument(migrate_parser)
    migrate_parser.add_argument(
        "--skip-completed",
        action="store_true",
        help="Do not re-import rows that already have a Jira issue key",
    )
    _add_common_arguments(migrate_parser)

    auth_parser = subparsers.add_parser("auth-check", help="Check the Jira credentials")
    _add_common_arguments(auth_parser)

    convert_parser = subparsers.add_parser("convert", help="Convert the Pivotal CSV to a Jira CSV")
    convert_parser.add_argument("--input", metavar="PATH", help="Pivotal Tracker CSV export")
    convert_parser.add_argument("--output", metavar="PATH", help="Jira CSV to write")
    _add_common_arguments(convert_parser)

    import_parser = subparsers.add_parser("import", help="Create Jira issues from the Jira CSV")
    import_parser.add_argument("--csv", metavar="PATH", help="Jira CSV (ledger) to import")
    _add_concurrent_argument(import_parser)
    import_parser.add_argument(
        "--skip-completed",
        action="store_true",
        help="Do not re-import rows that already have a Jira issue key",
    )
    _add_common_arguments(import_parser)

    attachments_parser = subparsers.add_parser(
        "attachments", help="Upload attachment folders to the imported issues",
    )
    attachments_parser.add_argument("--csv", metavar="PATH", help="Jira CSV with issue keys")
    attachments_parser.add_argument("--folder", metavar="PATH", help="Attachments root folder")
    _add_concurrent_argument(attachments_parser)
    _add_common_arguments(attachments_parser)

    return parser


def build_orchestrator(
    config: Config,
    logger: ExtendedLogger,
    *,
    with_client: bool = True,
) -> MigrationOrchestrator:
    """Create the client, store and runner from the configuration."""
    migration_config = config["migration"]

    client: JiraClient | None = None
    if with_client:
        client = JiraClient(
            config["jira"],
            logger,  # type: ignore[arg-type]
            user_mapping=load_user_mapping(migration_config["user_mapping_file"], logger),
            backoff_seconds=float(migration_config["rate_limit_backoff"]),
        )

    store = CsvRecordStore(
        migration_config["pivotal_csv"],
        migration_config["jira_csv"],
        logger,  # type: ignore[arg-type]
    )
    runner: BoundedConcurrencyRunner = BoundedConcurrencyRunner(
        migration_config["max_concurrent"],
        logger,  # type: ignore[arg-type]
    )
    return MigrationOrchestrator(config, client, store, runner, logger)  # type: ignore[arg-type]


def run_command(
    args: argparse.Namespace,
    orchestrator: MigrationOrchestrator,
    logger: ExtendedLogger,
) -> MigrationResult:
    """Execute one sub-command and return the collected phase results."""
    result = MigrationResult()

    match args.command:
        case "migrate":
            result = orchestrator.run_all(
                convert_only=args.convert_only,
                import_only=args.import_only,
                attachments_only=args.attachments_only,
            )
        case "auth-check":
            orchestrator.check_auth()
            logger.success("Jira authentication OK: %s", orchestrator.config["jira"]["url"])
        case "convert":
            result.add_phase(orchestrator.convert())
        case "import":
            orchestrator.check_auth()
            result.add_phase(orchestrator.import_issues())
        case "attachments":
            orchestrator.check_auth()
            migration_config = orchestrator.config["migration"]
            if not Path(migration_config["jira_csv"]).is_file():
                msg = f"Jira CSV not found: {migration_config['jira_csv']}"
                raise MigrationError(msg)
            if not Path(migration_config["attachments_folder"]).is_dir():
                msg = f"Attachments folder not found: {migration_config['attachments_folder']}"
                raise MigrationError(msg)
            result.add_phase(orchestrator.upload_attachments())
        case _:
            msg = f"Unknown command: {args.command}"
            raise MigrationError(msg)

    return result


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments and execute the appropriate command.

    Exits with 0 when no record or file failed, 1 otherwise.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = load_config(Path(args.config) if args.config else None, reload=True)
    if args.log_level:
        config["migration"]["log_level"] = args.log_level
    logger = setup_logging(config)

    update_from_cli_args(config, args, logger)

    needs_jira = args.command != "convert"
    if not validate_config(config, logger, require_jira=needs_jira):
        logger.error("Invalid configuration, aborting")
        sys.exit(1)

    try:
        orchestrator = build_orchestrator(config, logger, with_client=needs_jira)
        result = run_command(args, orchestrator, logger)
    except KeyboardInterrupt:
        logger.info("Migration interrupted by user")
        sys.exit(1)
    except MigrationError as e:
        logger.error("Migration aborted: %s", e.message)
        sys.exit(1)

    print_phase_summary(result)

    if result.failed_count:
        logger.error("Finished with %d failed items", result.failed_count)
        sys.exit(1)

    logger.success("Finished without failures")
    sys.exit(0)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(1)
    except (FileNotFoundError, PermissionError) as e:
        print(f"File system error: {e}", file=sys.stderr)
        sys.exit(1)
