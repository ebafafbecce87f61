"""Import converted records into Jira as issues.

Each record runs through a sequential workflow on the bounded runner:
create the issue, then set story points, status and comment. Only the
create step decides the record's outcome; the later steps are logged as
warnings when they fail. The ledger is rewritten once, after every record
has finished.
"""

import logging
import re

from p2j.clients.exceptions import ClientError
from p2j.clients.jira_client import JiraClient
from p2j.migrations.base_migration import BasePhase
from p2j.models import MigrationError, Outcome, PhaseResult
from p2j.type_definitions import Record
from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import (
    ERROR_COLUMN,
    ERROR_FLAG_SET,
    ERROR_KEY,
    SOURCE_ID_COLUMN,
    TARGET_KEY_COLUMN,
    CsvRecordStore,
)

DEFAULT_ISSUE_TYPE = "Task"

ISSUE_TYPE_MAPPING = {
    "bug": "Bug",
    "feature": "feature",
    "story": "feature",
    "chore": "chore",
    "epic": "Epic",
    "release": "release",
}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def map_issue_type(source_type: str) -> str:
    """Map a Pivotal story type to a Jira issue type name (case-insensitive)."""
    return ISSUE_TYPE_MAPPING.get(source_type.strip().lower(), DEFAULT_ISSUE_TYPE)


def parse_story_points(value: str) -> int:
    """Return the leading integer of ``value`` ("3.0" -> 3), 0 if there is none."""
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else 0


def split_labels(value: str) -> list[str]:
    return [label.strip() for label in value.split(",") if label.strip()]


def build_summary(record: Record) -> str:
    return f"[{record.get(SOURCE_ID_COLUMN, '')}] {record.get('Title') or 'No Title'}"


def is_completed(record: Record) -> bool:
    """Whether a previous run created the issue for this row."""
    issue_key = record.get(TARGET_KEY_COLUMN, "")
    return bool(issue_key) and issue_key != ERROR_KEY and record.get(ERROR_COLUMN) != ERROR_FLAG_SET


class IssueImportMigration(BasePhase):
    """Create one Jira issue per ledger row and merge the keys back."""

    name = "import"
    title = "Issue import"

    def __init__(
        self,
        client: JiraClient,
        store: CsvRecordStore,
        runner: BoundedConcurrencyRunner[Record],
        logger: logging.Logger,
        *,
        skip_completed: bool = False,
    ) -> None:
        """Initialize the import phase.

        Args:
            client: Jira client shared by all workers
            store: Ledger access
            runner: Bounded pool the per-record workflows run on
            logger: Phase logger
            skip_completed: Leave rows that already have an issue key alone

        """
        super().__init__(logger)
        self.client = client
        self.store = store
        self.runner = runner
        self.skip_completed = skip_completed

    def _run(self, result: PhaseResult) -> None:
        records = self.store.read_records()
        # Both ledger columns must exist before any issue is created
        missing = [c for c in (SOURCE_ID_COLUMN, TARGET_KEY_COLUMN) if c not in records[0]]
        if missing:
            msg = f"Required columns missing in {self.store.jira_csv}: {', '.join(missing)}"
            raise MigrationError(msg)

        pending: list[Record] = []
        for record in records:
            if self.skip_completed and is_completed(record):
                result.skipped_count += 1
                continue
            if record.get(ERROR_COLUMN) == ERROR_FLAG_SET:
                self.logger.info(
                    "Record %s: reprocessing previously failed record", record[SOURCE_ID_COLUMN],
                )
            pending.append(record)

        if result.skipped_count:
            self.logger.info("Skipping %d already imported records", result.skipped_count)
        self.logger.info("Importing %d records", len(pending))

        outcomes = self.runner.run(
            pending,
            self.import_record,
            item_id=lambda record: record.get(SOURCE_ID_COLUMN, ""),
        )
        result.record_outcomes(outcomes)
        result.total_count += result.skipped_count

        if outcomes:
            self.store.update_keys_with_error_flags(outcomes)

        self.logger.info(
            "Import summary: success=%d, failed=%d",
            result.success_count,
            result.failed_count,
        )
        result.details["ledger"] = str(self.store.jira_csv)

    def import_record(self, record: Record) -> Outcome:
        """Run the create / story points / status / comment workflow for one row."""
        source_id = record.get(SOURCE_ID_COLUMN, "")

        try:
            issue_key = self.client.create_issue(
                build_summary(record),
                record.get("Description", ""),
                split_labels(record.get("Labels", "")),
                map_issue_type(record.get("Type", "")),
                reporter=record.get("Reporter", ""),
                assignee=record.get("Assignee", ""),
            )
        except ClientError as e:
            self.logger.error("Record %s: issue creation failed: %s", source_id, e)
            return Outcome.failure(source_id, str(e))

        self.logger.info("Record %s: created issue %s", source_id, issue_key)

        points = parse_story_points(record.get("Story Points", ""))
        if points > 0:
            try:
                self.client.set_story_points(issue_key, points)
            except ClientError as e:
                self.logger.warning("Issue %s: story point update failed: %s", issue_key, e)

        status = record.get("JIRA Status", "")
        if status:
            try:
                self.client.apply_status(issue_key, status)
            except ClientError as e:
                self.logger.warning("Issue %s: status update failed: %s", issue_key, e)

        comment = record.get("Comment", "")
        if comment:
            try:
                self.client.add_comment(issue_key, comment)
            except ClientError as e:
                self.logger.warning("Issue %s: adding comment failed: %s", issue_key, e)
            else:
                self.logger.debug("Issue %s: comment added", issue_key)

        return Outcome.success(source_id, issue_key)
