"""Convert the Pivotal Tracker export into the Jira import CSV.

Pure transformation: no network access and no concurrency.
"""

import logging
from datetime import datetime

from p2j.migrations.base_migration import BasePhase
from p2j.models import PhaseResult
from p2j.type_definitions import Record, StatusMapping
from p2j.utils.csv_store import CsvRecordStore

# Formats seen in Pivotal exports, tried in order
PIVOTAL_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%y %I:%M %p",
    "%d/%b/%y %I:%M %p",
    "%b %d, %Y",
)
JIRA_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.000+0000"

PROGRESS_INTERVAL = 100


def convert_date(value: str, logger: logging.Logger | None = None) -> str:
    """Convert a Pivotal date to Jira's format, or return "" if it cannot be parsed."""
    if not value:
        return ""

    for date_format in PIVOTAL_DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, date_format)
        except ValueError:
            continue
        return parsed.strftime(JIRA_DATE_FORMAT)

    if logger is not None:
        logger.warning("Could not parse date: %s", value)
    return ""


def parse_estimate(value: str) -> int:
    """Whole-number estimate, 0 when empty or not an integer."""
    try:
        return int(value.strip())
    except ValueError:
        return 0


class ConvertMigration(BasePhase):
    """Turn Pivotal rows into Jira ledger rows and write the ledger."""

    name = "convert"
    title = "CSV conversion"

    def __init__(
        self,
        store: CsvRecordStore,
        status_mapping: StatusMapping,
        logger: logging.Logger,
    ) -> None:
        super().__init__(logger)
        self.store = store
        self.status_mapping = {k.lower(): v for k, v in status_mapping.items()}

    def convert_record(self, record: Record) -> Record:
        """Map one Pivotal row to the Jira column set."""
        return {
            "JIRA Issue ID": record.get("Id", ""),
            "Title": record.get("Title", ""),
            "Description": record.get("Description", ""),
            "Labels": record.get("Labels", ""),
            "Type": record.get("Type", ""),
            "JIRA Status": self.status_mapping.get(record.get("Current State", "").lower(), ""),
            "Story Points": str(parse_estimate(record.get("Estimate", ""))),
            "Created Date": convert_date(record.get("Created at", ""), self.logger),
            "Resolved Date": convert_date(record.get("Accepted at", ""), self.logger),
            "Assignee": record.get("Owned By", ""),
            "Reporter": record.get("Requested By", ""),
            "Comment": record.get("Comment", ""),
            "JIRA Issue Key": "",
        }

    def _run(self, result: PhaseResult) -> None:
        self.logger.info("Reading Pivotal CSV %s", self.store.pivotal_csv)
        records = self.store.read_source_records()
        result.total_count = len(records)

        converted: list[Record] = []
        for index, record in enumerate(records):
            converted.append(self.convert_record(record))
            if index > 0 and index % PROGRESS_INTERVAL == 0:
                self.logger.info("Processing... %d/%d rows done", index, len(records))

        self.store.write_target_records(converted)
        self.logger.info("Wrote Jira CSV %s", self.store.jira_csv)

        result.success_count = len(converted)
        result.success = True
        result.details["output"] = str(self.store.jira_csv)
