"""CSV-backed record store: the Pivotal export and the resumable Jira ledger.

The ledger is the converted CSV. After an import run every processed row
carries the created issue key (or ``ERROR``) and an ``Error`` flag, so a later
run knows what happened to each record.
"""

import csv
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from p2j.models import MigrationError, Outcome
from p2j.type_definitions import IssueMapping, PathLike, Record

SOURCE_ID_COLUMN = "JIRA Issue ID"
TARGET_KEY_COLUMN = "JIRA Issue Key"
ERROR_COLUMN = "Error"

ERROR_KEY = "ERROR"
ERROR_FLAG_SET = "1"
ERROR_FLAG_CLEAR = "0"

COMMENT_COLUMN = "Comment"
COMMENT_SEPARATOR = "\n\n===========================\n\n"

TARGET_HEADER = [
    SOURCE_ID_COLUMN,
    "Title",
    "Description",
    "Labels",
    "Type",
    "JIRA Status",
    "Story Points",
    "Created Date",
    "Resolved Date",
    "Assignee",
    "Reporter",
    COMMENT_COLUMN,
    TARGET_KEY_COLUMN,
]

# Pivotal descriptions and joined comments easily exceed the csv default
csv.field_size_limit(2**31 - 1)


class CsvRecordStore:
    """Read the Pivotal export and read/merge the Jira ledger CSV."""

    def __init__(
        self,
        pivotal_csv: PathLike,
        jira_csv: PathLike,
        logger: logging.Logger,
    ) -> None:
        """Initialize the store.

        Args:
            pivotal_csv: Path of the Pivotal Tracker export
            jira_csv: Path of the converted CSV that doubles as the ledger
            logger: Logger for warnings about malformed rows

        """
        self.pivotal_csv = Path(pivotal_csv)
        self.jira_csv = Path(jira_csv)
        self.logger = logger

    def _read_table(self, path: Path) -> tuple[list[str], list[list[str]]]:
        """Read a CSV file as header + rows, padding short rows.

        Raises:
            MigrationError: If the file is missing, unreadable, has no data row,
                or a row has more fields than the header

        """
        try:
            with path.open("r", encoding="utf-8-sig", newline="") as csv_file:
                lines = list(csv.reader(csv_file))
        except FileNotFoundError as e:
            msg = f"CSV file not found: {path}"
            raise MigrationError(msg) from e
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            msg = f"Error reading CSV file {path}: {e!s}"
            raise MigrationError(msg) from e

        if len(lines) < 2:
            msg = f"CSV file {path} has insufficient data (need a header and at least one row)"
            raise MigrationError(msg)

        header, rows = lines[0], lines[1:]
        width = len(header)
        for line_number, row in enumerate(rows, start=2):
            if len(row) > width:
                msg = (
                    f"Row {line_number} of {path} has more fields ({len(row)}) "
                    f"than the header ({width})"
                )
                raise MigrationError(msg)
            if len(row) < width:
                self.logger.warning(
                    "Row %d of %s has %d fields, expected %d; padding with empty values",
                    line_number,
                    path,
                    len(row),
                    width,
                )
                row.extend([""] * (width - len(row)))
        return header, rows

    @staticmethod
    def _first_occurrences(header: list[str]) -> dict[str, int]:
        indices: dict[str, int] = {}
        for index, column in enumerate(header):
            indices.setdefault(column, index)
        return indices

    def read_source_records(self) -> list[Record]:
        """Read the Pivotal export.

        Duplicate columns resolve to their first occurrence, except
        ``Comment``: all of its non-empty occurrences are joined.
        """
        header, rows = self._read_table(self.pivotal_csv)
        indices = self._first_occurrences(header)
        comment_indices = [i for i, column in enumerate(header) if column == COMMENT_COLUMN]

        records: list[Record] = []
        for row in rows:
            record = {column: row[index] for column, index in indices.items()}
            if comment_indices:
                comments = [row[i] for i in comment_indices if row[i].strip()]
                record[COMMENT_COLUMN] = COMMENT_SEPARATOR.join(comments)
            records.append(record)

        self.logger.debug("Read %d records from %s", len(records), self.pivotal_csv)
        return records

    def read_records(self, path: PathLike | None = None) -> list[Record]:
        """Read a CSV file (the ledger by default) as a list of records."""
        csv_path = Path(path) if path is not None else self.jira_csv
        header, rows = self._read_table(csv_path)
        indices = self._first_occurrences(header)
        return [{column: row[index] for column, index in indices.items()} for row in rows]

    def write_target_records(self, records: list[Record]) -> None:
        """Write converted records with the fixed Jira column order."""
        if not records:
            msg = "No records to write"
            raise MigrationError(msg)

        self._write_atomically(
            self.jira_csv,
            TARGET_HEADER,
            ([record.get(column, "") for column in TARGET_HEADER] for record in records),
        )
        self.logger.debug("Wrote %d records to %s", len(records), self.jira_csv)

    def load_issue_mapping(self) -> IssueMapping:
        """Return SourceID -> TargetKey for every row with a real issue key."""
        header, rows = self._read_table(self.jira_csv)
        source_index, key_index = self._ledger_columns(header)

        mapping: IssueMapping = {}
        for row in rows:
            source_id = row[source_index]
            issue_key = row[key_index]
            if source_id and issue_key and issue_key != ERROR_KEY:
                mapping[source_id] = issue_key
        return mapping

    def update_keys_with_error_flags(self, outcomes: Iterable[Outcome]) -> int:
        """Merge new outcomes into the ledger and rewrite it atomically.

        Rows without a new outcome keep their values. The ``Error`` column is
        added when missing, with an empty value for untouched rows.

        Returns:
            Number of ledger rows updated

        """
        by_id = {outcome.item_id: outcome for outcome in outcomes}

        header, rows = self._read_table(self.jira_csv)
        source_index, key_index = self._ledger_columns(header)

        if ERROR_COLUMN in header:
            error_index = header.index(ERROR_COLUMN)
        else:
            header.append(ERROR_COLUMN)
            error_index = len(header) - 1
            for row in rows:
                row.append("")

        updated = 0
        for row in rows:
            outcome = by_id.get(row[source_index])
            if outcome is None:
                continue
            if outcome.ok:
                row[key_index] = outcome.target_key or ""
                row[error_index] = ERROR_FLAG_CLEAR
            else:
                row[key_index] = ERROR_KEY
                row[error_index] = ERROR_FLAG_SET
            updated += 1

        self._write_atomically(self.jira_csv, header, rows)
        self.logger.info("Updated %d rows in %s", updated, self.jira_csv)
        return updated

    def _ledger_columns(self, header: list[str]) -> tuple[int, int]:
        missing = [c for c in (SOURCE_ID_COLUMN, TARGET_KEY_COLUMN) if c not in header]
        if missing:
            msg = f"Required columns missing in {self.jira_csv}: {', '.join(missing)}"
            raise MigrationError(msg)
        return header.index(SOURCE_ID_COLUMN), header.index(TARGET_KEY_COLUMN)

    @staticmethod
    def _write_atomically(path: Path, header: list[str], rows: Iterable[list[str]]) -> None:
        """Write to a temporary file next to ``path`` and move it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                newline="",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as temp_file:
                temp_path = temp_file.name
                writer = csv.writer(temp_file)
                writer.writerow(header)
                writer.writerows(rows)
                temp_file.flush()
                os.fsync(temp_file.fileno())

            # Atomic move (rename) to final location
            Path(temp_path).replace(path)
        except OSError as e:
            if temp_path is not None:
                Path(temp_path).unlink(missing_ok=True)
            msg = f"Error writing CSV file {path}: {e!s}"
            raise MigrationError(msg) from e
