"""Tests for the Pivotal to Jira CSV conversion."""

import csv
from unittest.mock import MagicMock

import pytest

from p2j.migrations.convert_migration import ConvertMigration, convert_date, parse_estimate
from p2j.models import MigrationError
from p2j.utils.csv_store import TARGET_HEADER, CsvRecordStore

pytestmark = pytest.mark.unit

STATUS_MAPPING = {
    "unstarted": "Backlog",
    "started": "In Progress",
    "accepted": "Done",
}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-01-15T10:30:00", "2024-01-15T10:30:00.000+0000"),
        ("01/15/24 02:30 PM", "2024-01-15T14:30:00.000+0000"),
        ("15/Jan/24 09:05 AM", "2024-01-15T09:05:00.000+0000"),
        ("Jan 15, 2024", "2024-01-15T00:00:00.000+0000"),
        ("", ""),
    ],
)
def test_convert_date(value: str, expected: str) -> None:
    assert convert_date(value) == expected


def test_convert_date_unparseable_warns(mock_logger: MagicMock) -> None:
    assert convert_date("sometime next week", mock_logger) == ""
    mock_logger.warning.assert_called_once()


@pytest.mark.parametrize(("value", "expected"), [("3", 3), ("", 0), ("abc", 0), (" 8 ", 8)])
def test_parse_estimate(value: str, expected: int) -> None:
    assert parse_estimate(value) == expected


def test_convert_record(store: CsvRecordStore, mock_logger: MagicMock) -> None:
    phase = ConvertMigration(store, STATUS_MAPPING, mock_logger)

    record = phase.convert_record(
        {
            "Id": "123",
            "Title": "Login page",
            "Description": "As a user...",
            "Labels": "auth, ui",
            "Type": "feature",
            "Current State": "Started",
            "Estimate": "3",
            "Created at": "Jan 15, 2024",
            "Accepted at": "",
            "Owned By": "alice",
            "Requested By": "bob",
            "Comment": "note",
        },
    )

    assert record == {
        "JIRA Issue ID": "123",
        "Title": "Login page",
        "Description": "As a user...",
        "Labels": "auth, ui",
        "Type": "feature",
        "JIRA Status": "In Progress",
        "Story Points": "3",
        "Created Date": "2024-01-15T00:00:00.000+0000",
        "Resolved Date": "",
        "Assignee": "alice",
        "Reporter": "bob",
        "Comment": "note",
        "JIRA Issue Key": "",
    }


def test_unmapped_state_has_empty_status(store: CsvRecordStore, mock_logger: MagicMock) -> None:
    phase = ConvertMigration(store, STATUS_MAPPING, mock_logger)

    assert phase.convert_record({"Id": "1", "Current State": "planned"})["JIRA Status"] == ""


def test_run_writes_ledger(store: CsvRecordStore, mock_logger: MagicMock) -> None:
    with store.pivotal_csv.open("w", encoding="utf-8", newline="") as csv_file:
        writer = csv.writer(csv_file)
        writer.writerow(["Id", "Title", "Type", "Current State", "Estimate", "Comment", "Comment"])
        for i in range(1, 151):
            writer.writerow([str(i), f"Story {i}", "bug", "accepted", "", "a", "b"])

    result = ConvertMigration(store, STATUS_MAPPING, mock_logger).run()

    assert result.success
    assert result.total_count == 150
    assert result.success_count == 150

    with store.jira_csv.open("r", encoding="utf-8", newline="") as csv_file:
        rows = list(csv.reader(csv_file))
    assert rows[0] == TARGET_HEADER
    assert len(rows) == 151
    first = dict(zip(rows[0], rows[1], strict=True))
    assert first["JIRA Status"] == "Done"
    assert first["Story Points"] == "0"
    assert first["Comment"] == "a\n\n===========================\n\nb"

    progress = [c for c in mock_logger.info.call_args_list if "Processing" in c.args[0]]
    assert len(progress) == 1


def test_run_without_input_is_fatal(store: CsvRecordStore, mock_logger: MagicMock) -> None:
    with pytest.raises(MigrationError):
        ConvertMigration(store, STATUS_MAPPING, mock_logger).run()
