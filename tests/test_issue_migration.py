"""Tests for the issue import phase."""

import csv
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from p2j.clients.exceptions import CommentError, CreateIssueError, FieldUpdateError, TransitionError
from p2j.migrations.issue_migration import (
    IssueImportMigration,
    build_summary,
    map_issue_type,
    parse_story_points,
    split_labels,
)
from p2j.models import MigrationError
from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import TARGET_HEADER, CsvRecordStore

pytestmark = pytest.mark.unit


def write_ledger(path: Path, records: list[dict[str, str]], header: list[str] | None = None) -> None:
    header = header or TARGET_HEADER
    with path.open("w", encoding="utf-8", newline="") as csv_file:
        writer = csv.DictWriter(csv_file, fieldnames=header, restval="")
        writer.writeheader()
        writer.writerows(records)


def read_ledger(path: Path) -> dict[str, dict[str, str]]:
    with path.open("r", encoding="utf-8", newline="") as csv_file:
        return {row["JIRA Issue ID"]: row for row in csv.DictReader(csv_file)}


def record(source_id: str, **fields: str) -> dict[str, str]:
    return {"JIRA Issue ID": source_id, "Title": f"Story {source_id}", **fields}


@pytest.fixture
def phase(
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
    runner: BoundedConcurrencyRunner,
    mock_logger: MagicMock,
) -> IssueImportMigration:
    return IssueImportMigration(mock_jira_client, store, runner, mock_logger)


@pytest.mark.parametrize(
    ("source_type", "expected"),
    [
        ("bug", "Bug"),
        ("BUG", "Bug"),
        ("feature", "feature"),
        ("Story", "feature"),
        ("chore", "chore"),
        ("epic", "Epic"),
        ("Release", "release"),
        ("spike", "Task"),
        ("", "Task"),
    ],
)
def test_map_issue_type(source_type: str, expected: str) -> None:
    assert map_issue_type(source_type) == expected


@pytest.mark.parametrize(("value", "expected"), [("3", 3), ("3.0", 3), ("", 0), ("x", 0), ("0", 0)])
def test_parse_story_points(value: str, expected: int) -> None:
    assert parse_story_points(value) == expected


def test_split_labels() -> None:
    assert split_labels(" api, ui ,,backend ") == ["api", "ui", "backend"]
    assert split_labels("") == []


def test_build_summary() -> None:
    assert build_summary({"JIRA Issue ID": "42", "Title": "Do it"}) == "[42] Do it"
    assert build_summary({"JIRA Issue ID": "42", "Title": ""}) == "[42] No Title"


def test_create_failures_are_counted_and_flagged(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
    mock_logger: MagicMock,
) -> None:
    write_ledger(store.jira_csv, [record(str(i)) for i in range(1, 11)])
    failing = {"[3] Story 3", "[5] Story 5", "[7] Story 7"}

    def create_issue(summary: str, *args: object, **kwargs: object) -> str:
        if summary in failing:
            msg = "Issue creation failed: HTTP 400"
            raise CreateIssueError(msg, status_code=400)
        return "PROJ-" + summary[1:summary.index("]")]

    mock_jira_client.create_issue.side_effect = create_issue

    result = phase.run()

    assert result.total_count == 10
    assert result.success_count == 7
    assert result.failed_count == 3
    assert not result.success

    ledger = read_ledger(store.jira_csv)
    flagged = {source_id for source_id, row in ledger.items() if row["Error"] == "1"}
    assert flagged == {"3", "5", "7"}
    assert all(ledger[i]["JIRA Issue Key"] == "ERROR" for i in flagged)
    assert ledger["1"]["JIRA Issue Key"] == "PROJ-1"
    assert ledger["1"]["Error"] == "0"

    mock_logger.info.assert_any_call("Import summary: success=%d, failed=%d", 7, 3)
    assert mock_logger.error.call_count == 3


def test_degraded_steps_keep_the_issue(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
    mock_logger: MagicMock,
) -> None:
    write_ledger(
        store.jira_csv,
        [record("1", **{"Story Points": "5", "JIRA Status": "Done", "Comment": "hi"})],
    )
    mock_jira_client.create_issue.return_value = "PROJ-1"
    mock_jira_client.set_story_points.side_effect = FieldUpdateError("no field")
    mock_jira_client.apply_status.side_effect = TransitionError("no transition")
    mock_jira_client.add_comment.side_effect = CommentError("no comment")

    result = phase.run()

    assert result.success_count == 1
    assert result.failed_count == 0
    assert mock_logger.warning.call_count == 3
    assert read_ledger(store.jira_csv)["1"]["JIRA Issue Key"] == "PROJ-1"


def test_workflow_calls(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
) -> None:
    write_ledger(
        store.jira_csv,
        [
            record(
                "9",
                Description="Body",
                Labels="a, b",
                Type="story",
                Reporter="bob",
                Assignee="alice",
                **{"Story Points": "3.0", "JIRA Status": "In Progress", "Comment": "c"},
            ),
        ],
    )
    mock_jira_client.create_issue.return_value = "PROJ-9"

    phase.run()

    mock_jira_client.create_issue.assert_called_once_with(
        "[9] Story 9", "Body", ["a", "b"], "feature", reporter="bob", assignee="alice",
    )
    mock_jira_client.set_story_points.assert_called_once_with("PROJ-9", 3)
    mock_jira_client.apply_status.assert_called_once_with("PROJ-9", "In Progress")
    mock_jira_client.add_comment.assert_called_once_with("PROJ-9", "c")


def test_optional_steps_are_skipped_when_empty(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
) -> None:
    write_ledger(store.jira_csv, [record("1", **{"Story Points": "0"})])

    phase.run()

    mock_jira_client.set_story_points.assert_not_called()
    mock_jira_client.apply_status.assert_not_called()
    mock_jira_client.add_comment.assert_not_called()


def test_unexpected_worker_error_is_recorded(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
) -> None:
    write_ledger(store.jira_csv, [record("1"), record("2")])
    mock_jira_client.create_issue.side_effect = [RuntimeError("bug"), "PROJ-2"]
    phase.runner = BoundedConcurrencyRunner(1, MagicMock())

    result = phase.run()

    assert result.failed_count == 1
    ledger = read_ledger(store.jira_csv)
    assert ledger["1"]["JIRA Issue Key"] == "ERROR"
    assert ledger["2"]["JIRA Issue Key"] == "PROJ-2"


def test_reprocesses_everything_by_default(
    phase: IssueImportMigration,
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
    mock_logger: MagicMock,
) -> None:
    header = [*TARGET_HEADER, "Error"]
    write_ledger(
        store.jira_csv,
        [
            record("1", **{"JIRA Issue Key": "PROJ-1", "Error": "0"}),
            record("2", **{"JIRA Issue Key": "ERROR", "Error": "1"}),
        ],
        header,
    )
    mock_jira_client.create_issue.return_value = "PROJ-50"

    result = phase.run()

    assert mock_jira_client.create_issue.call_count == 2
    assert result.skipped_count == 0
    mock_logger.info.assert_any_call("Record %s: reprocessing previously failed record", "2")


def test_skip_completed(
    mock_jira_client: MagicMock,
    store: CsvRecordStore,
    runner: BoundedConcurrencyRunner,
    mock_logger: MagicMock,
) -> None:
    header = [*TARGET_HEADER, "Error"]
    write_ledger(
        store.jira_csv,
        [
            record("1", **{"JIRA Issue Key": "PROJ-1", "Error": "0"}),
            record("2", **{"JIRA Issue Key": "ERROR", "Error": "1"}),
            record("3"),
        ],
        header,
    )
    mock_jira_client.create_issue.return_value = "PROJ-60"
    phase = IssueImportMigration(mock_jira_client, store, runner, mock_logger, skip_completed=True)

    result = phase.run()

    assert mock_jira_client.create_issue.call_count == 2
    assert result.skipped_count == 1
    assert result.total_count == 3
    ledger = read_ledger(store.jira_csv)
    assert ledger["1"]["JIRA Issue Key"] == "PROJ-1"
    assert ledger["2"]["Error"] == "0"


def test_missing_ledger_is_fatal(phase: IssueImportMigration) -> None:
    with pytest.raises(MigrationError):
        phase.run()


def test_missing_source_column_is_fatal(phase: IssueImportMigration, store: CsvRecordStore) -> None:
    store.jira_csv.write_text("Title,JIRA Issue Key\nx,\n", encoding="utf-8")

    with pytest.raises(MigrationError, match="JIRA Issue ID"):
        phase.run()


def test_missing_key_column_is_fatal_before_any_issue_is_created(
    phase: IssueImportMigration,
    store: CsvRecordStore,
    mock_jira_client: MagicMock,
) -> None:
    write_ledger(
        store.jira_csv,
        [record("1"), record("2"), record("3")],
        header=["JIRA Issue ID", "Title"],
    )

    with pytest.raises(MigrationError, match="JIRA Issue Key"):
        phase.run()

    assert mock_jira_client.create_issue.call_count == 0
    assert "JIRA Issue Key" not in store.jira_csv.read_text(encoding="utf-8")
