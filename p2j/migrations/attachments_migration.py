"""Upload attachment files to the Jira issues created by the import.

Layout: ``<attachments_folder>/<Pivotal id>/<file>``. Nested directories
inside a group are not visited.
"""

import logging
import os
from pathlib import Path

from p2j.clients.exceptions import ClientError
from p2j.clients.jira_client import JiraClient
from p2j.migrations.base_migration import BasePhase
from p2j.models import MigrationError, Outcome, PhaseResult
from p2j.type_definitions import IssueMapping, PathLike
from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import CsvRecordStore

type UploadTask = tuple[str, Path]


class AttachmentUploadMigration(BasePhase):
    """Upload every file of every mapped attachment group."""

    name = "attachments"
    title = "Attachment upload"

    def __init__(
        self,
        client: JiraClient,
        store: CsvRecordStore,
        runner: BoundedConcurrencyRunner[UploadTask],
        attachments_folder: PathLike,
        logger: logging.Logger,
    ) -> None:
        super().__init__(logger)
        self.client = client
        self.store = store
        self.runner = runner
        self.attachments_folder = Path(attachments_folder)

    def collect_tasks(self, issue_mapping: IssueMapping) -> list[UploadTask]:
        """List (issue key, file) pairs for all groups that map to an issue."""
        if not self.attachments_folder.is_dir():
            msg = f"Attachments folder not found: {self.attachments_folder}"
            raise MigrationError(msg)

        try:
            groups = sorted(self.attachments_folder.iterdir())
        except OSError as e:
            msg = f"Error reading attachments folder {self.attachments_folder}: {e!s}"
            raise MigrationError(msg) from e

        tasks: list[UploadTask] = []
        for group in groups:
            if not group.is_dir():
                continue

            issue_key = issue_mapping.get(group.name)
            if not issue_key:
                self.logger.warning("No Jira issue found for Pivotal ID %s", group.name)
                continue

            try:
                files = sorted(entry for entry in group.iterdir() if entry.is_file())
            except OSError as e:
                self.logger.error("Error reading folder %s: %s", group, e)
                continue

            tasks.extend((issue_key, file_path) for file_path in files)
        return tasks

    def upload(self, task: UploadTask) -> Outcome:
        issue_key, file_path = task
        try:
            self.client.upload_attachment(issue_key, os.fspath(file_path))
        except ClientError as e:
            self.logger.error("Upload of %s failed: %s", file_path, e)
            return Outcome.failure(str(file_path), str(e))

        self.logger.info("Uploaded %s to issue %s", file_path.name, issue_key)
        return Outcome.success(str(file_path), issue_key)

    def _run(self, result: PhaseResult) -> None:
        issue_mapping = self.store.load_issue_mapping()
        self.logger.info("Uploading attachments from %s", self.attachments_folder)

        tasks = self.collect_tasks(issue_mapping)
        outcomes = self.runner.run(tasks, self.upload, item_id=lambda task: str(task[1]))
        result.record_outcomes(outcomes)

        self.logger.info(
            "Attachment upload finished: total=%d, uploaded=%d, failed=%d",
            result.total_count,
            result.success_count,
            result.failed_count,
        )
