"""Migration orchestrator for the Pivotal Tracker to Jira migration.

Runs the phases in order: auth check, convert, import, attachment upload.
Mode flags decide which phases run; a failed phase does not stop later
ones. Only a failed auth check or a fatal phase error ends the run early.
"""

import logging
import time
from datetime import UTC, datetime

from p2j.clients.exceptions import ClientError
from p2j.clients.jira_client import JiraClient
from p2j.display import console
from p2j.migrations import AttachmentUploadMigration, ConvertMigration, IssueImportMigration
from p2j.models import MigrationError, MigrationResult, PhaseResult
from p2j.type_definitions import Config
from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import CsvRecordStore


def print_phase_header(phase_title: str) -> None:
    """Print a formatted header for a migration phase."""
    console.rule(f"RUNNING PHASE: {phase_title}")


class MigrationOrchestrator:
    """Wire the phases to their collaborators and run them."""

    def __init__(
        self,
        config: Config,
        client: JiraClient | None,
        store: CsvRecordStore,
        runner: BoundedConcurrencyRunner,
        logger: logging.Logger,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Loaded configuration
            client: Jira client; ``None`` is only valid for convert-only work
            store: CSV record store for the Pivotal export and the ledger
            runner: Bounded pool shared by import and attachment upload
            logger: Run logger handed to every phase

        """
        self.config = config
        self.client = client
        self.store = store
        self.runner = runner
        self.logger = logger

    def _require_client(self) -> JiraClient:
        if self.client is None:
            msg = "A Jira client is required for this phase"
            raise MigrationError(msg)
        return self.client

    def check_auth(self) -> None:
        """Verify Jira credentials; any failure is fatal for the run."""
        client = self._require_client()
        try:
            client.check_auth()
        except ClientError as e:
            msg = f"Jira authentication failed: {e!s}"
            raise MigrationError(msg) from e
        self.logger.info("Jira authentication succeeded for %s", client.jira_url)

    def convert(self) -> PhaseResult:
        phase = ConvertMigration(
            self.store,
            self.config["migration"].get("status_mapping", {}),
            self.logger,
        )
        print_phase_header(phase.display_name)
        return phase.run()

    def import_issues(self) -> PhaseResult:
        phase = IssueImportMigration(
            self._require_client(),
            self.store,
            self.runner,
            self.logger,
            skip_completed=bool(self.config["migration"].get("skip_completed", False)),
        )
        print_phase_header(phase.display_name)
        return phase.run()

    def upload_attachments(self) -> PhaseResult:
        phase = AttachmentUploadMigration(
            self._require_client(),
            self.store,
            self.runner,
            self.config["migration"].get("attachments_folder", "attachments"),
            self.logger,
        )
        print_phase_header(phase.display_name)
        return phase.run()

    def run_all(
        self,
        *,
        convert_only: bool = False,
        import_only: bool = False,
        attachments_only: bool = False,
    ) -> MigrationResult:
        """Check auth, then run the phases selected by the mode flags.

        - convert runs unless ``import_only`` or ``attachments_only``
        - ``convert_only`` stops right after convert
        - import runs unless ``attachments_only``
        - attachments run unless ``import_only``

        Raises:
            MigrationError: On failed authentication or a fatal phase error

        """
        start_time = time.time()
        result = MigrationResult()
        self.logger.info("Starting migration")

        self.check_auth()

        try:
            if not import_only and not attachments_only:
                result.add_phase(self.convert())
                if convert_only:
                    return result

            if not attachments_only:
                result.add_phase(self.import_issues())

            if not import_only:
                result.add_phase(self.upload_attachments())
        finally:
            elapsed = time.time() - start_time
            result.overall["end_time"] = datetime.now(tz=UTC).isoformat()
            result.overall["elapsed_seconds"] = elapsed
            self.logger.info("Migration finished in %.2fs", elapsed)

        return result
