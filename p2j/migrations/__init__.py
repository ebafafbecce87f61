"""Migration phases: convert, import and attachment upload."""

from p2j.migrations.attachments_migration import AttachmentUploadMigration
from p2j.migrations.base_migration import BasePhase
from p2j.migrations.convert_migration import ConvertMigration
from p2j.migrations.issue_migration import IssueImportMigration

__all__ = [
    "AttachmentUploadMigration",
    "BasePhase",
    "ConvertMigration",
    "IssueImportMigration",
]
