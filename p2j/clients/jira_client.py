"""Jira API client for the migration project.

Provides a clean, exception-based interface for the handful of Jira REST
operations the migration needs. Every call goes through a
:class:`~p2j.clients.transport.RateLimitedTransport`.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

import requests
from requests import Response

from p2j.clients.exceptions import (
    ApiError,
    AuthenticationError,
    CommentError,
    CreateIssueError,
    FieldUpdateError,
    TransitionError,
    UploadError,
)
from p2j.clients.transport import DEFAULT_BACKOFF_SECONDS, RateLimitedTransport
from p2j.type_definitions import JiraConfig

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204

BACKLOG_STATUS = "backlog"


def normalize_summary(summary: str) -> str:
    """Collapse line breaks and whitespace runs into single spaces."""
    summary = summary.replace("\n", " ").replace("\r", " ")
    return " ".join(summary.split())


class JiraClient:
    """Jira client for API interactions.

    Methods raise a typed :class:`~p2j.clients.exceptions.ClientError`
    subclass instead of returning error values; callers decide whether the
    failure is fatal for a record.
    """

    def __init__(
        self,
        jira_config: JiraConfig,
        logger: logging.Logger,
        *,
        user_mapping: Mapping[str, str] | None = None,
        transport: RateLimitedTransport | None = None,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        """Initialize the Jira client.

        Args:
            jira_config: Jira connection settings
            logger: Logger for client-level messages
            user_mapping: Pivotal person -> Jira account id
            transport: Preconfigured transport; built from the config when omitted
            backoff_seconds: Rate-limit pause used when the transport is built here

        """
        self.jira_url: str = jira_config.get("url", "").rstrip("/")
        self.project_key: str = jira_config.get("project_key", "")
        self.story_point_field: str = jira_config.get("story_point_field", "customfield_10016")
        self.logger = logger
        self.user_mapping: dict[str, str] = dict(user_mapping or {})

        if not self.jira_url:
            msg = "Jira URL is required"
            raise ValueError(msg)

        if transport is None:
            session = requests.Session()
            session.auth = (jira_config.get("email", ""), jira_config.get("api_token", ""))
            session.headers.update({"Accept": "application/json"})
            transport = RateLimitedTransport(
                session,
                logger,
                backoff_seconds=backoff_seconds,
                timeout=jira_config.get("request_timeout", 60),
                verify=jira_config.get("verify_ssl", True),
            )
        self.transport = transport

    def _url(self, path: str) -> str:
        return f"{self.jira_url}/rest/api/2{path}"

    @staticmethod
    def _failure(error_cls: type[ApiError], what: str, response: Response) -> ApiError:
        body = response.text
        return error_cls(
            f"{what} failed: HTTP {response.status_code} - {body[:500]}",
            status_code=response.status_code,
            body=body,
        )

    def check_auth(self) -> None:
        """Verify the credentials against /myself.

        Raises:
            AuthenticationError: If Jira does not answer 200
            TransportError: If Jira cannot be reached

        """
        response = self.transport.send("GET", self._url("/myself"))
        with response:
            if response.status_code != HTTP_OK:
                msg = f"Authentication failed: HTTP {response.status_code} - {response.text[:500]}"
                raise AuthenticationError(msg)

    def _prepare_user_fields(
        self,
        fields: dict[str, Any],
        description: str,
        assignee: str,
        reporter: str,
    ) -> None:
        """Set mapped people as structured fields; append the rest to the description."""
        current_description = description

        if assignee:
            if account_id := self.user_mapping.get(assignee):
                fields["assignee"] = {"id": account_id}
            else:
                current_description += f"\n\nAssignee: {assignee}"

        if reporter:
            if account_id := self.user_mapping.get(reporter):
                fields["reporter"] = {"id": account_id}
            else:
                current_description += f"\n\nReporter: {reporter}"

        if current_description != description:
            fields["description"] = current_description

    def create_issue(
        self,
        summary: str,
        description: str,
        labels: list[str] | None,
        issue_type: str,
        reporter: str = "",
        assignee: str = "",
    ) -> str:
        """Create an issue in the configured project.

        Returns:
            The new issue key, e.g. ``PROJ-123``

        Raises:
            CreateIssueError: If Jira rejects the issue or answers without a key

        """
        fields: dict[str, Any] = {
            "project": {"key": self.project_key},
            "summary": normalize_summary(summary),
            "description": description,
            "issuetype": {"name": issue_type},
            "labels": list(labels or []),
        }
        self._prepare_user_fields(fields, description, assignee, reporter)

        response = self.transport.send("POST", self._url("/issue"), json={"fields": fields})
        with response:
            if response.status_code != HTTP_CREATED:
                raise self._failure(CreateIssueError, "Issue creation", response)
            try:
                result = response.json()
            except ValueError as e:
                msg = f"Issue creation returned an unreadable response: {e!s}"
                raise CreateIssueError(msg, status_code=response.status_code) from e

        issue_key = result.get("key") if isinstance(result, dict) else None
        if not isinstance(issue_key, str) or not issue_key:
            msg = "Issue creation response did not contain an issue key"
            raise CreateIssueError(msg, status_code=response.status_code)
        return issue_key

    def set_story_points(self, issue_key: str, points: int) -> None:
        """Write story points into the configured custom field."""
        payload = {"fields": {self.story_point_field: points}}
        response = self.transport.send("PUT", self._url(f"/issue/{issue_key}"), json=payload)
        with response:
            if response.status_code != HTTP_NO_CONTENT:
                raise self._failure(FieldUpdateError, "Story point update", response)

    def list_transitions(self, issue_key: str) -> dict[str, str]:
        """Return the available transitions as lowercased target status name -> transition id."""
        response = self.transport.send("GET", self._url(f"/issue/{issue_key}/transitions"))
        with response:
            if response.status_code != HTTP_OK:
                raise self._failure(TransitionError, "Transition lookup", response)
            try:
                result = response.json()
            except ValueError as e:
                msg = f"Transition lookup returned an unreadable response: {e!s}"
                raise TransitionError(msg, status_code=response.status_code) from e

        transitions = result.get("transitions") if isinstance(result, dict) else None
        if not isinstance(transitions, list):
            msg = f"No transitions found for {issue_key}"
            raise TransitionError(msg)

        transition_map: dict[str, str] = {}
        for transition in transitions:
            if not isinstance(transition, dict):
                continue
            transition_id = transition.get("id")
            target = transition.get("to")
            name = target.get("name") if isinstance(target, dict) else None
            if isinstance(transition_id, str) and isinstance(name, str):
                transition_map[name.lower()] = transition_id
        return transition_map

    def apply_status(self, issue_key: str, target_status: str) -> None:
        """Move an issue to ``target_status``.

        "Backlog" (any case) is the state of a new issue, so it never
        triggers a transition call.
        """
        if target_status.lower() == BACKLOG_STATUS:
            self.logger.debug("Issue %s: skipping '%s' status", issue_key, target_status)
            return

        transitions = self.list_transitions(issue_key)
        transition_id = transitions.get(target_status.lower())
        if transition_id is None:
            msg = f"No transition to status '{target_status}' available for {issue_key}"
            raise TransitionError(msg)

        payload = {"transition": {"id": transition_id}}
        response = self.transport.send(
            "POST", self._url(f"/issue/{issue_key}/transitions"), json=payload,
        )
        with response:
            if response.status_code != HTTP_NO_CONTENT:
                raise self._failure(TransitionError, "Status update", response)

    def add_comment(self, issue_key: str, text: str) -> None:
        """Add a plain-text comment. An empty comment is a no-op."""
        if not text:
            return

        response = self.transport.send(
            "POST", self._url(f"/issue/{issue_key}/comment"), json={"body": text},
        )
        with response:
            if response.status_code not in (HTTP_OK, HTTP_CREATED):
                raise self._failure(CommentError, "Comment", response)

    def upload_attachment(self, issue_key: str, file_path: str) -> None:
        """Upload one file as an attachment of ``issue_key``.

        Raises:
            UploadError: If the file cannot be read or Jira rejects the upload

        """
        try:
            with open(file_path, "rb") as attachment:
                content = attachment.read()
        except OSError as e:
            msg = f"Cannot read attachment {file_path}: {e!s}"
            raise UploadError(msg) from e

        response = self.transport.send(
            "POST",
            self._url(f"/issue/{issue_key}/attachments"),
            files={"file": (os.path.basename(file_path), content)},
            headers={"X-Atlassian-Token": "no-check"},
        )
        with response:
            if response.status_code != HTTP_OK:
                raise self._failure(UploadError, "Attachment upload", response)
