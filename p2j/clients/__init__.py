"""API clients package for the Pivotal Tracker to Jira migration."""

from p2j.clients.jira_client import JiraClient
from p2j.clients.transport import RateLimitedTransport

__all__ = ["JiraClient", "RateLimitedTransport"]
