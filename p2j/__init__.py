"""Pivotal Tracker to Jira migration tool."""

__version__ = "1.0.0"
