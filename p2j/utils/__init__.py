"""Utility modules for the migration tool."""

from p2j.utils.bounded_runner import BoundedConcurrencyRunner
from p2j.utils.csv_store import CsvRecordStore

__all__ = ["BoundedConcurrencyRunner", "CsvRecordStore"]
