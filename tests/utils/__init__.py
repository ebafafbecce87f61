"""Test utilities."""
