"""Timesheet approval and delegation engine."""

__version__ = "0.3.0"
