"""Database models."""

from tars.models.test_run import TestRun

__all__ = ["TestRun"]
