"""Unit tests for failure categorization.

Total: 12 tests
"""

from __future__ import annotations

import pytest

from tars.core.base import RunStatus
from tars.core.error_categorizer import categorize_failure


@pytest.mark.parametrize(
    "output, expected",
    [
        ("Error: Timeout of 2000ms exceeded.", "timeout"),
        ("AssertionError: expected 'a' to equal 'b'", "assertion"),
        ("[ERROR] COMPILATION ERROR : cannot find symbol", "compilation"),
        ("Error: Cannot find module 'supertest'", "missing_dependency"),
        ("connect ECONNREFUSED 127.0.0.1:5432", "network"),
        ("EACCES: permission denied, open '/root/out.json'", "permission"),
        ("FATAL ERROR: Reached heap limit Allocation failed - JavaScript heap out of memory", "crash"),
    ],
)
def test_known_patterns(output, expected):
    assert categorize_failure(output, RunStatus.FAILED) == expected


def test_first_matching_category_wins():
    output = "AssertionError after request failed: connect ECONNREFUSED"
    assert categorize_failure(output, RunStatus.FAILED) == "assertion"


def test_unmatched_output_is_unknown():
    assert categorize_failure("something odd happened", RunStatus.FAILED) == "unknown"


def test_timed_out_status_is_always_timeout():
    assert categorize_failure("", RunStatus.TIMED_OUT) == "timeout"


def test_passed_run_is_not_categorized():
    assert categorize_failure("AssertionError", RunStatus.PASSED) is None


def test_empty_output_is_not_categorized():
    assert categorize_failure("   \n", RunStatus.ERRORED) is None
