"""Unit tests for the output summary parser.

Total: 25 tests
"""

from __future__ import annotations

import pytest

from tars.core.base import Framework, TestSummary
from tars.core.output_parser import parse_summary, strip_ansi


def _counts(summary: TestSummary | None) -> tuple[int, int, int, int] | None:
    if summary is None:
        return None
    return summary.total, summary.passed, summary.failed, summary.skipped


# ── Jest ──────────────────────────────────────────────────────────────────────

class TestJest:
    def test_json_fragment(self):
        output = '{"numFailedTests":1,"numPassedTests":3,"numPendingTests":0,"numTotalTests":4}'
        assert _counts(parse_summary(output, Framework.JEST)) == (4, 3, 1, 0)

    def test_json_embedded_in_noise(self):
        output = (
            "Determining test suites to run...\n"
            '{"numFailedTestSuites":0,"numFailedTests":0,"numPassedTests":7,'
            '"numPendingTests":2,"numTotalTests":9,"success":true}\n'
        )
        assert _counts(parse_summary(output, "jest")) == (9, 7, 0, 2)

    def test_text_summary_with_colors(self):
        output = "\x1b[1mTests:\x1b[22m       \x1b[31m1 failed\x1b[39m, 2 skipped, 5 passed, 8 total\n"
        assert _counts(parse_summary(output, Framework.JEST)) == (8, 5, 1, 2)

    def test_json_wins_over_text(self):
        output = (
            "Tests:       9 passed, 9 total\n"
            '{"numFailedTests":0,"numPassedTests":2,"numPendingTests":0,"numTotalTests":2}'
        )
        assert _counts(parse_summary(output, Framework.JEST)) == (2, 2, 0, 0)


# ── Mocha / Cypress / Playwright ──────────────────────────────────────────────

class TestJavaScriptReporters:
    def test_mocha_json_stats(self):
        output = '{"stats": {"suites": 1, "tests": 5, "passes": 3, "pending": 1, "failures": 1}}'
        assert _counts(parse_summary(output, Framework.MOCHA)) == (5, 3, 1, 1)

    def test_mocha_spec_reporter_text(self):
        output = "  login\n    ✓ works\n\n  3 passing (12ms)\n  1 pending\n  2 failing\n"
        assert _counts(parse_summary(output, Framework.MOCHA)) == (6, 3, 2, 1)

    def test_cypress_run_table(self):
        output = (
            "  (Results)\n"
            "  │ Tests:        5                │\n"
            "  │ Passing:      4                │\n"
            "  │ Failing:      1                │\n"
            "  │ Pending:      0                │\n"
            "  │ Skipped:      0                │\n"
        )
        assert _counts(parse_summary(output, Framework.CYPRESS)) == (5, 4, 1, 0)

    def test_playwright_json_stats(self):
        output = (
            '{"config": {}, "suites": [], "stats": {"startTime": "2026-10-18T09:00:00.000Z", '
            '"duration": 1234.5, "expected": 4, "skipped": 1, "unexpected": 2, "flaky": 1}}'
        )
        assert _counts(parse_summary(output, Framework.PLAYWRIGHT)) == (8, 5, 2, 1)

    def test_playwright_list_reporter_text(self):
        output = "Running 4 tests using 2 workers\n\n  1 failed\n    [chromium] › a.spec.ts:3:1\n  3 passed (2.1s)\n"
        assert _counts(parse_summary(output, Framework.PLAYWRIGHT)) == (4, 3, 1, 0)


# ── JUnit / TestNG ────────────────────────────────────────────────────────────

class TestJavaReporters:
    def test_surefire_last_line_wins_and_errors_count_as_failures(self):
        output = (
            "Tests run: 3, Failures: 1, Errors: 0, Skipped: 0, Time elapsed: 0.2 s - in LoginTest\n"
            "[ERROR] Tests run: 5, Failures: 1, Errors: 1, Skipped: 1\n"
        )
        assert _counts(parse_summary(output, Framework.JUNIT)) == (5, 2, 2, 1)

    def test_gradle_summary(self):
        output = "LoginTest > rejectsBadPassword() FAILED\n5 tests completed, 2 failed\n"
        assert _counts(parse_summary(output, Framework.JUNIT)) == (5, 3, 2, 0)

    def test_junit_console_launcher(self):
        output = (
            "[         4 tests found           ]\n"
            "[         3 tests successful      ]\n"
            "[         1 tests failed          ]\n"
        )
        assert _counts(parse_summary(output, Framework.JUNIT)) == (4, 3, 1, 0)

    def test_testng_default_reporter(self):
        output = "===============================================\nTotal tests run: 6, Passes: 4, Failures: 1, Skips: 1\n"
        assert _counts(parse_summary(output, Framework.TESTNG)) == (6, 4, 1, 1)

    def test_testng_without_passes_derives_them(self):
        output = "Total tests run: 6, Failures: 1, Skips: 1\n"
        assert _counts(parse_summary(output, Framework.TESTNG)) == (6, 4, 1, 1)


# ── No summary ────────────────────────────────────────────────────────────────

class TestNoSummary:
    def test_unrelated_text_returns_none(self):
        assert parse_summary("npm ERR! could not determine executable to run", Framework.JEST) is None

    def test_empty_output_returns_none(self):
        assert parse_summary("", Framework.MOCHA) is None
        assert parse_summary(None, Framework.MOCHA) is None

    def test_unknown_framework_returns_none(self):
        assert parse_summary("Tests: 1 passed, 1 total", "rspec") is None

    def test_empty_numeric_groups_default_to_zero(self):
        summary = parse_summary("Tests run: , Failures: , Errors: , Skipped: ", Framework.JUNIT)
        assert _counts(summary) == (0, 0, 0, 0)


# ── Shared JSON summary ───────────────────────────────────────────────────────

@pytest.mark.parametrize("framework", list(Framework))
def test_total_tests_json_is_recognised_for_every_framework(framework):
    output = '{"numTotalTests": 4, "numPassedTests": 3, "numFailedTests": 1, "numPendingTests": 0}'
    assert _counts(parse_summary(output, framework)) == (4, 3, 1, 0)


def test_strip_ansi_removes_escape_sequences():
    assert strip_ansi("\x1b[32m✓\x1b[0m ok") == "✓ ok"
