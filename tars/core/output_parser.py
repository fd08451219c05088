"""Extract pass/fail/skip counts from raw test framework output.

Each framework grammar is an ordered list of independent strategies. The
first strategy that returns a summary wins; partial matches are never merged
across strategies. A missing summary is normal (a crashed process writes
none), so nothing in here raises.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from tars.core.base import Framework, TestSummary
from tars.core.frameworks import UnsupportedFrameworkError, get_adapter

logger = logging.getLogger(__name__)

Strategy = Callable[[str], TestSummary | None]

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def _int(value: str | None) -> int:
    return int(value) if value else 0


def _summary(total: int, failed: int, skipped: int, passed: int | None = None) -> TestSummary:
    if passed is None:
        passed = max(total - failed - skipped, 0)
    return TestSummary(total=total, passed=passed, failed=failed, skipped=skipped)


def _key(body: str, key: str) -> int:
    match = re.search(rf'"{re.escape(key)}"\s*:\s*(\d*)', body)
    return _int(match.group(1)) if match else 0


# ── JSON reporters ────────────────────────────────────────────────────────────

_STATS_RE = re.compile(r'"stats"\s*:\s*\{([^{}]*)\}')


def _stats_body(text: str, required_key: str) -> str | None:
    """Return the body of the last flat ``"stats": {...}`` object holding *required_key*."""
    body = None
    for match in _STATS_RE.finditer(text):
        if f'"{required_key}"' in match.group(1):
            body = match.group(1)
    return body


def _jest_json(text: str) -> TestSummary | None:
    if '"numTotalTests"' not in text:
        return None
    return _summary(
        total=_key(text, "numTotalTests"),
        passed=_key(text, "numPassedTests"),
        failed=_key(text, "numFailedTests"),
        skipped=_key(text, "numPendingTests"),
    )


def _mocha_json(text: str) -> TestSummary | None:
    body = _stats_body(text, "passes")
    if body is None:
        return None
    return _summary(
        total=_key(body, "tests"),
        passed=_key(body, "passes"),
        failed=_key(body, "failures"),
        skipped=_key(body, "pending"),
    )


def _playwright_json(text: str) -> TestSummary | None:
    body = _stats_body(text, "expected")
    if body is None:
        return None
    expected = _key(body, "expected")
    unexpected = _key(body, "unexpected")
    skipped = _key(body, "skipped")
    flaky = _key(body, "flaky")
    return _summary(
        total=expected + unexpected + skipped + flaky,
        passed=expected + flaky,
        failed=unexpected,
        skipped=skipped,
    )


# ── Free-text summaries ───────────────────────────────────────────────────────

_JEST_TESTS_LINE_RE = re.compile(r"^\s*Tests:\s+(.+)$", re.MULTILINE)
_JEST_COUNT_RE = re.compile(r"(\d+)\s+(failed|passed|skipped|todo|total)")


def _jest_text(text: str) -> TestSummary | None:
    lines = _JEST_TESTS_LINE_RE.findall(text)
    if not lines:
        return None
    counts: dict[str, int] = {}
    for value, label in _JEST_COUNT_RE.findall(lines[-1]):
        counts[label] = _int(value)
    if not counts:
        return None
    skipped = counts.get("skipped", 0) + counts.get("todo", 0)
    failed = counts.get("failed", 0)
    passed = counts.get("passed", 0)
    return _summary(
        total=counts.get("total", passed + failed + skipped),
        passed=passed,
        failed=failed,
        skipped=skipped,
    )


_MOCHA_PASSING_RE = re.compile(r"^\s*(\d+)\s+passing\b", re.MULTILINE)
_MOCHA_FAILING_RE = re.compile(r"^\s*(\d+)\s+failing\b", re.MULTILINE)
_MOCHA_PENDING_RE = re.compile(r"^\s*(\d+)\s+pending\b", re.MULTILINE)


def _mocha_text(text: str) -> TestSummary | None:
    passing = _MOCHA_PASSING_RE.search(text)
    failing = _MOCHA_FAILING_RE.search(text)
    if passing is None and failing is None:
        return None
    pending = _MOCHA_PENDING_RE.search(text)
    passed = _int(passing.group(1)) if passing else 0
    failed = _int(failing.group(1)) if failing else 0
    skipped = _int(pending.group(1)) if pending else 0
    return _summary(total=passed + failed + skipped, passed=passed, failed=failed, skipped=skipped)


def _labelled(label: str) -> re.Pattern[str]:
    return re.compile(rf"\b{label}:\s+(\d*)")


_CYPRESS_TESTS_RE = _labelled("Tests")
_CYPRESS_PASSING_RE = _labelled("Passing")
_CYPRESS_FAILING_RE = _labelled("Failing")
_CYPRESS_PENDING_RE = _labelled("Pending")
_CYPRESS_SKIPPED_RE = _labelled("Skipped")


def _cypress_text(text: str) -> TestSummary | None:
    tests = _CYPRESS_TESTS_RE.search(text)
    if tests is None:
        return None

    def _count(pattern: re.Pattern[str]) -> int:
        match = pattern.search(text, tests.start())
        return _int(match.group(1)) if match else 0

    return _summary(
        total=_int(tests.group(1)),
        passed=_count(_CYPRESS_PASSING_RE),
        failed=_count(_CYPRESS_FAILING_RE),
        skipped=_count(_CYPRESS_PENDING_RE) + _count(_CYPRESS_SKIPPED_RE),
    )


_PLAYWRIGHT_LINE_RE = re.compile(
    r"^\s*(\d+)\s+(passed|failed|skipped|flaky|did not run|interrupted)\b",
    re.MULTILINE,
)


def _playwright_text(text: str) -> TestSummary | None:
    counts: dict[str, int] = {}
    for value, label in _PLAYWRIGHT_LINE_RE.findall(text):
        counts[label] = _int(value)
    if "passed" not in counts and "failed" not in counts:
        return None
    passed = counts.get("passed", 0) + counts.get("flaky", 0)
    failed = counts.get("failed", 0) + counts.get("interrupted", 0)
    skipped = counts.get("skipped", 0) + counts.get("did not run", 0)
    return _summary(total=passed + failed + skipped, passed=passed, failed=failed, skipped=skipped)


# Maven prints one line per class and a final aggregate; the last one wins.
_SUREFIRE_RE = re.compile(
    r"Tests run:\s*(\d*),\s*Failures:\s*(\d*),\s*Errors:\s*(\d*),\s*Skipped:\s*(\d*)",
    re.IGNORECASE,
)


def _surefire_text(text: str) -> TestSummary | None:
    matches = _SUREFIRE_RE.findall(text)
    if not matches:
        return None
    total, failures, errors, skipped = (_int(v) for v in matches[-1])
    return _summary(total=total, failed=failures + errors, skipped=skipped)


_CONSOLE_LAUNCHER_RE = re.compile(r"(\d+)\s+tests\s+(successful|failed|skipped|aborted|found)")


def _junit_console_text(text: str) -> TestSummary | None:
    counts: dict[str, int] = {}
    for value, label in _CONSOLE_LAUNCHER_RE.findall(text):
        counts[label] = _int(value)
    if "successful" not in counts and "failed" not in counts:
        return None
    passed = counts.get("successful", 0)
    failed = counts.get("failed", 0) + counts.get("aborted", 0)
    skipped = counts.get("skipped", 0)
    return _summary(
        total=counts.get("found", passed + failed + skipped),
        passed=passed,
        failed=failed,
        skipped=skipped,
    )


_GRADLE_RE = re.compile(r"(\d+)\s+tests?\s+completed(?:,\s*(\d*)\s*failed)?(?:,\s*(\d*)\s*skipped)?")


def _gradle_text(text: str) -> TestSummary | None:
    match = _GRADLE_RE.search(text)
    if match is None:
        return None
    return _summary(
        total=_int(match.group(1)),
        failed=_int(match.group(2)),
        skipped=_int(match.group(3)),
    )


_TESTNG_RE = re.compile(
    r"Total tests run:\s*(\d*),\s*(?:Passes:\s*(\d*),\s*)?Failures:\s*(\d*),\s*Skips:\s*(\d*)"
)


def _testng_text(text: str) -> TestSummary | None:
    match = _TESTNG_RE.search(text)
    if match is None:
        return None
    total, passes, failures, skips = match.groups()
    return _summary(
        total=_int(total),
        passed=_int(passes) if passes is not None else None,
        failed=_int(failures),
        skipped=_int(skips),
    )


# The jest-style "numTotalTests" summary is recognised whatever the framework.
GRAMMARS: dict[str, tuple[Strategy, ...]] = {
    "jest": (_jest_json, _jest_text),
    "mocha": (_jest_json, _mocha_json, _mocha_text),
    "cypress": (_jest_json, _mocha_json, _cypress_text, _mocha_text),
    "playwright": (_jest_json, _playwright_json, _playwright_text),
    "junit": (_jest_json, _surefire_text, _junit_console_text, _gradle_text),
    "testng": (_jest_json, _surefire_text, _testng_text, _gradle_text),
}


def parse_summary(output: str | None, framework: Framework | str) -> TestSummary | None:
    """Return the test counts found in *output*, or None when there is no usable summary."""
    if not output:
        return None
    try:
        grammar = get_adapter(framework).grammar
    except UnsupportedFrameworkError:
        return None

    text = strip_ansi(output)
    for strategy in GRAMMARS.get(grammar, ()):
        try:
            summary = strategy(text)
        except (ValueError, TypeError, IndexError, OverflowError) as exc:
            logger.debug("parser: %s rejected output: %s", strategy.__name__, exc)
            continue
        if summary is not None:
            return summary
    return None
