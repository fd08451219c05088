"""Categorize non-passing runs by pattern matching on their output."""

from __future__ import annotations

import re

from tars.core.base import RunStatus

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"TimeoutError|timed\s+out|exceeded\s+timeout|Timeout\s+of\s+\d+ms\s+exceeded", re.IGNORECASE), "timeout"),
    (re.compile(r"AssertionError|AssertionFailedError|expect\(|toBe|toEqual|toHaveBeenCalled|expected\s+.+\s+to\s+|assertEquals|assertThat", re.IGNORECASE), "assertion"),
    (re.compile(r"COMPILATION\s+ERROR|cannot\s+find\s+symbol|error\s+TS\d+|SyntaxError|Unexpected\s+token|compileTestJava\s+FAILED"), "compilation"),
    (re.compile(r"Cannot\s+find\s+module|MODULE_NOT_FOUND|ClassNotFoundException|NoClassDefFoundError|command\s+not\s+found|could\s+not\s+determine\s+executable|ENOENT|No\s+such\s+file\s+or\s+directory", re.IGNORECASE), "missing_dependency"),
    (re.compile(r"ECONNREFUSED|ECONNRESET|ETIMEDOUT|ConnectException|connection\s+refused|fetch\s+failed|net::ERR_", re.IGNORECASE), "network"),
    (re.compile(r"EACCES|EPERM|Permission\s+denied|AccessDeniedException", re.IGNORECASE), "permission"),
    (re.compile(r"SIGSEGV|SIGABRT|OutOfMemoryError|heap\s+out\s+of\s+memory|segmentation\s+fault|core\s+dumped", re.IGNORECASE), "crash"),
]


def categorize_failure(output: str | None, status: RunStatus | None = None) -> str | None:
    """Return a failure category for a non-passing run, or None if there is nothing to classify.

    Timed-out runs are always ``timeout``; otherwise the first matching
    pattern wins and unmatched output is ``unknown``.
    """
    if status == RunStatus.PASSED:
        return None
    if status == RunStatus.TIMED_OUT:
        return "timeout"
    if not output or not output.strip():
        return None

    for pattern, category in _PATTERNS:
        if pattern.search(output):
            return category

    return "unknown"
