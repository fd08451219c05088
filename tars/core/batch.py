"""Batch orchestration: discover test files and run each one."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from tars.config import settings
from tars.core.base import Framework, RunStatus, TestInvocation, TestRun
from tars.core.discovery import find_test_files
from tars.core.frameworks import get_adapter
from tars.core.lifecycle import TestRunManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate counts over the runs of a batch."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    errored: int = 0
    timed_out: int = 0
    total_duration_ms: int = 0

    @classmethod
    def from_runs(cls, runs: list[TestRun]) -> BatchSummary:
        def _count(status: RunStatus) -> int:
            return sum(1 for r in runs if r.status == status)

        return cls(
            total=len(runs),
            passed=_count(RunStatus.PASSED),
            failed=_count(RunStatus.FAILED),
            errored=_count(RunStatus.ERRORED),
            timed_out=_count(RunStatus.TIMED_OUT),
            total_duration_ms=sum(r.duration_ms for r in runs),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errored": self.errored,
            "timed_out": self.timed_out,
            "total_duration_ms": self.total_duration_ms,
        }


@dataclass
class BatchResult:
    """Runs in discovery order plus their aggregate; never persisted."""

    runs: list[TestRun] = field(default_factory=list)

    @property
    def summary(self) -> BatchSummary:
        return BatchSummary.from_runs(self.runs)

    @property
    def success(self) -> bool:
        summary = self.summary
        return summary.failed == 0 and summary.errored == 0 and summary.timed_out == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.runs],
        }


async def run_batch(
    manager: TestRunManager,
    directory: str,
    framework: Framework | str,
    pattern: str | None = None,
    *,
    timeout_ms: int | None = None,
    env: dict[str, str] | None = None,
    max_parallel: int = 1,
) -> BatchResult:
    """Run every test file discovered under *directory*.

    With ``max_parallel == 1`` each run completes before the next starts.
    Larger values run up to that many at once; results still come back in
    discovery order.
    """
    resolved = get_adapter(framework).framework
    working_dir = os.path.abspath(directory)
    files = find_test_files(working_dir, resolved, pattern)
    if not files:
        logger.info("engine: no %s test files found in %s", resolved.value, working_dir)
        return BatchResult()

    logger.info("engine: found %d %s test file(s) in %s", len(files), resolved.value, working_dir)
    invocations = [
        TestInvocation(
            framework=resolved,
            test_file=path,
            working_dir=working_dir,
            timeout_ms=timeout_ms if timeout_ms is not None else settings.default_test_timeout_ms,
            env=dict(env or {}),
        )
        for path in files
    ]

    if max_parallel <= 1:
        runs = []
        for invocation in invocations:
            runs.append(await manager.run_one(invocation))
        return BatchResult(runs=runs)

    semaphore = asyncio.Semaphore(max_parallel)

    async def _bounded(invocation: TestInvocation) -> TestRun:
        async with semaphore:
            return await manager.run_one(invocation)

    # gather preserves argument order, so results stay in discovery order
    runs = await asyncio.gather(*(_bounded(inv) for inv in invocations))
    return BatchResult(runs=list(runs))
