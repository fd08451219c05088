"""Test run lifecycle: identity, persistence hooks and notifications around one invocation."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from tars.config import settings
from tars.core.base import Framework, RunCompletion, RunStatus, TestInvocation, TestRun
from tars.core.error_categorizer import categorize_failure
from tars.core.executor import ExecutionOutcome, execute
from tars.core.frameworks import get_adapter
from tars.core.output_parser import parse_summary
from tars.core.tracing import add_span_attribute, create_span

if TYPE_CHECKING:
    from tars.db.store import RunStore

logger = logging.getLogger(__name__)


class RunNotifier(Protocol):
    async def started(self, run_id: str, test_file: str, framework: Framework) -> None: ...

    async def progress(self, run_id: str, percentage: int, tail: str) -> None: ...

    async def completed(self, run_id: str, run: TestRun) -> None: ...


class _ProgressReporter:
    """Forwards a throttled tail of the child's output to the notifier."""

    def __init__(self, notify: Callable[..., Awaitable[None]], run_id: str, timeout_ms: int) -> None:
        self._notify = notify
        self._run_id = run_id
        self._timeout_ms = timeout_ms
        self._tail = ""
        self._started = time.monotonic()
        self._last_sent: float | None = None

    async def __call__(self, chunk: str) -> None:
        self._tail = (self._tail + chunk)[-settings.output_tail_chars:]
        now = time.monotonic()
        if (
            self._last_sent is not None
            and (now - self._last_sent) * 1000 < settings.progress_interval_ms
        ):
            return
        self._last_sent = now
        elapsed_ms = (now - self._started) * 1000
        percentage = min(int(elapsed_ms * 100 / self._timeout_ms), 99)
        await self._notify("progress", self._run_id, percentage, self._tail)


class TestRunManager:
    """Run single invocations, recording each one exactly once in the store."""

    __test__ = False

    def __init__(self, store: RunStore, notifier: RunNotifier | None = None) -> None:
        self.store = store
        self.notifier = notifier

    async def _notify(self, event: str, *args: object) -> None:
        """Call a notifier hook (no-op if no notifier is attached)."""
        if self.notifier is None:
            return
        try:
            await getattr(self.notifier, event)(*args)
        except Exception as exc:
            logger.debug("engine: %s notification failed: %s", event, exc)

    async def _create(self, run: TestRun) -> None:
        try:
            await self.store.create_run(
                run.id, run.framework, run.test_file, scenario_id=run.scenario_id
            )
        except Exception:
            logger.exception("engine: could not record start of run %s", run.id)

    async def _complete(self, run: TestRun, completion: RunCompletion) -> None:
        try:
            await self.store.complete_run(run.id, completion)
        except Exception:
            logger.exception("engine: could not record completion of run %s", run.id)

    async def run_one(self, invocation: TestInvocation) -> TestRun:
        """Execute *invocation* and return its terminal TestRun.

        Raises UnsupportedFrameworkError before anything is recorded or
        spawned if the framework has no adapter; every other outcome is
        reported through the run's status.
        """
        framework = get_adapter(invocation.framework).framework

        run = TestRun(
            framework=framework,
            test_file=invocation.test_file,
            scenario_id=invocation.scenario_id,
        )
        await self._create(run)
        await self._notify("started", run.id, run.test_file, run.framework)

        reporter = _ProgressReporter(self._notify, run.id, invocation.timeout_ms)
        with create_span(
            "tars.test_run",
            {
                "tars.run_id": run.id,
                "tars.framework": framework.value,
                "tars.test_file": invocation.test_file,
            },
        ):
            started = time.monotonic()
            try:
                outcome = await execute(invocation, on_output=reporter)
            except Exception as exc:
                logger.exception("engine: run %s failed before reaching a terminal state", run.id)
                message = f"Process error: {exc}"
                outcome = ExecutionOutcome(
                    status=RunStatus.ERRORED,
                    output=message,
                    exit_code=None,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    error=message,
                )
            add_span_attribute("tars.status", outcome.status.value)

        completion = RunCompletion(
            status=outcome.status,
            output=outcome.output,
            exit_code=outcome.exit_code,
            duration_ms=outcome.duration_ms,
            summary=parse_summary(outcome.output, framework),
            error_category=categorize_failure(outcome.output, outcome.status),
        )
        run.complete(completion)
        await self._complete(run, completion)
        await self._notify("completed", run.id, run)

        if run.summary:
            logger.info(
                "engine: run %s %s in %dms (%d/%d passed, %d failed)",
                run.id,
                run.status.value,
                run.duration_ms,
                run.summary.passed,
                run.summary.total,
                run.summary.failed,
            )
        else:
            logger.info("engine: run %s %s in %dms", run.id, run.status.value, run.duration_ms)
        return run
