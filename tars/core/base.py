"""Core types shared by the execution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

DEFAULT_TIMEOUT_MS = 60_000


class Framework(str, Enum):
    """Test frameworks the engine knows how to invoke."""

    JEST = "jest"
    MOCHA = "mocha"
    CYPRESS = "cypress"
    PLAYWRIGHT = "playwright"
    JUNIT = "junit"
    TESTNG = "testng"


class RunStatus(str, Enum):
    """Lifecycle state of a single test invocation."""

    STARTING = "starting"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RunStatus.PASSED, RunStatus.FAILED, RunStatus.ERRORED, RunStatus.TIMED_OUT}
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TestInvocation:
    """One request to execute a single test target under a single framework."""

    __test__ = False

    framework: Framework
    test_file: str
    working_dir: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    env: dict[str, str] = field(default_factory=dict)
    scenario_id: str | None = None

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class TestSummary:
    """Pass/fail/skip counts extracted from a framework's output."""

    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class RunCompletion:
    """Terminal data handed to the store when a run completes."""

    status: RunStatus
    output: str
    exit_code: int | None
    duration_ms: int
    summary: TestSummary | None = None
    error_category: str | None = None


@dataclass
class TestRun:
    """Record of one invocation, mutated exactly once into a terminal state."""

    __test__ = False

    framework: Framework
    test_file: str
    id: str = field(default_factory=lambda: str(uuid4()))
    status: RunStatus = RunStatus.RUNNING
    output: str = ""
    exit_code: int | None = None
    duration_ms: int = 0
    summary: TestSummary | None = None
    error_category: str | None = None
    scenario_id: str | None = None
    created_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.PASSED

    def complete(self, completion: RunCompletion) -> None:
        """Move the run into its terminal state."""
        if self.status.is_terminal:
            raise RuntimeError(f"Run {self.id} is already {self.status.value}")
        if not completion.status.is_terminal:
            raise RuntimeError(f"Cannot complete run {self.id} as {completion.status.value}")
        self.status = completion.status
        self.output = completion.output
        self.exit_code = completion.exit_code
        self.duration_ms = completion.duration_ms
        self.summary = completion.summary
        self.error_category = completion.error_category
        self.completed_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "framework": self.framework.value,
            "test_file": self.test_file,
            "status": self.status.value,
            "output": self.output,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "summary": self.summary.to_dict() if self.summary else None,
            "error_category": self.error_category,
            "scenario_id": self.scenario_id,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
