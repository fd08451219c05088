"""Shared pytest fixtures for TARS engine tests."""

from __future__ import annotations

import sys
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from tars.api.v1.tests import get_store
from tars.core.base import Framework, RunStatus, TestInvocation, TestRun
from tars.core.executor import ExecutionOutcome
from tars.core.lifecycle import TestRunManager
from tars.db.store import MemoryRunStore
from tars.main import app


# ── Domain helpers ────────────────────────────────────────────────────────────

def make_invocation(
    working_dir: str,
    *,
    framework: Framework | str = Framework.JEST,
    test_file: str = "login.test.js",
    timeout_ms: int = 10_000,
    env: dict[str, str] | None = None,
) -> TestInvocation:
    """Build an invocation rooted at *working_dir*."""
    return TestInvocation(
        framework=framework,  # type: ignore[arg-type]
        test_file=test_file,
        working_dir=working_dir,
        timeout_ms=timeout_ms,
        env=env or {},
    )


def make_outcome(
    status: RunStatus = RunStatus.PASSED,
    *,
    output: str = "",
    exit_code: int | None = 0,
    duration_ms: int = 120,
) -> ExecutionOutcome:
    """Build a terminal ExecutionOutcome as returned by the process controller."""
    return ExecutionOutcome(
        status=status,
        output=output,
        exit_code=exit_code,
        duration_ms=duration_ms,
    )


def make_run(
    status: RunStatus = RunStatus.PASSED,
    *,
    test_file: str = "login.test.js",
    duration_ms: int = 100,
) -> TestRun:
    """Build a TestRun already in *status*."""
    return TestRun(
        framework=Framework.JEST,
        test_file=test_file,
        status=status,
        duration_ms=duration_ms,
    )


def python_command(code: str):
    """Patch the adapter registry so the controller runs ``python -c code``."""
    return patch(
        "tars.core.executor.build_command",
        return_value=(sys.executable, ["-c", code]),
    )


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def memory_store() -> MemoryRunStore:
    return MemoryRunStore()


@pytest.fixture
def mock_store() -> AsyncMock:
    """Store double recording every persistence call."""
    store = AsyncMock()
    store.complete_run = AsyncMock(return_value=True)
    return store


@pytest.fixture
def mock_notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def manager(mock_store: AsyncMock, mock_notifier: AsyncMock) -> TestRunManager:
    return TestRunManager(mock_store, mock_notifier)


@pytest.fixture
async def client(memory_store: MemoryRunStore) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client backed by an in-memory run store."""
    app.dependency_overrides[get_store] = lambda: memory_store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
