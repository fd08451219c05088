"""Test execution API endpoints."""

import logging
import os
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tars.config import settings
from tars.core.base import TestInvocation, TestRun
from tars.core.batch import BatchResult, run_batch
from tars.core.frameworks import framework_is_available
from tars.core.lifecycle import TestRunManager
from tars.db.store import RunStore, get_run_store
from tars.schemas.test_run import (
    BatchResponse,
    CheckFrameworkRequest,
    CheckFrameworkResponse,
    RunAllRequest,
    RunGeneratedRequest,
    RunTestRequest,
    RunTestResponse,
    TestRunResponse,
)
from tars.ws import WebSocketRunNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store() -> RunStore:
    """Dependency that provides the configured run store."""
    return get_run_store()


def get_run_manager(store: RunStore = Depends(get_store)) -> TestRunManager:
    """Dependency that provides a run manager publishing to WebSocket subscribers."""
    return TestRunManager(store, WebSocketRunNotifier())


def _batch_response(batch: BatchResult) -> BatchResponse:
    return BatchResponse.model_validate(batch.to_dict())


async def _run_directory(
    manager: TestRunManager,
    directory: str,
    run_in: RunAllRequest | RunGeneratedRequest,
) -> BatchResponse:
    try:
        batch = await run_batch(
            manager,
            directory,
            run_in.framework,
            getattr(run_in, "pattern", None),
            timeout_ms=getattr(run_in, "timeout", None),
            max_parallel=settings.max_parallel_runs,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _batch_response(batch)


@router.post("/run", response_model=RunTestResponse)
async def run_test(
    run_in: RunTestRequest,
    manager: TestRunManager = Depends(get_run_manager),
) -> RunTestResponse:
    """Run a single test file and wait for its result."""
    working_dir = os.path.abspath(run_in.working_dir)
    test_file = (
        run_in.test_file
        if os.path.isabs(run_in.test_file)
        else os.path.join(working_dir, run_in.test_file)
    )
    logger.info("api: executing %s test %s", run_in.framework.value, test_file)

    run = await manager.run_one(
        TestInvocation(
            framework=run_in.framework,
            test_file=test_file,
            working_dir=working_dir,
            timeout_ms=run_in.timeout,
            env=dict(run_in.env or {}),
            scenario_id=str(run_in.scenario_id) if run_in.scenario_id else None,
        )
    )
    return RunTestResponse(success=run.success, result=TestRunResponse.model_validate(run))


@router.post("/run-all", response_model=BatchResponse)
async def run_all_tests(
    run_in: RunAllRequest,
    manager: TestRunManager = Depends(get_run_manager),
) -> BatchResponse:
    """Run every matching test file in a directory, one after another."""
    logger.info("api: running all %s tests in %s", run_in.framework.value, run_in.directory)
    return await _run_directory(manager, run_in.directory, run_in)


@router.post("/run-generated", response_model=BatchResponse)
async def run_generated_tests(
    run_in: RunGeneratedRequest,
    manager: TestRunManager = Depends(get_run_manager),
) -> BatchResponse:
    """Run the tests generated into a directory (framework defaults to jest)."""
    logger.info("api: running generated tests from %s", run_in.tests_directory)
    return await _run_directory(manager, run_in.tests_directory, run_in)


@router.post("/check-framework", response_model=CheckFrameworkResponse)
async def check_framework(run_in: CheckFrameworkRequest) -> CheckFrameworkResponse:
    """Report whether the working directory declares the framework."""
    working_dir = os.path.abspath(run_in.working_dir)
    return CheckFrameworkResponse(
        framework=run_in.framework,
        available=framework_is_available(run_in.framework, working_dir),
        working_dir=run_in.working_dir,
    )


@router.get("/runs", response_model=list[TestRunResponse])
async def list_test_runs(
    limit: int = 100,
    scenario_id: UUID | None = Query(default=None, alias="scenarioId"),
    store: RunStore = Depends(get_store),
) -> list[TestRun]:
    """List recent test runs, newest first, optionally for one scenario."""
    return await store.list_runs(
        limit=max(1, min(limit, 500)),
        scenario_id=str(scenario_id) if scenario_id else None,
    )


@router.get("/runs/{run_id}", response_model=TestRunResponse)
async def get_test_run(
    run_id: str,
    store: RunStore = Depends(get_store),
) -> TestRun:
    """Get a specific test run."""
    run = await store.get_run(run_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test run not found",
        )
    return run
