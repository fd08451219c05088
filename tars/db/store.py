"""Run stores: where the engine records runs it creates and completes.

The engine only ever calls ``create_run`` and ``complete_run``; the read
methods exist for the HTTP layer. ``SqlRunStore`` writes to the relational
schema, ``MemoryRunStore`` keeps copies in-process for local use and tests.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tars.config import settings
from tars.core.base import Framework, RunCompletion, RunStatus, TestRun, TestSummary
from tars.models.test_run import TestRun as TestRunModel

logger = logging.getLogger(__name__)

ORPHANED_RUN_MESSAGE = "Server restarted during run"


class RunStore(Protocol):
    async def create_run(
        self, run_id: str, framework: Framework, test_file: str, scenario_id: str | None = None
    ) -> None: ...

    async def complete_run(self, run_id: str, completion: RunCompletion) -> bool: ...

    async def get_run(self, run_id: str) -> TestRun | None: ...

    async def list_runs(self, limit: int = 100, scenario_id: str | None = None) -> list[TestRun]: ...

    async def reconcile_orphaned_runs(self) -> list[str]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryRunStore:
    """Keeps a private copy of every run; callers never see live references."""

    def __init__(self) -> None:
        self._runs: dict[str, TestRun] = {}

    async def create_run(
        self, run_id: str, framework: Framework, test_file: str, scenario_id: str | None = None
    ) -> None:
        self._runs[run_id] = TestRun(
            id=run_id, framework=framework, test_file=test_file, scenario_id=scenario_id
        )

    async def complete_run(self, run_id: str, completion: RunCompletion) -> bool:
        run = self._runs.get(run_id)
        if run is None:
            return False
        self._runs[run_id] = replace(
            run,
            status=completion.status,
            output=completion.output,
            exit_code=completion.exit_code,
            duration_ms=completion.duration_ms,
            summary=completion.summary,
            error_category=completion.error_category,
            completed_at=_now(),
        )
        return True

    async def get_run(self, run_id: str) -> TestRun | None:
        run = self._runs.get(run_id)
        return replace(run) if run else None

    async def list_runs(self, limit: int = 100, scenario_id: str | None = None) -> list[TestRun]:
        runs = [r for r in self._runs.values() if scenario_id is None or r.scenario_id == scenario_id]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return [replace(r) for r in runs[:limit]]

    async def reconcile_orphaned_runs(self) -> list[str]:
        orphaned = [run_id for run_id, run in self._runs.items() if run.status == RunStatus.RUNNING]
        for run_id in orphaned:
            await self.complete_run(
                run_id,
                RunCompletion(
                    status=RunStatus.ERRORED,
                    output=ORPHANED_RUN_MESSAGE,
                    exit_code=None,
                    duration_ms=0,
                ),
            )
        return orphaned


def _to_domain(row: TestRunModel) -> TestRun:
    summary = TestSummary(**row.summary) if row.summary else None
    return TestRun(
        id=str(row.id),
        framework=Framework(row.framework),
        test_file=row.test_file or "",
        status=RunStatus(row.status),
        output=row.output or "",
        exit_code=row.exit_code,
        duration_ms=row.duration_ms or 0,
        summary=summary,
        error_category=row.error_category,
        scenario_id=str(row.scenario_id) if row.scenario_id else None,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


class SqlRunStore:
    """Run store backed by the ``test_runs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_run(
        self, run_id: str, framework: Framework, test_file: str, scenario_id: str | None = None
    ) -> None:
        async with self._session_factory() as db:
            db.add(
                TestRunModel(
                    id=run_id,
                    framework=framework.value,
                    status=RunStatus.RUNNING.value,
                    test_file=test_file,
                    scenario_id=scenario_id,
                )
            )
            await db.commit()

    async def complete_run(self, run_id: str, completion: RunCompletion) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                update(TestRunModel)
                .where(TestRunModel.id == run_id)
                .values(
                    status=completion.status.value,
                    output=completion.output,
                    exit_code=completion.exit_code,
                    duration_ms=completion.duration_ms,
                    summary=completion.summary.to_dict() if completion.summary else None,
                    error_category=completion.error_category,
                    completed_at=_now(),
                )
                .returning(TestRunModel.id)
            )
            found = result.scalar_one_or_none() is not None
            await db.commit()
        if not found:
            logger.warning("store: run %s not found on completion", run_id)
        return found

    async def get_run(self, run_id: str) -> TestRun | None:
        async with self._session_factory() as db:
            result = await db.execute(select(TestRunModel).where(TestRunModel.id == run_id))
            row = result.scalar_one_or_none()
        return _to_domain(row) if row else None

    async def list_runs(self, limit: int = 100, scenario_id: str | None = None) -> list[TestRun]:
        query = select(TestRunModel)
        if scenario_id is not None:
            query = query.where(TestRunModel.scenario_id == scenario_id)
        async with self._session_factory() as db:
            result = await db.execute(
                query.order_by(TestRunModel.created_at.desc()).limit(limit)
            )
            rows = list(result.scalars().all())
        return [_to_domain(r) for r in rows]

    async def reconcile_orphaned_runs(self) -> list[str]:
        """Mark runs left in ``running`` by a crashed process as errored."""
        async with self._session_factory() as db:
            result = await db.execute(
                update(TestRunModel)
                .where(TestRunModel.status == RunStatus.RUNNING.value)
                .values(
                    status=RunStatus.ERRORED.value,
                    output=ORPHANED_RUN_MESSAGE,
                    completed_at=_now(),
                )
                .returning(TestRunModel.id)
            )
            run_ids = [str(r[0]) for r in result.all()]
            await db.commit()
        return run_ids


@lru_cache
def get_run_store() -> RunStore:
    """Return the process-wide store selected by ``settings.run_store``."""
    if settings.run_store == "database":
        from tars.db.session import get_session_factory

        logger.info("store: using database run store")
        return SqlRunStore(get_session_factory())
    logger.info("store: using in-memory run store")
    return MemoryRunStore()
