"""Test execution engine."""

from tars.core.base import (
    DEFAULT_TIMEOUT_MS,
    Framework,
    RunCompletion,
    RunStatus,
    TestInvocation,
    TestRun,
    TestSummary,
)
from tars.core.batch import BatchResult, BatchSummary, run_batch
from tars.core.discovery import find_test_files
from tars.core.executor import ExecutionOutcome, ProcessController, execute
from tars.core.frameworks import (
    ADAPTERS,
    FrameworkAdapter,
    UnsupportedFrameworkError,
    build_command,
    framework_is_available,
    get_adapter,
)
from tars.core.lifecycle import RunNotifier, TestRunManager
from tars.core.output_parser import parse_summary

__all__ = [
    "ADAPTERS",
    "BatchResult",
    "BatchSummary",
    "DEFAULT_TIMEOUT_MS",
    "ExecutionOutcome",
    "Framework",
    "FrameworkAdapter",
    "ProcessController",
    "RunCompletion",
    "RunNotifier",
    "RunStatus",
    "TestInvocation",
    "TestRun",
    "TestRunManager",
    "TestSummary",
    "UnsupportedFrameworkError",
    "build_command",
    "execute",
    "find_test_files",
    "framework_is_available",
    "get_adapter",
    "parse_summary",
    "run_batch",
]
