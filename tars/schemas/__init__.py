"""Pydantic schemas for API request/response validation."""

from tars.schemas.test_run import (
    BatchResponse,
    BatchSummaryResponse,
    CheckFrameworkRequest,
    CheckFrameworkResponse,
    RunAllRequest,
    RunGeneratedRequest,
    RunTestRequest,
    RunTestResponse,
    TestRunResponse,
    TestSummaryResponse,
)

__all__ = [
    "BatchResponse",
    "BatchSummaryResponse",
    "CheckFrameworkRequest",
    "CheckFrameworkResponse",
    "RunAllRequest",
    "RunGeneratedRequest",
    "RunTestRequest",
    "RunTestResponse",
    "TestRunResponse",
    "TestSummaryResponse",
]
