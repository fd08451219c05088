"""Unit tests for the WebSocket connection manager and run notifier.

Total: 5 tests
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_run
from tars.core.base import Framework, RunStatus, TestSummary
from tars.ws import ConnectionManager, WebSocketRunNotifier


def _socket() -> MagicMock:
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_broadcast_reaches_only_matching_channel(self):
        manager = ConnectionManager()
        subscriber, other = _socket(), _socket()
        await manager.connect(subscriber, "test:run-1")
        await manager.connect(other, "test:run-2")

        await manager.broadcast("test:run-1", {"type": "test:progress"})

        subscriber.send_text.assert_awaited_once_with(json.dumps({"type": "test:progress"}))
        other.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dead_socket_is_dropped(self):
        manager = ConnectionManager()
        dead = _socket()
        dead.send_text.side_effect = RuntimeError("closed")
        await manager.connect(dead, "test:run-1")

        await manager.broadcast("test:run-1", {"type": "test:complete"})
        await manager.broadcast("test:run-1", {"type": "test:complete"})

        assert dead.send_text.await_count == 1


class TestWebSocketRunNotifier:
    @pytest.mark.asyncio
    async def test_started_event_shape(self):
        manager = MagicMock()
        manager.broadcast = AsyncMock()
        notifier = WebSocketRunNotifier(manager)

        await notifier.started("run-1", "login.test.js", Framework.JEST)

        channel, message = manager.broadcast.await_args.args
        assert channel == "test:run-1"
        assert message["type"] == "test:started"
        assert message["payload"] == {
            "runId": "run-1",
            "testFile": "login.test.js",
            "framework": "jest",
            "status": "running",
        }
        assert "timestamp" in message

    @pytest.mark.asyncio
    async def test_progress_event_carries_tail(self):
        manager = MagicMock()
        manager.broadcast = AsyncMock()

        await WebSocketRunNotifier(manager).progress("run-1", 40, "  2 passing")

        message = manager.broadcast.await_args.args[1]
        assert message["type"] == "test:progress"
        assert message["payload"]["progress"] == 40
        assert message["payload"]["output"] == "  2 passing"

    @pytest.mark.asyncio
    async def test_complete_event_carries_result(self):
        manager = MagicMock()
        manager.broadcast = AsyncMock()
        run = make_run(RunStatus.FAILED, duration_ms=1500)
        run.exit_code = 1
        run.summary = TestSummary(total=3, passed=2, failed=1)

        await WebSocketRunNotifier(manager).completed(run.id, run)

        message = manager.broadcast.await_args.args[1]
        assert message["type"] == "test:complete"
        assert message["payload"]["status"] == "failed"
        assert message["payload"]["exitCode"] == 1
        assert message["payload"]["durationMs"] == 1500
        assert message["payload"]["summary"] == {"total": 3, "passed": 2, "failed": 1, "skipped": 0}
