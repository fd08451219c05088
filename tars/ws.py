"""WebSocket fan-out of live test-run events."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from tars.core.base import Framework, TestRun

logger = logging.getLogger(__name__)


def channel_name(job_type: str, job_id: str) -> str:
    """Channel a client subscribes to, e.g. ``test:<run_id>``."""
    return f"{job_type}:{job_id}"


class ConnectionManager:
    """Tracks subscribed sockets per channel and broadcasts JSON messages to them."""

    def __init__(self) -> None:
        self._channels: defaultdict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, ws: WebSocket, channel: str) -> None:
        await ws.accept()
        self._channels[channel].add(ws)
        logger.debug("ws: subscribed to %s", channel)

    def disconnect(self, ws: WebSocket, channel: str) -> None:
        subscribers = self._channels.get(channel)
        if subscribers is None:
            return
        subscribers.discard(ws)
        if not subscribers:
            del self._channels[channel]
        logger.debug("ws: unsubscribed from %s", channel)

    async def broadcast(self, channel: str, data: dict[str, Any]) -> None:
        """Send *data* to every subscriber of *channel*; sockets that fail are dropped."""
        subscribers = self._channels.get(channel)
        if not subscribers:
            return
        message = json.dumps(data)
        for ws in list(subscribers):
            try:
                await ws.send_text(message)
            except Exception as exc:
                logger.debug("ws: dropping subscriber of %s: %s", channel, exc)
                self.disconnect(ws, channel)


ws_manager = ConnectionManager()


class WebSocketRunNotifier:
    """Publishes test run lifecycle events on the ``test:<run_id>`` channel."""

    def __init__(self, manager: ConnectionManager | None = None) -> None:
        self._manager = manager or ws_manager

    async def _emit(self, run_id: str, event: str, payload: dict[str, Any]) -> None:
        await self._manager.broadcast(
            channel_name("test", run_id),
            {
                "type": f"test:{event}",
                "payload": {"runId": run_id, **payload},
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    async def started(self, run_id: str, test_file: str, framework: Framework) -> None:
        await self._emit(
            run_id,
            "started",
            {"testFile": test_file, "framework": framework.value, "status": "running"},
        )

    async def progress(self, run_id: str, percentage: int, tail: str) -> None:
        await self._emit(run_id, "progress", {"progress": percentage, "output": tail})

    async def completed(self, run_id: str, run: TestRun) -> None:
        await self._emit(
            run_id,
            "complete",
            {
                "status": run.status.value,
                "exitCode": run.exit_code,
                "durationMs": run.duration_ms,
                "summary": run.summary.to_dict() if run.summary else None,
            },
        )


async def ws_progress_endpoint(ws: WebSocket, job_type: str, job_id: str) -> None:
    """Subscribe *ws* to ``job_type:job_id`` until the client goes away."""
    channel = channel_name(job_type, job_id)
    await ws_manager.connect(ws, channel)
    try:
        while True:
            # Client messages are ignored; reading detects the disconnect.
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(ws, channel)
