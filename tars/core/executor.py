"""Process execution controller.

Runs one test target as a child process, collects its combined output,
enforces the invocation deadline and resolves to exactly one terminal state:

    starting -> running -> passed | failed | errored | timed_out

On deadline expiry the child receives SIGTERM and, if it is still alive after
a fixed grace period, SIGKILL. On POSIX the child leads its own process group
so that signals also reach the workers started by wrappers such as ``npx``
or ``./gradlew``. Cancelling the awaiting task kills the group.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import shutil
import signal
import sys
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from tars.core.base import RunStatus, TestInvocation
from tars.core.frameworks import build_command

logger = logging.getLogger(__name__)

# Interval between the graceful and the forceful termination signal.
TERMINATION_GRACE_SECONDS = 5.0

# Variables forced onto every child so TTY-sensitive reporters behave the same
# when driven programmatically.
CHILD_ENV_OVERRIDES = {"CI": "true", "FORCE_COLOR": "1"}

_READ_CHUNK = 64 * 1024
_IS_POSIX = sys.platform != "win32"

OutputCallback = Callable[[str], Awaitable[None]]

_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.STARTING: frozenset({RunStatus.RUNNING, RunStatus.ERRORED}),
    RunStatus.RUNNING: frozenset(
        {RunStatus.PASSED, RunStatus.FAILED, RunStatus.ERRORED, RunStatus.TIMED_OUT}
    ),
}


@dataclass
class ExecutionOutcome:
    """Terminal result of one controller run."""

    status: RunStatus
    output: str
    exit_code: int | None
    duration_ms: int
    error: str | None = None
    # (signal name, time.monotonic()) for every termination signal sent
    signals: list[tuple[str, float]] = field(default_factory=list)


def build_environment(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Inherit the parent environment, then caller overrides, then the fixed CI markers."""
    return {**os.environ, **(overrides or {}), **CHILD_ENV_OVERRIDES}


def _resolve_executable(executable: str, env: dict[str, str]) -> str:
    # Paths such as ./gradlew are resolved by the child against its own cwd.
    if os.sep in executable or (os.altsep and os.altsep in executable):
        return executable
    return shutil.which(executable, path=env.get("PATH")) or executable


class ProcessController:
    """Drive a single child process from creation to a terminal state."""

    def __init__(
        self,
        invocation: TestInvocation,
        *,
        on_output: OutputCallback | None = None,
    ) -> None:
        self.invocation = invocation
        self._on_output = on_output
        self._state = RunStatus.STARTING
        self._chunks: list[str] = []
        self._signals: list[tuple[str, float]] = []
        self._stream_error: str | None = None
        self._deadline_fired = False
        self._started = 0.0

    @property
    def state(self) -> RunStatus:
        return self._state

    @property
    def output(self) -> str:
        return "".join(self._chunks)

    def _transition(self, new_state: RunStatus) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if new_state not in allowed:
            raise RuntimeError(
                f"Illegal transition {self._state.value} -> {new_state.value}"
            )
        logger.debug("engine: %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    async def run(self) -> ExecutionOutcome:
        """Spawn the process and wait for it to exit or for the deadline to fire."""
        executable, args = build_command(self.invocation)
        env = build_environment(self.invocation.env)
        executable = _resolve_executable(executable, env)

        logger.info(
            "engine: running %s %s in cwd=%s",
            executable,
            " ".join(args),
            self.invocation.working_dir,
        )

        self._started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=self.invocation.working_dir,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_IS_POSIX,
            )
        except (OSError, ValueError) as exc:
            # ValueError: arguments the OS cannot accept, e.g. an embedded NUL.
            self._transition(RunStatus.ERRORED)
            message = f"Process error: {exc}"
            logger.warning("engine: could not start %s: %s", executable, exc)
            return ExecutionOutcome(
                status=RunStatus.ERRORED,
                output=message,
                exit_code=None,
                duration_ms=self._elapsed_ms(),
                error=message,
            )

        self._transition(RunStatus.RUNNING)
        readers = [
            asyncio.create_task(self._drain(proc.stdout)),  # type: ignore[arg-type]
            asyncio.create_task(self._drain(proc.stderr)),  # type: ignore[arg-type]
        ]

        try:
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.invocation.timeout_seconds)
            except asyncio.TimeoutError:
                self._deadline_fired = True
                logger.warning(
                    "engine: %s exceeded %dms deadline, terminating pid %s",
                    self.invocation.test_file,
                    self.invocation.timeout_ms,
                    proc.pid,
                )
                await self._terminate(proc)

            # A grandchild may keep the pipes open after the child exits.
            _done, pending = await asyncio.wait(readers, timeout=TERMINATION_GRACE_SECONDS)
        except asyncio.CancelledError:
            logger.warning("engine: run of %s cancelled, killing pid %s", self.invocation.test_file, proc.pid)
            self._send(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
            for task in readers:
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        return self._finish(proc.returncode)

    def _finish(self, returncode: int | None) -> ExecutionOutcome:
        error: str | None = None
        if self._stream_error is not None:
            status = RunStatus.ERRORED
            error = self._stream_error
            self._chunks.append(f"\nProcess error: {self._stream_error}")
        elif self._deadline_fired:
            status = RunStatus.TIMED_OUT
            error = f"Timed out after {self.invocation.timeout_ms}ms"
        elif returncode == 0:
            status = RunStatus.PASSED
        else:
            status = RunStatus.FAILED

        self._transition(status)
        return ExecutionOutcome(
            status=status,
            output=self.output,
            exit_code=returncode,
            duration_ms=self._elapsed_ms(),
            error=error,
            signals=list(self._signals),
        )

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        """Append decoded chunks from *stream* to the shared buffer in arrival order."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                raw = await stream.read(_READ_CHUNK)
                if not raw:
                    break
                await self._append(decoder.decode(raw))
        except OSError as exc:
            if not self._deadline_fired and self._stream_error is None:
                self._stream_error = str(exc)
            logger.warning("engine: stream error from %s: %s", self.invocation.test_file, exc)
        await self._append(decoder.decode(b"", final=True))

    async def _append(self, text: str) -> None:
        if not text:
            return
        self._chunks.append(text)
        if self._on_output is not None:
            await self._on_output(text)

    def _send(self, proc: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        # The group can outlive its leader, so POSIX signals it regardless.
        if proc.returncode is not None and not _IS_POSIX:
            return
        self._signals.append((sig.name, time.monotonic()))
        try:
            if _IS_POSIX:
                os.killpg(proc.pid, sig)
            else:
                proc.send_signal(sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            # Group not ours to signal; fall back to the direct child.
            with contextlib.suppress(ProcessLookupError):
                proc.send_signal(sig)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Graceful signal first, forceful one after the grace period."""
        self._send(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=TERMINATION_GRACE_SECONDS)
            return
        except asyncio.TimeoutError:
            logger.warning(
                "engine: pid %s ignored SIGTERM for %.0fs, killing",
                proc.pid,
                TERMINATION_GRACE_SECONDS,
            )
        kill_signal = getattr(signal, "SIGKILL", signal.SIGTERM)
        self._send(proc, kill_signal)
        try:
            await asyncio.wait_for(proc.wait(), timeout=TERMINATION_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.error("engine: pid %s still not reaped after SIGKILL", proc.pid)


async def execute(
    invocation: TestInvocation,
    *,
    on_output: OutputCallback | None = None,
) -> ExecutionOutcome:
    """Run *invocation* to completion and return its outcome."""
    return await ProcessController(invocation, on_output=on_output).run()
