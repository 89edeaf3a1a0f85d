"""Preview server supervision: spawn, readiness detection, tree termination."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import AsyncIterator, Sequence

import structlog

from .config import PreviewServerConfig
from .errors import CleanupError, PreviewPdfError, ProcessExitError, StartupTimeoutError
from .models import ChildHandle, KillStage, RuntimeContext

logger = structlog.get_logger()

# Lines still buffered in the stdout pipe when the server exits are drained
# for at most this long before the exit is reported.
_DRAIN_SECONDS = 1.0

# Pipe buffer per stream. Longer lines are still read, in pieces.
_STREAM_LIMIT = 1024 * 1024


async def _read_lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Yield lines from *stream* until EOF.

    A line longer than the reader's limit comes out as several chunks
    instead of killing the reader.
    """
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            if exc.partial:
                yield exc.partial
            return
        except asyncio.LimitOverrunError as exc:
            raw = await stream.read(exc.consumed)
            logger.debug("preview_server_line_split", chunk_bytes=len(raw))
        yield raw


async def _pump_lines(
    stream: asyncio.StreamReader,
    event: str,
    level: int,
    *,
    ready: asyncio.Future[str] | None = None,
    markers: Sequence[str] = (),
) -> None:
    """Log every line of *stream*; resolve *ready* on the first marker hit."""
    async for raw in _read_lines(stream):
        line = raw.decode(errors="replace").rstrip()
        if not line:
            continue
        logger.log(level, event, line=line)
        if ready is not None and not ready.done() and any(m in line for m in markers):
            ready.set_result(line)


def signal_process_tree(pid: int) -> KillStage:
    """Terminate the process group led by *pid*.

    SIGTERM goes out first; SIGKILL is sent only when SIGTERM could not be
    delivered.  A group that no longer exists counts as confirmed.  Never
    raises: an undeliverable SIGKILL is logged and reported as
    :attr:`KillStage.FAILED`.
    """
    logger.info("process_tree_kill_requested", pid=pid, stage=KillStage.REQUESTED.value)
    try:
        os.killpg(pid, signal.SIGTERM)
    except ProcessLookupError:
        logger.info("process_tree_already_gone", pid=pid)
        return KillStage.CONFIRMED
    except OSError as exc:
        logger.warning("graceful_shutdown_failed", pid=pid, error=str(exc))
    else:
        logger.info("process_tree_signalled", pid=pid, stage=KillStage.GRACEFUL_SENT.value)
        return KillStage.GRACEFUL_SENT

    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.info("process_tree_already_gone", pid=pid)
        return KillStage.CONFIRMED
    except OSError as exc:
        logger.error("process_tree_kill_failed", pid=pid, error=str(CleanupError(pid, exc)))
        return KillStage.FAILED
    logger.info("process_tree_signalled", pid=pid, stage=KillStage.FORCED_SENT.value)
    return KillStage.FORCED_SENT


async def stop_process_tree(handle: ChildHandle | None) -> KillStage:
    """Stop the server behind *handle* and wait for it to exit.

    Idempotent: an absent handle or an already exited process is a no-op
    that reports :attr:`KillStage.CONFIRMED`.  Never raises.
    """
    if handle is None or not handle.alive:
        return KillStage.CONFIRMED

    stage = signal_process_tree(handle.pid)
    if stage is KillStage.FAILED:
        return stage

    await handle.process.wait()
    logger.info(
        "preview_server_stopped",
        pid=handle.pid,
        returncode=handle.process.returncode,
    )
    return KillStage.CONFIRMED


class PreviewServer:
    """Owns the preview server process for a single run.

    The handle is published on *context* the moment the process exists,
    so a failed or interrupted startup still leaves something for
    :meth:`stop` to clean up.
    """

    def __init__(self, config: PreviewServerConfig, context: RuntimeContext) -> None:
        self._config = config
        self._context = context
        self._pumps: list[asyncio.Task[None]] = []
        self._stop_task: asyncio.Task[None] | None = None

    async def start(self) -> ChildHandle:
        """Spawn the server and wait until it announces its address.

        Raises :class:`StartupTimeoutError` when no readiness marker shows
        up in time, :class:`ProcessExitError` when the server exits first.
        """
        cfg = self._config
        logger.info("preview_server_starting", command=cfg.command)

        spawn = asyncio.create_task(self._spawn())
        try:
            process = await asyncio.shield(spawn)
        except asyncio.CancelledError:
            # The child may already exist; publish it so cleanup can reach it.
            if not spawn.cancelled():
                try:
                    self._publish(await spawn)
                except PreviewPdfError as exc:
                    logger.warning("preview_server_launch_failed", error=str(exc))
            raise
        handle = self._publish(process)

        ready: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        stdout_pump = asyncio.create_task(
            _pump_lines(
                process.stdout,
                "preview_server_output",
                logging.INFO,
                ready=ready,
                markers=cfg.readiness_markers,
            )
        )
        stderr_pump = asyncio.create_task(
            _pump_lines(process.stderr, "preview_server_error", logging.WARNING)
        )
        self._pumps = [stdout_pump, stderr_pump]

        exited = asyncio.create_task(process.wait())
        try:
            await asyncio.wait(
                {ready, exited},
                timeout=cfg.startup_timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if exited.done() and not ready.done():
                await asyncio.wait({stdout_pump}, timeout=_DRAIN_SECONDS)
        finally:
            exited.cancel()

        if ready.done():
            logger.info("preview_server_ready", pid=handle.pid, line=ready.result())
            await asyncio.sleep(cfg.settle_delay_seconds)
            return handle

        ready.cancel()
        if process.returncode is not None:
            raise ProcessExitError(process.returncode)
        raise StartupTimeoutError(cfg.startup_timeout_seconds)

    async def _spawn(self) -> asyncio.subprocess.Process:
        cfg = self._config
        try:
            return await asyncio.create_subprocess_exec(
                *cfg.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cfg.cwd,
                start_new_session=True,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise PreviewPdfError(f"Could not launch preview server: {exc}") from exc

    def _publish(self, process: asyncio.subprocess.Process) -> ChildHandle:
        handle = ChildHandle(pid=process.pid, process=process)
        self._context.handle = handle
        logger.info("preview_server_spawned", pid=handle.pid)
        return handle

    async def stop(self) -> None:
        """Terminate the server exactly once, however many callers ask.

        Concurrent and repeated calls all wait on the same termination.
        The wait itself is shielded so a cancelled caller does not abort
        an in-flight kill.
        """
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self._stop_once())
        await asyncio.shield(self._stop_task)

    async def _stop_once(self) -> None:
        handle = self._context.handle
        if handle is not None:
            logger.info("stopping_preview_server", pid=handle.pid)
        stage = await stop_process_tree(handle)
        if stage is KillStage.CONFIRMED:
            self._context.handle = None

        for pump in self._pumps:
            pump.cancel()
        await asyncio.gather(*self._pumps, return_exceptions=True)
        self._pumps = []
