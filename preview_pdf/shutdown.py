"""Cleanup on SIGTERM / SIGINT and at interpreter exit."""

from __future__ import annotations

import asyncio
import atexit
import signal

import structlog

from .models import RunState, RuntimeContext
from .supervisor import signal_process_tree

logger = structlog.get_logger()


def install_signal_handlers(context: RuntimeContext, task: asyncio.Task) -> None:
    """Register SIGTERM and SIGINT handlers that interrupt *task*.

    Call this once from the running event loop.  The first signal is
    recorded on *context* and cancels *task*, whose cleanup path then
    stops the preview server.  Signals that arrive once cleanup has
    started are logged and otherwise ignored, so cleanup runs to the end.
    """
    loop = asyncio.get_running_loop()

    def _handle(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name, state=context.state.value)
        if context.state in (RunState.CLEANING_UP, RunState.DONE):
            return
        if context.interrupted_by is None:
            context.interrupted_by = sig
        task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle, sig)


def _cleanup_at_exit(context: RuntimeContext) -> None:
    handle = context.handle
    if handle is None:
        return
    logger.warning("preview_server_left_running", pid=handle.pid)
    signal_process_tree(handle.pid)
    context.handle = None


def install_exit_hook(context: RuntimeContext) -> None:
    """Make interpreter exit terminate any preview server still on *context*.

    The event loop is gone by then, so this only sends the signals and
    does not wait for the process tree to go away.
    """
    atexit.register(_cleanup_at_exit, context)
