"""Runtime state shared between the runner, the supervisor and signal handlers."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from enum import Enum


class RunState(str, Enum):
    """Lifecycle of a single export run."""

    IDLE = "idle"
    SERVER_STARTING = "server_starting"
    SERVER_RUNNING = "server_running"
    EXPORTING = "exporting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


class KillStage(str, Enum):
    """Progress of a process tree termination."""

    REQUESTED = "requested"
    GRACEFUL_SENT = "graceful_sent"
    FORCED_SENT = "forced_sent"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class ChildHandle:
    """The spawned preview server."""

    pid: int
    process: asyncio.subprocess.Process

    @property
    def alive(self) -> bool:
        return self.process.returncode is None


@dataclass
class RuntimeContext:
    """State visible to every exit path of a run.

    The handle is set as soon as the server is spawned and cleared only
    after its termination is confirmed, so signal handlers and the
    interpreter exit hook can always find what is left to clean up.
    """

    handle: ChildHandle | None = None
    state: RunState = RunState.IDLE
    interrupted_by: signal.Signals | None = None
    error: BaseException | None = None
