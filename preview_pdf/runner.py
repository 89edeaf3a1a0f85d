"""ExportRunner: sequences server startup, PDF export and cleanup."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import structlog

from .config import OUTPUT_PDF, ExportConfig
from .errors import PreviewPdfError
from .exporter import PdfExporter
from .models import ChildHandle, RunState, RuntimeContext
from .shutdown import install_signal_handlers
from .supervisor import PreviewServer

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1

_NEXT_STATE: dict[RunState, RunState] = {
    RunState.IDLE: RunState.SERVER_STARTING,
    RunState.SERVER_STARTING: RunState.SERVER_RUNNING,
    RunState.SERVER_RUNNING: RunState.EXPORTING,
    RunState.EXPORTING: RunState.CLEANING_UP,
    RunState.CLEANING_UP: RunState.DONE,
}


class Server(Protocol):
    async def start(self) -> ChildHandle: ...

    async def stop(self) -> None: ...


class Exporter(Protocol):
    async def run(self, target_url: str, output_path: Path) -> Path: ...


class ExportRunner:
    """Run one export from an idle start to a stopped server.

    Call ``asyncio.run(runner.run())``; the returned integer is the
    process exit code.  The preview server is stopped on every path out
    of :meth:`run`, including cancellation by SIGINT / SIGTERM.
    """

    def __init__(
        self,
        config: ExportConfig,
        *,
        output_path: Path = Path(OUTPUT_PDF),
        context: RuntimeContext | None = None,
        server: Server | None = None,
        exporter: Exporter | None = None,
    ) -> None:
        self.config = config
        self.output_path = output_path
        self.context = context or RuntimeContext()
        self._server = server or PreviewServer(config.server, self.context)
        self._exporter = exporter or PdfExporter(config.browser)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, new: RunState) -> None:
        """Move to *new*; any unfinished state may jump to cleanup."""
        old = self.context.state
        allowed = _NEXT_STATE.get(old) is new or (
            new is RunState.CLEANING_UP and old is not RunState.DONE
        )
        if not allowed:
            raise RuntimeError(f"Illegal run state transition {old.value} -> {new.value}")
        self.context.state = new
        logger.debug("run_state_changed", old=old.value, new=new.value)

    def exit_code(self) -> int:
        if self.context.interrupted_by is not None:
            return 128 + self.context.interrupted_by.value
        if self.context.error is not None:
            return EXIT_FAILURE
        return EXIT_OK

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def _run_phases(self) -> None:
        self._transition(RunState.SERVER_STARTING)
        await self._server.start()
        self._transition(RunState.SERVER_RUNNING)

        self._transition(RunState.EXPORTING)
        await self._exporter.run(self.config.target_url, self.output_path)

    async def run(self) -> int:
        """Start the server, export the PDF, stop the server.

        Startup and export errors are logged and turned into a failing
        exit code.  An interrupting signal skips straight to cleanup.
        """
        task = asyncio.current_task()
        install_signal_handlers(self.context, task)
        logger.info("export_run_starting", url=self.config.target_url, output=str(self.output_path))

        try:
            await self._run_phases()
        except asyncio.CancelledError:
            if self.context.interrupted_by is None:
                raise
            task.uncancel()
            logger.warning(
                "export_run_interrupted",
                signal=self.context.interrupted_by.name,
                state=self.context.state.value,
            )
        except PreviewPdfError as exc:
            self.context.error = exc
            logger.error("export_run_failed", error=str(exc), error_type=type(exc).__name__)
        except Exception as exc:
            self.context.error = exc
            logger.exception("export_run_unexpected_error")
        finally:
            self._transition(RunState.CLEANING_UP)
            await self._server.stop()
            self._transition(RunState.DONE)

        code = self.exit_code()
        logger.info("export_run_finished", exit_code=code)
        return code
