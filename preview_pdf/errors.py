"""Exception hierarchy for preview_pdf.

Startup and export errors abort the run and map to a failing exit code.
:class:`CleanupError` is only ever logged.
"""

from __future__ import annotations


class PreviewPdfError(Exception):
    """Base class for every error raised by this package."""


class StartupTimeoutError(PreviewPdfError):
    """The preview server never announced readiness."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Preview server failed to start within {timeout_seconds:g} seconds")


class ProcessExitError(PreviewPdfError):
    """The preview server exited before it became ready."""

    def __init__(self, returncode: int | None) -> None:
        self.returncode = returncode
        super().__init__(f"Preview server failed with exit code {returncode}")


class NavigationError(PreviewPdfError):
    """The page could not be loaded."""


class ExportError(PreviewPdfError):
    """The browser could not be launched or the PDF could not be written."""


class CleanupError(PreviewPdfError):
    """A termination signal could not be delivered to the process tree."""

    def __init__(self, pid: int, cause: BaseException) -> None:
        self.pid = pid
        self.cause = cause
        super().__init__(f"Could not terminate process tree {pid}: {cause}")
