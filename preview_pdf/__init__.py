"""Render a locally previewed site to PDF.

Public API re-exported here for convenience::

    from preview_pdf import ExportConfig, ExportRunner
"""

from .config import (
    BUILD_DIR,
    OUTPUT_PDF,
    PREVIEW_PORT,
    BrowserConfig,
    ExportConfig,
    PreviewServerConfig,
)
from .errors import (
    CleanupError,
    ExportError,
    NavigationError,
    PreviewPdfError,
    ProcessExitError,
    StartupTimeoutError,
)
from .exporter import PdfExporter
from .logging import setup_logging
from .models import ChildHandle, KillStage, RunState, RuntimeContext
from .runner import ExportRunner
from .shutdown import install_exit_hook, install_signal_handlers
from .supervisor import PreviewServer, signal_process_tree, stop_process_tree

__all__ = [
    "BUILD_DIR",
    "OUTPUT_PDF",
    "PREVIEW_PORT",
    "BrowserConfig",
    "ChildHandle",
    "CleanupError",
    "ExportConfig",
    "ExportError",
    "ExportRunner",
    "KillStage",
    "NavigationError",
    "PdfExporter",
    "PreviewPdfError",
    "PreviewServer",
    "PreviewServerConfig",
    "ProcessExitError",
    "RunState",
    "RuntimeContext",
    "StartupTimeoutError",
    "install_exit_hook",
    "install_signal_handlers",
    "setup_logging",
    "signal_process_tree",
    "stop_process_tree",
]
