"""Shared test fixtures for the preview_pdf test suite."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from preview_pdf.config import BrowserConfig, ExportConfig, PreviewServerConfig
from preview_pdf.models import RuntimeContext

READY_LINE = "  Local:   http://localhost:4321/"


def python_command(source: str) -> list[str]:
    """Run *source* in a fresh unbuffered interpreter."""
    return [sys.executable, "-u", "-c", source]


def pid_alive(pid: int) -> bool:
    """True if *pid* exists and is not a zombie."""
    stat = Path(f"/proc/{pid}/stat")
    if stat.exists():
        try:
            state = stat.read_text().rsplit(")", 1)[1].split()[0]
        except (OSError, IndexError):
            return False
        return state != "Z"
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture
def context() -> RuntimeContext:
    return RuntimeContext()


@pytest.fixture
def server_config_factory():
    """Factory for PreviewServerConfig instances running a Python snippet."""

    def _make(source: str, **overrides) -> PreviewServerConfig:
        defaults = dict(
            command=python_command(source),
            readiness_markers=["Local:", "localhost"],
            startup_timeout_seconds=5.0,
            settle_delay_seconds=0.01,
        )
        defaults.update(overrides)
        return PreviewServerConfig(**defaults)

    return _make


@pytest.fixture
def ready_server_config(server_config_factory) -> PreviewServerConfig:
    """A server that announces itself and then idles."""
    return server_config_factory(
        f"import time\nprint({READY_LINE!r})\ntime.sleep(60)\n"
    )


@pytest.fixture
def browser_config() -> BrowserConfig:
    return BrowserConfig(navigation_timeout_ms=5_000)


@pytest.fixture
def export_config(ready_server_config: PreviewServerConfig, browser_config: BrowserConfig) -> ExportConfig:
    return ExportConfig(server=ready_server_config, browser=browser_config)
