"""Export configuration loaded from environment variables.

Uses pydantic-settings so timeouts, the server command and logging can be
tuned via env vars.  The preview port, the output path and the build
directory are fixed and live here as plain constants.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

PREVIEW_PORT = 4321  # Astro preview default port
OUTPUT_PDF = "encounter-tables.pdf"
BUILD_DIR = "dist"


class PreviewServerConfig(BaseSettings):
    """How to launch the preview server and decide it is ready."""

    model_config = {"env_prefix": "PREVIEW_SERVER_"}

    command: list[str] = Field(
        default_factory=lambda: ["npm", "run", "preview"],
        description="Command line that starts the preview server",
    )
    cwd: str | None = Field(
        default=None,
        description="Working directory for the server (defaults to the current one)",
    )
    readiness_markers: list[str] = Field(
        default_factory=lambda: ["Local:", "localhost"],
        description="Any of these substrings on stdout means the server is listening",
    )
    startup_timeout_seconds: float = Field(
        default=10.0,
        description="How long to wait for a readiness marker",
    )
    settle_delay_seconds: float = Field(
        default=1.0,
        description="Pause after the readiness marker before the server is used",
    )


class BrowserConfig(BaseSettings):
    """Headless browser and PDF rendering settings."""

    model_config = {"env_prefix": "BROWSER_"}

    navigation_timeout_ms: int = Field(default=30_000, description="Page load timeout")
    viewport_width: int = Field(default=1920, description="Viewport width in CSS pixels")
    viewport_height: int = Field(default=1080, description="Viewport height in CSS pixels")
    device_scale_factor: float = Field(default=1.0, description="Device pixel ratio")
    page_format: str = Field(default="A4", description="PDF paper format")
    launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"],
        description="Extra Chromium command line switches",
    )


class ExportConfig(BaseSettings):
    """Root configuration for one export run.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {"env_prefix": "PREVIEW_PDF_"}

    log_level: str = Field(default="INFO", description="Root log level name")
    log_json: bool = Field(default=False, description="Emit JSON log lines instead of console output")

    server: PreviewServerConfig = Field(default_factory=PreviewServerConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    @property
    def target_url(self) -> str:
        return f"http://localhost:{PREVIEW_PORT}/"
