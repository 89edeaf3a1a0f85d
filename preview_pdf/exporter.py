"""Render the served page in headless Chromium and export it as a PDF."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Browser, Page
from playwright.async_api import async_playwright

from .config import BrowserConfig
from .errors import ExportError, NavigationError

logger = structlog.get_logger()

# The print engine applies one margin to every page; the first two pages
# (cover and contents) must start flush with the top edge.
PRINT_STYLE_OVERRIDES = """
@media print {
  @page:first {
    margin-top: 0mm;
  }
  @page :nth(2) {
    margin-top: 0mm;
  }
  @page {
    margin-top: 10mm;
  }
}
"""

HEADER_TEMPLATE = """
<div style="
  font-size: 10px;
  width: 100%;
  height: 0mm;
  display: flex;
  background: transparent;
  align-items: center;
  justify-content: center;
  margin: 0;
  padding: 0;
  font-family: Arial, sans-serif;
  color: #333;
  -webkit-print-color-adjust: exact;
">
  <span class="pageNumber"></span>
</div>
"""

FOOTER_TEMPLATE = '<div style="width: 100%; font-size: 10px;"></div>'

PAGE_MARGINS = {"top": "10mm", "right": "0mm", "bottom": "0mm", "left": "0mm"}


class PdfExporter:
    """Drive one browser session from navigation to a written PDF.

    The browser is a scoped resource: it is closed exactly once on every
    path out of :meth:`run`, before any error reaches the caller.
    """

    def __init__(
        self,
        config: BrowserConfig,
        *,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._config = config
        self._playwright_factory = playwright_factory

    async def run(self, target_url: str, output_path: Path) -> Path:
        """Render *target_url* and write the PDF to *output_path*.

        Raises :class:`NavigationError` if the page does not load and
        :class:`ExportError` if the browser or the PDF step fails.
        """
        cfg = self._config
        logger.info("launching_browser", args=cfg.launch_args)
        async with self._playwright_factory() as pw:
            try:
                browser = await pw.chromium.launch(headless=True, args=cfg.launch_args)
            except PlaywrightError as exc:
                raise ExportError(f"Browser launch failed: {exc}") from exc

            try:
                page = await self._open_page(browser)
                await self._load(page, target_url)
                await self._apply_print_styles(page)
                await self._export(page, output_path)
            finally:
                await browser.close()

        size = output_path.stat().st_size
        logger.info("pdf_generated", path=str(output_path), size_bytes=size)
        return output_path

    async def _open_page(self, browser: Browser) -> Page:
        cfg = self._config
        try:
            return await browser.new_page(
                viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
                device_scale_factor=cfg.device_scale_factor,
            )
        except PlaywrightError as exc:
            raise ExportError(f"Could not open a browser page: {exc}") from exc

    async def _load(self, page: Page, target_url: str) -> None:
        logger.info("navigating", url=target_url)
        try:
            await page.goto(
                target_url,
                wait_until="networkidle",
                timeout=self._config.navigation_timeout_ms,
            )
            # Web fonts change line breaks, so pagination has to wait for them.
            await page.evaluate("document.fonts.ready.then(() => true)")
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to load {target_url}: {exc}") from exc

    async def _apply_print_styles(self, page: Page) -> None:
        try:
            await page.add_style_tag(content=PRINT_STYLE_OVERRIDES)
        except PlaywrightError as exc:
            raise ExportError(f"Could not apply print styles: {exc}") from exc

    async def _export(self, page: Page, output_path: Path) -> None:
        logger.info("generating_pdf", path=str(output_path))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await page.pdf(
                path=str(output_path),
                format=self._config.page_format,
                print_background=True,
                margin=PAGE_MARGINS,
                prefer_css_page_size=True,
                display_header_footer=True,
                header_template=HEADER_TEMPLATE,
                footer_template=FOOTER_TEMPLATE,
            )
        except PlaywrightError as exc:
            raise ExportError(f"PDF generation failed: {exc}") from exc

        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise ExportError(f"PDF generation produced no output at {output_path}")
