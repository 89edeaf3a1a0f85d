"""Entry point for the preview_pdf package.

Usage::

    python -m preview_pdf             # preview server -> PDF
    python -m preview_pdf --rebuild   # drop the build output first
"""

from __future__ import annotations

import asyncio
import shutil
import sys
from pathlib import Path

import structlog

from .config import BUILD_DIR, ExportConfig
from .logging import setup_logging
from .runner import EXIT_FAILURE, ExportRunner
from .shutdown import install_exit_hook

logger = structlog.get_logger()

USAGE = "Usage: python -m preview_pdf [--rebuild]"


def remove_build_output(build_dir: Path) -> bool:
    """Delete *build_dir* so the next site build starts from scratch.

    A missing directory is fine; any other failure raises :class:`OSError`.
    """
    if not build_dir.exists():
        return False
    shutil.rmtree(build_dir)
    logger.info("build_output_removed", path=str(build_dir))
    return True


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if any(arg != "--rebuild" for arg in args):
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    config = ExportConfig()
    setup_logging(json=config.log_json, level=config.log_level)

    if "--rebuild" in args:
        try:
            remove_build_output(Path(BUILD_DIR))
        except OSError as exc:
            logger.error("build_output_remove_failed", path=BUILD_DIR, error=str(exc))
            sys.exit(EXIT_FAILURE)

    runner = ExportRunner(config)
    install_exit_hook(runner.context)
    sys.exit(asyncio.run(runner.run()))


if __name__ == "__main__":
    main()
