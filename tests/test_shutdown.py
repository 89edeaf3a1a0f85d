"""Tests for preview_pdf.shutdown."""

from __future__ import annotations

import asyncio
import os
import signal
from unittest.mock import MagicMock

import pytest

import preview_pdf.shutdown as shutdown
from preview_pdf.models import ChildHandle, RunState, RuntimeContext
from preview_pdf.shutdown import install_exit_hook, install_signal_handlers


async def _sleeper() -> None:
    await asyncio.sleep(60)


class TestInstallSignalHandlers:
    @pytest.mark.asyncio
    async def test_sigterm_cancels_task(self, context: RuntimeContext):
        task = asyncio.create_task(_sleeper())
        install_signal_handlers(context, task)

        os.kill(os.getpid(), signal.SIGTERM)
        # Signals arrive through the loop's self-pipe, so give it a poll cycle.
        await asyncio.sleep(0.05)

        assert task.cancelled()
        assert context.interrupted_by is signal.SIGTERM

    @pytest.mark.asyncio
    async def test_sigint_cancels_task(self, context: RuntimeContext):
        task = asyncio.create_task(_sleeper())
        install_signal_handlers(context, task)

        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.05)

        assert task.cancelled()
        assert context.interrupted_by is signal.SIGINT

    @pytest.mark.asyncio
    async def test_first_signal_wins(self, context: RuntimeContext):
        task = asyncio.create_task(_sleeper())
        install_signal_handlers(context, task)

        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(0.05)

        assert context.interrupted_by is signal.SIGINT

    @pytest.mark.asyncio
    async def test_ignored_during_cleanup(self, context: RuntimeContext):
        context.state = RunState.CLEANING_UP
        task = asyncio.create_task(_sleeper())
        install_signal_handlers(context, task)

        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(0.05)

        assert not task.done()
        assert context.interrupted_by is None
        task.cancel()

    @pytest.mark.asyncio
    async def test_handlers_registered_for_both_signals(self, context: RuntimeContext):
        task = asyncio.create_task(_sleeper())
        install_signal_handlers(context, task)
        loop = asyncio.get_running_loop()

        assert loop.remove_signal_handler(signal.SIGTERM) is True
        assert loop.remove_signal_handler(signal.SIGINT) is True
        task.cancel()


class TestExitHook:
    def test_registers_with_atexit(self, context: RuntimeContext, monkeypatch):
        registered = []
        monkeypatch.setattr(shutdown.atexit, "register", lambda fn, *args: registered.append((fn, args)))

        install_exit_hook(context)

        assert registered == [(shutdown._cleanup_at_exit, (context,))]

    def test_noop_without_handle(self, context: RuntimeContext, monkeypatch):
        kill = MagicMock()
        monkeypatch.setattr(shutdown, "signal_process_tree", kill)

        shutdown._cleanup_at_exit(context)

        kill.assert_not_called()

    def test_kills_leftover_server(self, context: RuntimeContext, monkeypatch):
        kill = MagicMock()
        monkeypatch.setattr(shutdown, "signal_process_tree", kill)
        context.handle = ChildHandle(pid=4242, process=MagicMock(returncode=None))

        shutdown._cleanup_at_exit(context)
        shutdown._cleanup_at_exit(context)

        kill.assert_called_once_with(4242)
        assert context.handle is None
