# -*- coding: utf-8 -*-
"""Координатор перезапуска: порядок шагов и единственность."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.updater.marker import MARKER_FILENAME, MarkerState, UpdateMarker
from src.updater.restart import RestartCoordinator


def _coordinator(tmp_path, calls, spawn_error=None):
    marker = UpdateMarker(tmp_path / MARKER_FILENAME)

    def spawn(argv, cwd=None):
        calls.append(("spawn", list(argv), cwd))
        if spawn_error is not None:
            raise spawn_error

    def exit_func(code):
        calls.append(("exit", code))

    async def stop_client():
        calls.append(("stop_client",))

    def release_lock():
        calls.append(("release_lock",))

    coordinator = RestartCoordinator(
        marker,
        grace_seconds=0,
        argv=["python", "-m", "src.main"],
        cwd=tmp_path,
        before_exit=[stop_client, release_lock],
        spawn=spawn,
        exit_func=exit_func,
    )
    return coordinator, marker


@pytest.mark.asyncio
async def test_restart_order_marker_spawn_hooks_exit(tmp_path):
    calls = []
    coordinator, marker = _coordinator(tmp_path, calls)

    assert await coordinator.schedule_restart(revision="rev7") is True

    assert calls == [
        ("spawn", ["python", "-m", "src.main"], str(tmp_path)),
        ("stop_client",),
        ("release_lock",),
        ("exit", 0),
    ]
    assert marker.consume() is MarkerState.FRESH
    assert marker.revision == "rev7"


@pytest.mark.asyncio
async def test_second_restart_request_is_ignored(tmp_path):
    calls = []
    coordinator, _ = _coordinator(tmp_path, calls)
    coordinator.restart_pending = True

    assert await coordinator.schedule_restart() is False
    assert calls == []


@pytest.mark.asyncio
async def test_spawn_failure_keeps_process_alive(tmp_path):
    calls = []
    coordinator, _ = _coordinator(tmp_path, calls, spawn_error=OSError("no exec"))

    assert await coordinator.schedule_restart() is False

    assert [c[0] for c in calls] == ["spawn"]
    assert coordinator.restart_pending is False


@pytest.mark.asyncio
async def test_failing_hook_does_not_block_exit(tmp_path):
    exit_func = MagicMock()
    coordinator = RestartCoordinator(
        UpdateMarker(tmp_path / MARKER_FILENAME),
        grace_seconds=0,
        argv=["bot"],
        before_exit=[AsyncMock(side_effect=RuntimeError("already stopped"))],
        spawn=MagicMock(),
        exit_func=exit_func,
    )

    await coordinator.schedule_restart()

    exit_func.assert_called_once_with(0)
