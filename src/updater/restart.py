# -*- coding: utf-8 -*-
"""
Координатор перезапуска процесса после обновления ядра.

Порядок: маркер → пауза (дать уйти ответам в полёте) → запуск замены в
новой сессии (родитель не утащит ребёнка за собой) → before_exit хуки
(остановка клиента, снятие process lock) → выход текущего процесса.
Замена видит свежий маркер и ждёт освобождения lock, а не падает.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import subprocess
import sys
from typing import Any, Callable, Optional, Sequence

import structlog

from src.updater.marker import UpdateMarker

logger = structlog.get_logger(__name__)


def current_argv() -> list[str]:
    """Аргументы текущего запуска; orig_argv сохраняет форму `python -m src.main`."""
    orig = getattr(sys, "orig_argv", None)
    if orig:
        return [sys.executable, *orig[1:]]
    return [sys.executable, *sys.argv]


def spawn_detached(argv: Sequence[str], cwd: Optional[str] = None) -> subprocess.Popen:
    return subprocess.Popen(
        list(argv),
        cwd=cwd,
        start_new_session=True,
        close_fds=True,
    )


def exit_process(code: int = 0) -> None:
    logging.shutdown()
    os._exit(code)


class RestartCoordinator:
    def __init__(
        self,
        marker: UpdateMarker,
        *,
        grace_seconds: float = 2.0,
        argv: Optional[Sequence[str]] = None,
        cwd: Optional[os.PathLike | str] = None,
        before_exit: Sequence[Callable[[], Any]] = (),
        spawn: Callable[..., Any] = spawn_detached,
        exit_func: Callable[[int], Any] = exit_process,
    ):
        self.marker = marker
        self.grace_seconds = grace_seconds
        self.argv = list(argv) if argv is not None else None
        self.cwd = str(cwd) if cwd is not None else None
        self.before_exit = list(before_exit)
        self._spawn = spawn
        self._exit = exit_func
        self.restart_pending = False

    def add_before_exit(self, hook: Callable[[], Any]) -> None:
        self.before_exit.append(hook)

    async def _run_hooks(self) -> None:
        for hook in self.before_exit:
            try:
                outcome = hook()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("restart_hook_failed", hook=getattr(hook, "__name__", repr(hook)))

    async def schedule_restart(self, revision: Optional[str] = None) -> bool:
        """
        Перезапускает процесс; повторный вызов во время перезапуска игнорируется.
        revision уходит в маркер: с неё замена начнёт отслеживание.
        """
        if self.restart_pending:
            logger.info("restart_already_pending")
            return False
        self.restart_pending = True

        argv = self.argv or current_argv()
        self.marker.write(revision=revision)
        logger.warning("♻️ restart_scheduled", grace_seconds=self.grace_seconds, argv=argv)
        await asyncio.sleep(self.grace_seconds)

        try:
            self._spawn(argv, cwd=self.cwd)
        except OSError:
            # Без замены выходить нельзя: бот просто пропадёт из сети
            logger.exception("restart_spawn_failed", argv=argv)
            self.restart_pending = False
            return False

        # Замена уже запущена и ждёт process lock, который освободят хуки
        await self._run_hooks()
        logger.info("🔁 replacement_spawned, exiting current process")
        self._exit(0)
        return True
