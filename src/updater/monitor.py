# -*- coding: utf-8 -*-
"""
Монитор обновлений: планировщик проверок и цикл применения.

Состояния: IDLE → CHECKING → (нет изменений → IDLE) | (APPLYING → IDLE).
Таймер — один interval-job APScheduler. Тик, пришедший во время активного
цикла, не запускает второй параллельно: он помечается как отложенный и
перепланируется на секунду после освобождения guard (at-least-once).
Любое исключение внутри цикла ловится на границе tick(): сломанный путь
обновления не должен валить обслуживание сообщений.

Перезапуск после обновления ядра запускается отдельной задачей и получает
tracked_revision: при частичном применении это старая ревизия, и замена
повторит цикл, а не примет голову ветки за уже применённую.

Связь: создаётся в src/main.py, хост читает/перепривязывает `bot` и
назначает `on_update_complete` (перезагрузка реестра плагинов).
"""

from __future__ import annotations

import asyncio
import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.core.exceptions import SnapshotFetchError
from src.core.notifier import Notifier
from src.updater.applicator import ApplyResult, ChangeApplicator, UpdateCallback
from src.updater.diff_engine import DiffEngine
from src.updater.file_walker import FileIndex
from src.updater.restart import RestartCoordinator
from src.updater.snapshot import SnapshotFetcher
from src.updater.version_oracle import RemoteVersionOracle

logger = structlog.get_logger("UpdateMonitor")

JOB_ID = "update_check"
RECHECK_JOB_ID = "update_recheck"
DEFERRED_RECHECK_SECONDS = 1.0


class MonitorState(str, enum.Enum):
    IDLE = "idle"
    CHECKING = "checking"
    APPLYING = "applying"


class CycleOutcome(str, enum.Enum):
    SKIPPED = "skipped"        # ревизия неизвестна (сеть), пробуем на следующем тике
    SEEDED = "seeded"          # базовая ревизия установлена без применения
    UNCHANGED = "unchanged"
    APPLIED = "applied"
    PARTIAL = "partial"        # часть файлов не записалась, ревизия не сдвинута
    FAILED = "failed"


class UpdateMonitor:
    def __init__(
        self,
        oracle: RemoteVersionOracle,
        fetcher: SnapshotFetcher,
        diff_engine: DiffEngine,
        applicator: ChangeApplicator,
        restarter: Optional[RestartCoordinator] = None,
        *,
        interval_seconds: float = 10800,
        notify_empty: bool = False,
        file_index: Optional[FileIndex] = None,
        notifier: Optional[Notifier] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        resume_revision: Optional[str] = None,
    ):
        self.oracle = oracle
        self.fetcher = fetcher
        self.diff_engine = diff_engine
        self.applicator = applicator
        self.restarter = restarter
        self.interval_seconds = interval_seconds
        self.notify_empty = notify_empty
        self.file_index = file_index
        self.notifier = notifier or Notifier()
        self._scheduler = scheduler or AsyncIOScheduler()
        # Ревизия предшественника из свежего маркера перезапуска
        self.resume_revision = resume_revision
        self.restart_task: Optional[asyncio.Task] = None

        self.state = MonitorState.IDLE
        self.tracked_revision: Optional[str] = None
        self.is_updating = False
        self.on_update_complete: Optional[UpdateCallback] = None
        self.last_result: Optional[ApplyResult] = None
        self.last_outcome: Optional[CycleOutcome] = None
        self.last_checked_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.cycles = 0
        self.deferred_ticks = 0

        self._deferred = False
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    # --- handle на текущее соединение ---

    @property
    def bot(self) -> Any:
        return self.notifier.client

    @bot.setter
    def bot(self, client: Any) -> None:
        # Хост перепривязывает клиент после переподключений без пересоздания апдейтера
        self.notifier.set_client(client)

    @property
    def running(self) -> bool:
        return self._running

    # --- жизненный цикл ---

    async def start(self) -> None:
        """Очистка хвостов, индекс, базовая ревизия (без применения), затем таймер."""
        if self._running:
            return
        self._running = True

        self.fetcher.cleanup_stale()
        if self.file_index is not None:
            await asyncio.to_thread(self.file_index.build)
        await self.establish_baseline()

        self._scheduler.add_job(
            self._on_timer,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(
            "📡 update_monitor_started",
            repo=self.oracle.repo,
            branch=self.oracle.branch,
            interval_seconds=self.interval_seconds,
            baseline=self.tracked_revision,
        )

    def stop(self) -> None:
        """Останавливает планирование новых циклов; активный цикл дорабатывает."""
        self._running = False
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("update_monitor_stopped")

    async def establish_baseline(self) -> Optional[str]:
        if self.resume_revision:
            # После перезапуска продолжаем с применённой ревизии, а не с головы ветки
            self.tracked_revision, self.resume_revision = self.resume_revision, None
            logger.info("baseline_revision_resumed", revision=self.tracked_revision)
            return self.tracked_revision

        revision = await self.oracle.get_latest_revision()
        if self.oracle.is_fallback(revision):
            logger.warning("⚠️ baseline_revision_unknown, will seed on next successful check")
            return None
        self.tracked_revision = revision
        logger.info("baseline_revision", revision=revision)
        return revision

    # --- таймер и guard ---

    async def _on_timer(self) -> None:
        # Job завершается сразу: повторный тик во время цикла увидит guard, а не лимит APScheduler
        task = asyncio.create_task(self.tick("timer"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _requeue(self) -> None:
        if not self._running or not self._scheduler.running:
            return
        run_at = datetime.now(timezone.utc) + timedelta(seconds=DEFERRED_RECHECK_SECONDS)
        self._scheduler.add_job(
            self._on_timer,
            "date",
            run_date=run_at,
            id=RECHECK_JOB_ID,
            replace_existing=True,
        )
        logger.debug("deferred_recheck_scheduled", run_at=run_at.isoformat())

    async def check_now(self) -> Optional[CycleOutcome]:
        """Ручная проверка (!update). None, если цикл уже идёт и запрос отложен."""
        ran = await self.tick("manual")
        return self.last_outcome if ran else None

    async def tick(self, reason: str = "timer") -> bool:
        """Один цикл под guard. False — цикл уже шёл, запрос отложен."""
        if self.is_updating:
            self._deferred = True
            self.deferred_ticks += 1
            logger.info("update_cycle_deferred", reason=reason, state=self.state.value)
            return False
        if self.restart_pending:
            logger.info("update_cycle_skipped_restart_pending", reason=reason)
            return False

        self.is_updating = True
        try:
            self.last_outcome = await self._run_cycle()
            self.last_error = None
        except SnapshotFetchError as e:
            self.last_outcome = CycleOutcome.FAILED
            self.last_error = str(e)
            logger.warning("❌ snapshot_fetch_failed, cycle aborted", reason=reason, error=str(e))
        except Exception as e:
            self.last_outcome = CycleOutcome.FAILED
            self.last_error = f"{type(e).__name__}: {e}"
            logger.exception("❌ update_cycle_failed", reason=reason)
        finally:
            self.is_updating = False
            self.state = MonitorState.IDLE
            self.cycles += 1
            self.last_checked_at = datetime.now(timezone.utc)

        if self._deferred:
            self._deferred = False
            self._requeue()
        return True

    # --- цикл ---

    async def _run_cycle(self) -> CycleOutcome:
        self.state = MonitorState.CHECKING
        latest = await self.oracle.get_latest_revision()

        if self.oracle.is_fallback(latest):
            logger.info("revision_unknown_skip_cycle", fallback=latest)
            return CycleOutcome.SKIPPED

        if self.tracked_revision is None:
            self.tracked_revision = latest
            logger.info("baseline_revision_seeded", revision=latest)
            return CycleOutcome.SEEDED

        if latest == self.tracked_revision:
            logger.debug("no_new_revision", revision=latest)
            return CycleOutcome.UNCHANGED

        logger.info("🔄 new_revision_detected", current=self.tracked_revision, latest=latest)
        self.state = MonitorState.APPLYING
        async with self.fetcher.snapshot() as snapshot_dir:
            changes = await asyncio.to_thread(self.diff_engine.compare, snapshot_dir)
            result = await self.applicator.apply(
                snapshot_dir,
                changes,
                revision=latest,
                on_complete=self.on_update_complete,
                notify_empty=self.notify_empty,
            )
        self.last_result = result

        if self.file_index is not None and result.applied:
            self.file_index.refresh(entry.relative_path for entry in result.applied)

        if result.failed:
            # Ревизию не двигаем: следующий тик повторит недописанные файлы
            logger.warning(
                "⚠️ update_partially_applied",
                revision=latest,
                failed=[entry.relative_path for entry, _ in result.failed],
            )
            outcome = CycleOutcome.PARTIAL
        else:
            self.tracked_revision = latest
            outcome = CycleOutcome.APPLIED

        if changes:
            await self.notifier.notify_update(
                latest, result.applied_count, len(result.failed), result.restart_required
            )
            logger.info(
                "✅ update_cycle_complete",
                revision=latest,
                applied=result.applied_count,
                restart_required=result.restart_required,
            )
        else:
            logger.info("update_cycle_no_file_changes", revision=latest)

        if result.restart_required and self.restarter is not None:
            self._launch_restart()
        return outcome

    @property
    def restart_pending(self) -> bool:
        return self.restart_task is not None and not self.restart_task.done()

    def _launch_restart(self) -> None:
        # before_exit хуки (app.stop) ждут завершения всех обработчиков pyrogram,
        # поэтому перезапуск идёт отдельной задачей, а не внутри вызвавшего tick()
        self.restart_task = asyncio.create_task(
            self.restarter.schedule_restart(revision=self.tracked_revision)
        )
        self.restart_task.add_done_callback(self._on_restart_done)

    def _on_restart_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.last_error = f"restart: {type(error).__name__}: {error}"
            logger.error("❌ restart_failed", error=self.last_error)

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "running": self._running,
            "tracked_revision": self.tracked_revision,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "last_error": self.last_error,
            "cycles": self.cycles,
            "deferred_ticks": self.deferred_ticks,
            "restart_pending": self.restart_pending,
            "interval_seconds": self.interval_seconds,
            "tracked_files": len(self.file_index) if self.file_index is not None else None,
        }
