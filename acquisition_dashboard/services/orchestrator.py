from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime, tzinfo
from enum import Enum
from functools import partial

from ..config.loader import Intervals
from ..gateway.client import AuthenticationError, GatewayError, PipelineGateway
from ..models.file_record import STATUS_NOT_FOUND, FileClass, FileRecord
from ..models.notice import Notice, NoticeLevel
from ..models.session import Branch, DateRange, OrchestratorState
from ..models.stage import PipelineStage, classify_stage, filter_today
from ..models.stats import DerivedStats
from .presenter import Presenter
from .projector import project_stats, split_by_class
from .scheduler import SESSION_TIMERS, TimerName, TimerScheduler
from .session_store import SessionStore, SessionStoreError

"""Pipeline orchestration for the build -> download -> import cycle.

The orchestrator polls the status endpoint, derives today's PipelineStage from
the latest snapshot and issues the next trigger:

- no records today      -> build-task trigger, re-check once after a settle delay
- records pending       -> download trigger, then poll downloads; import newly
                           downloaded records opportunistically
- awaiting import only  -> import trigger for exactly that subset, then poll
                           imports until none remain
- everything imported   -> finalize the session

Every asynchronous completion is checked against the session generation that
was current when it was issued; a mismatch means the session was cancelled,
finalized or failed in the meantime and the result is dropped. Snapshots carry
a sequence number so an older fetch resolving late never overwrites a newer one.
"""

__all__ = [
    "AlreadyRunning",
    "BuildStalledError",
    "Trigger",
    "PipelineOrchestrator",
    "MSG_BUILDING",
    "MSG_RUNNING",
    "MSG_READY_TO_IMPORT",
    "MSG_IMPORT_COMPLETE",
]

logger = logging.getLogger(__name__)

MSG_BUILDING = "Building task..."
MSG_RUNNING = "Hang tight! Automation is running..."
MSG_READY_TO_IMPORT = "Ready to import"
MSG_IMPORT_COMPLETE = "Import complete"
MSG_ALL_PROCESSED = "All files have been processed"
MSG_AUTH_FAILED = "Authentication failed. Please login again."


class AlreadyRunning(Exception):
    """start() was called while a processing session is active."""
    pass


class BuildStalledError(Exception):
    """Build-task triggers produced no records for today."""
    pass


class Trigger(Enum):
    """What caused an evaluation."""
    REFRESH = "refresh"
    DOWNLOAD_POLL = "download_poll"
    IMPORT_POLL = "import_poll"
    BUILD_SETTLE = "build_settle"


class PipelineOrchestrator:
    """Drives the acquisition pipeline for the current processing day."""

    def __init__(
        self,
        gateway: PipelineGateway,
        store: SessionStore,
        presenter: Presenter,
        *,
        scheduler: TimerScheduler | None = None,
        intervals: Intervals | None = None,
        tz: tzinfo = UTC,
        max_build_attempts: int = 3,
        now: Callable[[], datetime] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.presenter = presenter
        self.scheduler = scheduler or TimerScheduler()
        self.intervals = intervals or Intervals()
        self.tz = tz
        self.max_build_attempts = max_build_attempts
        self._now = now or (lambda: datetime.now(UTC))
        self._monotonic = monotonic

        self.state = OrchestratorState()
        self.records: list[FileRecord] = []
        self.stage: PipelineStage | None = None
        self.stats: DerivedStats | None = None
        self._fetch_seq = 0
        self._applied_seq = 0

    # ------------------------------------------------------------------ queries

    @property
    def is_active(self) -> bool:
        return self.state.active

    @property
    def message(self) -> str:
        return self.state.message

    def today(self) -> date:
        return self._now().astimezone(self.tz).date()

    def imported_today(self) -> list[FileRecord]:
        """Records reported as newly imported earlier today, as stored."""
        return self.store.imported_today(self.today())

    # --------------------------------------------------------------- operations

    async def start(self) -> None:
        """Begin a processing session for today and evaluate immediately.

        Raises:
            AlreadyRunning: if a session is already active (state untouched)
        """
        if self.state.active:
            raise AlreadyRunning("Process already running")
        generation = self._begin_session(DateRange.single_day(self.today()))
        self._notify(NoticeLevel.SUCCESS, "Process started")
        await self._evaluate(generation, Trigger.REFRESH)

    async def resume(self) -> bool:
        """Resume a persisted session after a restart.

        The first action is a status fetch; a build-task trigger only follows if
        that snapshot has no records for today.

        Returns:
            True if a persisted active session was found and resumed
        """
        active, date_range = self.store.load(self.today())
        if not active or self.state.active:
            return False
        start, end = date_range.as_strings()
        logger.info("resuming processing session %s..%s", start, end)
        imported = self.imported_today()
        if imported:
            logger.info("%d file(s) already imported today", len(imported))
        generation = self._begin_session(date_range)
        await self._evaluate(generation, Trigger.REFRESH)
        return True

    def cancel(self) -> None:
        """Stop the session now; calls already in flight are discarded on completion."""
        was_active = self.state.active
        self._end_session()
        self._set_message("")
        if was_active:
            self._notify(NoticeLevel.SUCCESS, "Process canceled")

    async def refresh(self) -> None:
        """Fetch a snapshot and act on it.

        Without an active session this only publishes stats; triggers are
        issued only on behalf of a session.
        """
        await self._evaluate(self.state.generation, Trigger.REFRESH)

    async def on_auto_trigger_tick(self) -> None:
        """Restart an idle pipeline when today's work is not fully imported."""
        if self.state.active:
            return
        generation = self.state.generation
        try:
            records = await self.gateway.fetch_status()
        except GatewayError as e:
            logger.warning("auto-trigger status check failed: %s", e)
            return
        if self.state.active or generation != self.state.generation:
            return
        stage = classify_stage(filter_today(records, self.today(), self.tz))
        if stage is PipelineStage.ALL_IMPORTED:
            logger.debug("auto-trigger: all of today's files imported")
            return
        logger.info("auto-trigger: stage=%s, starting processing", stage.value)
        await self.start()

    async def on_status_refresh_tick(self) -> None:
        if self.state.active:
            await self._evaluate(self.state.generation, Trigger.REFRESH)

    def arm_service_timers(self) -> None:
        """Arm the auto-trigger and status-refresh timers (live for the whole process)."""
        self.scheduler.arm(TimerName.AUTO_TRIGGER, self.intervals.auto_trigger, self.on_auto_trigger_tick)
        self.scheduler.arm(TimerName.STATUS_REFRESH, self.intervals.status_refresh, self.on_status_refresh_tick)

    def shutdown(self) -> None:
        self.scheduler.disarm_all()

    # --------------------------------------------------------- session helpers

    def _begin_session(self, date_range: DateRange) -> int:
        # persisted before activation so a failed write leaves no session behind
        self.store.save(True, date_range)
        self.state.active = True
        self.state.date_range = date_range
        self.state.reset_cycle()
        return self.state.next_generation()

    def _end_session(self) -> None:
        self.state.next_generation()
        self.state.active = False
        self.state.date_range = None
        self.state.reset_cycle()
        self.scheduler.disarm_all(SESSION_TIMERS)
        try:
            self.store.clear()
        except SessionStoreError as e:
            logger.error("could not clear persisted session: %s", e)

    def _is_current(self, generation: int) -> bool:
        return self.state.active and generation == self.state.generation

    # --------------------------------------------------------------- decisions

    async def _evaluate(self, generation: int, trigger: Trigger) -> None:
        try:
            snapshot = await self._fetch_snapshot(generation)
            if snapshot is None or not self._is_current(generation):
                return
            records, stage = snapshot
            await self._act(generation, trigger, records, stage)
        except (GatewayError, BuildStalledError, SessionStoreError) as e:
            self._fail(generation, e)

    async def _fetch_snapshot(self, generation: int) -> tuple[list[FileRecord], PipelineStage] | None:
        self._fetch_seq += 1
        seq = self._fetch_seq
        records = await self.gateway.fetch_status()
        if generation != self.state.generation:
            logger.debug("dropping snapshot #%d from stale generation %d", seq, generation)
            return None
        if seq < self._applied_seq:
            logger.debug("dropping snapshot #%d, #%d already applied", seq, self._applied_seq)
            return None
        self._applied_seq = seq

        now = self._now()
        todays = filter_today(records, now.astimezone(self.tz).date(), self.tz)
        self.records = todays
        self.stage = classify_stage(todays)
        self.stats = project_stats(todays, now)
        self.presenter.publish_stats(self.stage, self.stats)
        return todays, self.stage

    async def _act(
        self,
        generation: int,
        trigger: Trigger,
        records: list[FileRecord],
        stage: PipelineStage,
    ) -> None:
        awaiting = split_by_class(records)[FileClass.AWAITING_IMPORT]

        if stage is PipelineStage.NO_FILES:
            await self._enter_build(generation, trigger)
        elif stage.has_pending:
            await self._drive_download(generation, trigger, awaiting)
        elif stage is PipelineStage.AWAITING_IMPORT:
            await self._drive_import(generation, trigger, awaiting)
        else:
            self._finalize(generation)

    async def _enter_build(self, generation: int, trigger: Trigger) -> None:
        if self.state.branch is Branch.BUILD and trigger is not Trigger.BUILD_SETTLE:
            return
        if self.state.build_attempts >= self.max_build_attempts:
            raise BuildStalledError(
                f"no files for today after {self.state.build_attempts} build attempts"
            )
        self.scheduler.disarm_all((TimerName.DOWNLOAD_POLL, TimerName.IMPORT_POLL))
        self.state.branch = Branch.BUILD
        self.state.build_attempts += 1
        self._set_message(MSG_BUILDING)

        # builds are always for today; a session resumed across midnight moves its range forward
        date_range = DateRange.single_day(self.today())
        if self.state.date_range != date_range:
            self.state.date_range = date_range
            self.store.save(True, date_range)
        await self.gateway.trigger_build_task(date_range.start, date_range.end)
        if not self._is_current(generation):
            return
        self._notify(NoticeLevel.SUCCESS, "Build task initiated")
        self.scheduler.arm(
            TimerName.BUILD_SETTLE,
            self.intervals.build_settle,
            partial(self._on_build_settle, generation),
            repeat=False,
        )

    async def _drive_download(self, generation: int, trigger: Trigger, awaiting: Sequence[FileRecord]) -> None:
        if self.state.branch is not Branch.DOWNLOAD:
            self.scheduler.disarm_all((TimerName.IMPORT_POLL, TimerName.BUILD_SETTLE))
            self.state.branch = Branch.DOWNLOAD
            self._set_message(MSG_RUNNING)
            await self.gateway.trigger_download()
            if not self._is_current(generation):
                return
        elif trigger is Trigger.DOWNLOAD_POLL and awaiting:
            await self._attempt_import(generation, awaiting)
            if not self._is_current(generation):
                return
        self.scheduler.arm(
            TimerName.DOWNLOAD_POLL,
            self.intervals.download_poll,
            partial(self._on_download_poll, generation),
        )

    async def _drive_import(self, generation: int, trigger: Trigger, awaiting: Sequence[FileRecord]) -> None:
        if self.state.branch is not Branch.IMPORT:
            self.scheduler.disarm_all((TimerName.DOWNLOAD_POLL, TimerName.BUILD_SETTLE))
            self.state.branch = Branch.IMPORT
            self._set_message(MSG_READY_TO_IMPORT)
            await self._attempt_import(generation, awaiting)
        elif trigger is Trigger.IMPORT_POLL:
            await self._attempt_import(generation, awaiting)
        if not self._is_current(generation):
            return
        self.scheduler.arm(
            TimerName.IMPORT_POLL,
            self.intervals.import_poll,
            partial(self._on_import_poll, generation),
        )

    async def _attempt_import(self, generation: int, subset: Sequence[FileRecord]) -> None:
        """Import exactly `subset`, at most once per debounce window across all callers."""
        now = self._monotonic()
        last = self.state.last_import_attempt
        if last is not None and now - last < self.intervals.import_debounce:
            logger.debug("import debounced (%.1fs since last attempt)", now - last)
            return
        self.state.last_import_attempt = now
        self._set_message(MSG_RUNNING)
        logger.info("importing %d file(s)", len(subset))

        results = await self.gateway.import_files(list(subset))
        if not self._is_current(generation):
            return
        newly = [r for r in results if r.sp_status != STATUS_NOT_FOUND]
        self.store.remember_imported(newly, self.today())
        self._notify(NoticeLevel.SUCCESS, f"Successfully imported {len(newly)} files")
        if len(newly) < len(results):
            logger.info("%d file(s) still awaiting import", len(results) - len(newly))

    def _finalize(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._end_session()
        self._set_message(MSG_IMPORT_COMPLETE)
        self._notify(NoticeLevel.SUCCESS, MSG_ALL_PROCESSED)

    def _fail(self, generation: int, error: Exception) -> None:
        if generation != self.state.generation:
            logger.debug("ignoring failure from stale generation %d: %s", generation, error)
            return
        self._end_session()
        self._set_message("")
        if isinstance(error, AuthenticationError):
            logger.error("authentication failed: %s", error)
            self._notify(NoticeLevel.ERROR, MSG_AUTH_FAILED, redirect_to_login=True)
            self.presenter.redirect_to_login()
        else:
            logger.error("processing stopped: %s", error)
            self._notify(NoticeLevel.ERROR, f"Error: {error}")

    # ---------------------------------------------------------- timer callbacks

    async def _on_build_settle(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        await self._evaluate(generation, Trigger.BUILD_SETTLE)

    async def _on_download_poll(self, generation: int) -> None:
        if not self._is_current(generation) or not self.scheduler.is_armed(TimerName.DOWNLOAD_POLL):
            return
        await self._evaluate(generation, Trigger.DOWNLOAD_POLL)

    async def _on_import_poll(self, generation: int) -> None:
        if not self._is_current(generation) or not self.scheduler.is_armed(TimerName.IMPORT_POLL):
            return
        await self._evaluate(generation, Trigger.IMPORT_POLL)

    # ------------------------------------------------------------ presentation

    def _set_message(self, message: str) -> None:
        if message != self.state.message:
            self.state.message = message
            self.presenter.publish_message(message)

    def _notify(self, level: NoticeLevel, message: str, *, redirect_to_login: bool = False) -> None:
        self.presenter.notify(Notice.create(level, message, redirect_to_login=redirect_to_login))
