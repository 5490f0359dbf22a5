from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

from acquisition_dashboard.config.loader import ConfigError, DashboardConfig, load_config
from acquisition_dashboard.gateway.client import GatewayError, PipelineGateway
from acquisition_dashboard.logging.init import enable_debug, log_summary, setup_logging
from acquisition_dashboard.logging.notice_log import NoticeLogBuffer
from acquisition_dashboard.models.notice import Notice
from acquisition_dashboard.models.stage import PipelineStage
from acquisition_dashboard.models.stats import DerivedStats
from acquisition_dashboard.services.orchestrator import AlreadyRunning, PipelineOrchestrator
from acquisition_dashboard.services.progress import ImportProgress
from acquisition_dashboard.services.session_store import SessionStore, SessionStoreError
from acquisition_dashboard.services.summary import render_status_line

"""CLI entrypoint: the console stand-in for the dashboard's presentation layer.

Modes:
- default       resume a persisted session, arm auto-trigger/status timers, run until interrupted
- --once        one refresh (after resume), print the status line, exit
- --start       start a session and run until it finalizes or fails
- --cancel      clear a persisted session and exit
- --activity-log DATE   print the activity log for DATE and exit
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_CYCLE_FAILED = 2

DEFAULT_CONFIG_PATH = Path("config/dashboard.yml")
SESSION_POLL_SECONDS = 0.5


class ConsolePresenter:
    """Presenter that logs, drives a tqdm bar and records notices."""

    def __init__(self, notice_log: NoticeLogBuffer, progress: ImportProgress | None = None) -> None:
        self.logger = setup_logging()
        self.notice_log = notice_log
        self.progress = progress
        self.last_stage: PipelineStage | None = None
        self.last_stats: DerivedStats | None = None
        self.error_count = 0

    def publish_stats(self, stage: PipelineStage, stats: DerivedStats) -> None:
        self.last_stage = stage
        self.last_stats = stats
        if self.progress is not None:
            self.progress.update(stats)
        log_summary(render_status_line(stage, stats)[len("STATUS "):])

    def publish_message(self, message: str) -> None:
        if self.progress is not None:
            self.progress.set_description(message)
        if message:
            self.logger.info(message)

    def notify(self, notice: Notice) -> None:
        self.notice_log.append(notice)
        if notice.is_error:
            self.error_count += 1
            self.logger.error(notice.message)
            self.notice_log.flush()
        else:
            self.logger.info(notice.message)

    def redirect_to_login(self) -> None:
        self.logger.error("gateway rejected the credentials: update PIPELINE_API_TOKEN and restart")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Acquisition pipeline dashboard (build -> download -> import)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to dashboard YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Refresh once, print status and exit")
    mode.add_argument("--start", action="store_true", help="Start a cycle and run until it completes")
    mode.add_argument("--cancel", action="store_true", help="Cancel a persisted cycle and exit")
    mode.add_argument("--activity-log", metavar="DATE", type=date.fromisoformat, help="Print the activity log for DATE (YYYY-MM-DD)")
    return p.parse_args(argv)


def build_orchestrator(cfg: DashboardConfig, presenter: ConsolePresenter) -> PipelineOrchestrator:
    gateway = PipelineGateway(
        cfg.gateway.base_url,
        api_prefix=cfg.gateway.api_prefix,
        token=cfg.gateway.token,
        timeout=cfg.gateway.timeout_seconds,
    )
    store = SessionStore(cfg.session_file, tz=cfg.tzinfo)
    return PipelineOrchestrator(
        gateway,
        store,
        presenter,
        intervals=cfg.intervals,
        tz=cfg.tzinfo,
        max_build_attempts=cfg.max_build_attempts,
    )


async def _resume(orchestrator: PipelineOrchestrator) -> bool:
    try:
        return await orchestrator.resume()
    except SessionStoreError as e:
        setup_logging().error(f"resume: {e}")
        return False


async def _run_forever(orchestrator: PipelineOrchestrator) -> int:
    await _resume(orchestrator)
    orchestrator.arm_service_timers()
    try:
        await asyncio.Event().wait()
    finally:
        orchestrator.shutdown()
    return EXIT_SUCCESS  # pragma: no cover (only left via cancellation)


async def _run_once(orchestrator: PipelineOrchestrator, presenter: ConsolePresenter) -> int:
    if not await _resume(orchestrator):
        await orchestrator.refresh()
    orchestrator.shutdown()
    imported = orchestrator.imported_today()
    presenter.logger.info(f"imported today: {len(imported)} file(s)")
    for record in imported:
        print(f"  {record.display().filename}")
    return EXIT_CYCLE_FAILED if presenter.error_count else EXIT_SUCCESS


async def _run_start(orchestrator: PipelineOrchestrator, presenter: ConsolePresenter) -> int:
    try:
        await orchestrator.start()
    except (AlreadyRunning, SessionStoreError) as e:
        presenter.logger.error(str(e))
        return EXIT_FATAL
    orchestrator.arm_service_timers()
    try:
        while orchestrator.is_active:
            await asyncio.sleep(SESSION_POLL_SECONDS)
    finally:
        orchestrator.shutdown()
    return EXIT_CYCLE_FAILED if presenter.error_count else EXIT_SUCCESS


async def _print_activity_log(orchestrator: PipelineOrchestrator, day: date) -> int:
    logger = setup_logging()
    try:
        entries = await orchestrator.gateway.fetch_activity_log(day)
    except GatewayError as e:
        logger.error(f"activity log: {e}")
        return EXIT_FATAL
    logger.info(f"activity log {day.isoformat()}: {len(entries)} entries")
    for entry in entries:
        print(
            f"{entry.id:>4} {entry.outcome:<9} {entry.filetype:<8} {entry.segment:<10} "
            f"{entry.filename} last_modified={entry.last_modified}"
        )
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] must not pick up the test runner's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        enable_debug()
        logger.debug("debug mode enabled")

    notice_log = NoticeLogBuffer()
    presenter = ConsolePresenter(notice_log)
    orchestrator = build_orchestrator(cfg, presenter)

    if args.cancel:
        orchestrator.cancel()
        logger.info("persisted session cleared")
        notice_log.flush()
        return EXIT_SUCCESS

    if args.activity_log is not None:
        return asyncio.run(_print_activity_log(orchestrator, args.activity_log))

    logger.info(f"gateway: {cfg.gateway.base_url} timezone={cfg.timezone}")
    with ImportProgress() as progress:
        presenter.progress = progress
        try:
            if args.once:
                code = asyncio.run(_run_once(orchestrator, presenter))
            elif args.start:
                code = asyncio.run(_run_start(orchestrator, presenter))
            else:
                code = asyncio.run(_run_forever(orchestrator))
        except KeyboardInterrupt:
            logger.info("interrupted; persisted session kept for resume")
            code = EXIT_SUCCESS
        finally:
            notice_log.flush()
            orchestrator.gateway.close()
    return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
