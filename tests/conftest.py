# Shared pytest fixtures
from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from acquisition_dashboard.config.loader import Intervals
from acquisition_dashboard.logging.init import reset_logging
from acquisition_dashboard.models.file_record import FileRecord
from acquisition_dashboard.models.notice import Notice
from acquisition_dashboard.models.stage import PipelineStage
from acquisition_dashboard.models.stats import DerivedStats
from acquisition_dashboard.services.orchestrator import PipelineOrchestrator
from acquisition_dashboard.services.session_store import SessionStore

TODAY = date(2024, 5, 1)
NOW = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolated_logging():
    # handlers must not outlive the captured stdout of the test that created them
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """gateway:
  base_url: http://pipeline.local:3000
  api_prefix: /api/automate
  timeout_seconds: 10
timezone: UTC
session_file: ./state/session.json
intervals:
  download_poll: 5
  import_poll: 30
max_build_attempts: 2
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "dashboard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


class FakeClock:
    """Wall clock and monotonic clock under test control."""

    def __init__(self, now: datetime = NOW) -> None:
        self.current = now
        self.mono = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.mono += seconds


class FakeGateway:
    """In-memory gateway.

    `snapshots` is a queue of status responses (record lists or exceptions);
    the last entry repeats once the queue is down to one. With `manual_status`
    every status call parks on a future the test resolves explicitly.
    """

    def __init__(self) -> None:
        self.snapshots: list[Any] = [[]]
        self.calls: list[tuple[Any, ...]] = []
        self.manual_status = False
        self.pending_status: list[asyncio.Future[Any]] = []
        self.build_error: Exception | None = None
        self.download_error: Exception | None = None
        self.import_error: Exception | None = None
        self.import_status = 200
        self.activity: list[Any] = []

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def fetch_status(self) -> list[FileRecord]:
        self.calls.append(("status",))
        if self.manual_status:
            fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self.pending_status.append(fut)
            item = await fut
        else:
            item = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        if isinstance(item, Exception):
            raise item
        return list(item)

    async def trigger_build_task(self, start: date, end: date) -> None:
        self.calls.append(("build", start, end))
        if self.build_error is not None:
            raise self.build_error

    async def trigger_download(self) -> None:
        self.calls.append(("download",))
        if self.download_error is not None:
            raise self.download_error

    async def import_files(self, records: list[FileRecord]) -> list[FileRecord]:
        self.calls.append(("import", [r.id for r in records]))
        if self.import_error is not None:
            raise self.import_error
        return [replace(r, sp_status=self.import_status) for r in records]

    async def fetch_activity_log(self, day: date) -> list[Any]:
        self.calls.append(("activity", day))
        return list(self.activity)

    def close(self) -> None:
        pass


class RecordingPresenter:
    def __init__(self) -> None:
        self.stats: list[tuple[PipelineStage, DerivedStats]] = []
        self.messages: list[str] = []
        self.notices: list[Notice] = []
        self.redirects = 0

    def publish_stats(self, stage: PipelineStage, stats: DerivedStats) -> None:
        self.stats.append((stage, stats))

    def publish_message(self, message: str) -> None:
        self.messages.append(message)

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    def redirect_to_login(self) -> None:
        self.redirects += 1

    def errors(self) -> list[Notice]:
        return [n for n in self.notices if n.is_error]


@pytest.fixture()
def make_record() -> Callable[..., FileRecord]:
    def _make(
        record_id: str,
        *,
        dl: int = 200,
        sp: int = 404,
        created: datetime = NOW - timedelta(hours=2),
        last_modified: datetime | None = None,
        filetype: str = "F",
        filename: str | None = None,
    ) -> FileRecord:
        return FileRecord(
            id=record_id,
            directory="/data",
            segment="FO",
            filename=filename or f"{record_id}.csv",
            filetype=filetype,
            created_time=created,
            dl_status=dl,
            sp_status=sp,
            last_modified=last_modified,
        )
    return _make


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture()
def session_store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "session.json")


@pytest_asyncio.fixture()
async def orchestrator(gateway, session_store, presenter, clock) -> PipelineOrchestrator:
    orch = PipelineOrchestrator(
        gateway,  # type: ignore[arg-type]
        session_store,
        presenter,
        intervals=Intervals(),
        max_build_attempts=3,
        now=clock.now,
        monotonic=clock.monotonic,
    )
    yield orch
    orch.shutdown()
