from __future__ import annotations

import json
import re
from pathlib import Path

from acquisition_dashboard.logging.notice_log import NoticeLogBuffer
from acquisition_dashboard.models.notice import Notice, NoticeLevel

"""Notice log JSON Lines schema contract."""

REQUIRED_KEYS = {"timestamp", "level", "message", "redirect_to_login"}
TS_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$")


def test_notice_log_lines_have_fixed_schema(tmp_path: Path):
    buf = NoticeLogBuffer(logs_dir=tmp_path)
    buf.append(Notice.create(NoticeLevel.SUCCESS, "Process started"))
    buf.append(Notice.create(NoticeLevel.ERROR, "Authentication failed. Please login again.", redirect_to_login=True))

    path = buf.flush()

    assert path is not None
    assert re.fullmatch(r"notices-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    for line in lines:
        obj = json.loads(line)
        assert set(obj) == REQUIRED_KEYS
        assert TS_RE.match(obj["timestamp"])
        assert obj["level"] in {"success", "info", "error"}
        assert isinstance(obj["redirect_to_login"], bool)
    assert json.loads(lines[1])["redirect_to_login"] is True


def test_flush_appends_to_the_same_file(tmp_path: Path):
    buf = NoticeLogBuffer(logs_dir=tmp_path)
    buf.append(Notice.create(NoticeLevel.INFO, "one"))
    first = buf.flush()
    buf.append(Notice.create(NoticeLevel.INFO, "two"))
    second = buf.flush()

    assert first == second
    messages = [json.loads(x)["message"] for x in first.read_text(encoding="utf-8").splitlines()]
    assert messages == ["one", "two"]


def test_empty_flush_writes_nothing(tmp_path: Path):
    buf = NoticeLogBuffer(logs_dir=tmp_path / "logs")

    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_non_ascii_messages_are_kept(tmp_path: Path):
    buf = NoticeLogBuffer(logs_dir=tmp_path)
    buf.append(Notice.create(NoticeLevel.ERROR, "Error: ファイル取得失敗"))
    path = buf.flush()
    assert "ファイル取得失敗" in path.read_text(encoding="utf-8")
