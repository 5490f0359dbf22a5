from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any

import requests

from ..models.activity_log import ActivityLogEntry
from ..models.file_record import FileRecord

"""Remote pipeline gateway client.

Thin async facade over the automation HTTP API. Each call runs a blocking
`requests` call in a worker thread so the event loop keeps servicing timers
while a request is in flight. Every call carries a bounded timeout.

Endpoints (relative to base_url + api_prefix):
- GET  status                          -> {"success": true, "data": [FileRecord...]}
- GET  buildTask?startDate=..&endDate=.. -> acknowledgement
- GET  DownloadFiles                   -> acknowledgement
- POST ImportFiles  body=[FileRecord...] -> {"success": true, "data": [FileRecord...]}
- GET  getActivityLog/<DDMMYYYY>       -> {"success": true, "data": [entry...]}
"""

__all__ = [
    "GatewayError",
    "AuthenticationError",
    "ResponseFormatError",
    "PipelineGateway",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class GatewayError(Exception):
    """Network failure, timeout or non-2xx response from the gateway."""
    pass


class AuthenticationError(GatewayError):
    """Gateway rejected the credentials (HTTP 401/403)."""
    pass


class ResponseFormatError(GatewayError):
    """Gateway answered with a body the dashboard cannot use."""
    pass


class PipelineGateway:
    """Client for the status, build-task, download, import and activity endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api/automate",
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/" + api_prefix.strip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    async def fetch_status(self) -> list[FileRecord]:
        body = await self._call("GET", "status")
        return _parse_records(_data_list(body, "status"), "status")

    async def trigger_build_task(self, start: date, end: date) -> None:
        await self._call(
            "GET",
            "buildTask",
            params={"startDate": start.isoformat(), "endDate": end.isoformat()},
            expect_json=False,
        )

    async def trigger_download(self) -> None:
        await self._call("GET", "DownloadFiles", expect_json=False)

    async def import_files(self, records: list[FileRecord]) -> list[FileRecord]:
        """Import exactly `records`; returns them with updated import status."""
        if not records:
            raise ValueError("No files provided for import")
        body = await self._call("POST", "ImportFiles", json=[r.to_api() for r in records])
        return _parse_records(_data_list(body, "import"), "import")

    async def fetch_activity_log(self, day: date) -> list[ActivityLogEntry]:
        body = await self._call("GET", f"getActivityLog/{day.strftime('%d%m%Y')}")
        return [ActivityLogEntry.from_api(i, item) for i, item in enumerate(_data_list(body, "activity log"))]

    def close(self) -> None:
        self.session.close()

    async def _call(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        expect_json: bool = True,
    ) -> Any:
        return await asyncio.to_thread(
            self._request, method, endpoint, params=params, json=json, expect_json=expect_json
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None,
        json: Any,
        expect_json: bool,
    ) -> Any:
        url = f"{self.base_url}/{endpoint}"
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.Timeout as e:
            raise GatewayError(f"{endpoint} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise GatewayError(f"{endpoint} request failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Authentication failed ({response.status_code}) on {endpoint}")
        if not response.ok:
            raise GatewayError(f"{endpoint} failed with HTTP {response.status_code}")
        if not expect_json:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(f"{endpoint} returned a non-JSON body") from e


def _data_list(body: Any, what: str) -> list[Any]:
    if not isinstance(body, dict) or body.get("success") is not True or not isinstance(body.get("data"), list):
        raise ResponseFormatError(f"Invalid {what} response format")
    return body["data"]


def _parse_records(items: list[Any], what: str) -> list[FileRecord]:
    records: list[FileRecord] = []
    for item in items:
        if not isinstance(item, dict):
            raise ResponseFormatError(f"Invalid {what} record: expected an object")
        try:
            records.append(FileRecord.from_api(item))
        except ValueError as e:
            raise ResponseFormatError(f"Invalid {what} record: {e}") from e
    return records
